"""
최종 작품 파싱 - 파일 다운로드 후 MinerU 문서 분해 서비스로 텍스트 추출
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import unquote, urlparse
import logging
import math
import posixpath

import httpx

from config import Config
from .schemas import ArtifactAnalysis

logger = logging.getLogger(__name__)

NO_ARTIFACTS = "未提供最终作品或提交内容。"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class MineruNotConfiguredError(RuntimeError):
    pass


@dataclass
class DownloadedArtifact:
    content: bytes
    filename: str
    content_type: str


def extract_filename_from_url(file_url: str) -> str:
    try:
        name = posixpath.basename(unquote(urlparse(file_url).path))
    except ValueError:
        return "artifact"
    return name or "artifact"


def build_mineru_summary(payload: Any) -> str:
    """MinerU 청크를 '[第N页] 텍스트' 형식으로 연결"""
    chunks = payload.get("result") if isinstance(payload, dict) else None
    if not isinstance(chunks, list):
        return ""

    lines = []
    for chunk in chunks:
        if not isinstance(chunk, dict):
            continue
        text = chunk.get("text").strip() if isinstance(chunk.get("text"), str) else ""
        if not text:
            continue
        try:
            page_number = float(chunk.get("page_number"))
        except (TypeError, ValueError):
            page_number = 0
        page_label = f"第{int(page_number)}页" if math.isfinite(page_number) and page_number > 0 else "未注明页码"
        lines.append(f"[{page_label}] {text}")

    return "\n\n".join(lines)


def build_artifact_summary(analyses: List[ArtifactAnalysis]) -> str:
    if not analyses:
        return "未提供最终作品或暂未完成解析。"

    blocks = []
    for analysis in analyses:
        block = [f"解析摘要:\n{analysis.summary or '未获取到有效内容。'}"]
        if analysis.errors:
            block.append(f"解析异常: {'； '.join(analysis.errors)}")
        blocks.append("\n".join(block))
    return "\n\n".join(blocks)


class ArtifactAnalyzer:
    """작품 URL 목록을 순서대로 파싱. 개별 실패는 결과에 기록하고 계속 진행합니다."""

    def __init__(
        self,
        mineru_base_url: Optional[str] = None,
        mineru_api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.mineru_base_url = Config.MINERU_BASE_URL if mineru_base_url is None else mineru_base_url
        self.mineru_api_key = Config.MINERU_API_KEY if mineru_api_key is None else mineru_api_key
        self.transport = transport

    async def download(self, file_url: str) -> DownloadedArtifact:
        async with httpx.AsyncClient(timeout=Config.ARTIFACT_DOWNLOAD_TIMEOUT, transport=self.transport) as client:
            response = await client.get(file_url, follow_redirects=True)
            response.raise_for_status()

        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        return DownloadedArtifact(
            content=response.content,
            filename=extract_filename_from_url(file_url),
            content_type=content_type or DEFAULT_CONTENT_TYPE,
        )

    async def call_mineru(self, artifact: DownloadedArtifact) -> Dict[str, Any]:
        if not self.mineru_base_url:
            raise MineruNotConfiguredError("文档拆解服务未配置，请设置 MINERU_BASE_URL")

        data = {}
        if Config.MINERU_VISION_PROVIDER.strip():
            data["provider"] = Config.MINERU_VISION_PROVIDER
        if Config.MINERU_VISION_MODEL.strip():
            data["model"] = Config.MINERU_VISION_MODEL

        headers = {"Accept": "application/json"}
        if self.mineru_api_key:
            headers["Authorization"] = f"Bearer {self.mineru_api_key}"

        async with httpx.AsyncClient(timeout=Config.MINERU_TIMEOUT, transport=self.transport) as client:
            response = await client.post(
                self.mineru_base_url,
                files={"file": (artifact.filename, artifact.content, artifact.content_type)},
                data=data,
                headers=headers,
                params={"chunk_type": "true", "pretty": "true"},
            )
            response.raise_for_status()
            return response.json()

    async def analyze_one(self, file_url: str) -> ArtifactAnalysis:
        if not self.mineru_base_url:
            return ArtifactAnalysis(
                file_url=file_url,
                summary="文档拆解服务未配置，无法解析作品内容。",
                errors=["缺少 MINERU_BASE_URL 配置"],
            )

        errors = []
        summary = ""
        try:
            downloaded = await self.download(file_url)
            summary = build_mineru_summary(await self.call_mineru(downloaded))
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            logger.warning(f"Artifact parsing failed for {file_url}: {e}")
            errors.append(f"调用文档拆解服务失败: {e}")

        return ArtifactAnalysis(
            file_url=file_url,
            summary=summary or "文档拆解服务未返回摘要，可手动检查原始内容。",
            errors=errors or None,
        )

    async def analyze(self, artifacts: List[Any]) -> Dict[str, Any]:
        if not artifacts:
            return {"artifact_analysis": [], "artifact_summary": NO_ARTIFACTS}

        analyses = []
        for entry in artifacts:
            file_url = entry.strip() if isinstance(entry, str) else ""
            if not file_url:
                analyses.append(ArtifactAnalysis(
                    file_url="未提供链接",
                    summary="未提供可供解析的文件链接。",
                    errors=["缺少 file_url"],
                ))
                continue
            analyses.append(await self.analyze_one(file_url))

        return {
            "artifact_analysis": analyses,
            "artifact_summary": build_artifact_summary(analyses),
        }
