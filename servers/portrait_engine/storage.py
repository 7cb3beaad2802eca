"""
학생 포트레이트 Markdown S3 업로드
"""
from typing import Any, Dict, Optional
import asyncio
import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from config import Config

logger = logging.getLogger(__name__)

MARKDOWN_CONTENT_TYPE = "text/markdown; charset=utf-8"


class PortraitUploadError(RuntimeError):
    pass


class PortraitStorage:
    """{user_id}.md 키로 포트레이트 저장"""

    def __init__(self, client: Any = None, bucket: Optional[str] = None):
        self._client = client
        self.bucket = bucket if bucket is not None else Config.STUDENT_PORTRAIT_BUCKET

    @property
    def client(self):
        if self._client is None:
            params = {"region_name": Config.STUDENT_PORTRAIT_BUCKET_REGION or None}
            # 정적 키가 둘 다 있을 때만 사용 (없으면 기본 자격 증명 체인)
            if Config.STUDENT_PORTRAIT_BUCKET_ACCESS_KEY and Config.STUDENT_PORTRAIT_BUCKET_SECRET_KEY:
                params["aws_access_key_id"] = Config.STUDENT_PORTRAIT_BUCKET_ACCESS_KEY
                params["aws_secret_access_key"] = Config.STUDENT_PORTRAIT_BUCKET_SECRET_KEY
            self._client = boto3.client("s3", **params)
        return self._client

    async def upload_markdown(self, markdown: str, student_info: Optional[Dict[str, Any]]) -> Optional[str]:
        """업로드 후 VersionId 반환 (user_id가 없으면 건너뜀)"""
        user_id = (student_info or {}).get("user_id")
        if not user_id:
            return None

        object_key = f"{user_id}.md"
        try:
            response = await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=object_key,
                Body=markdown.encode("utf-8"),
                ContentType=MARKDOWN_CONTENT_TYPE,
            )
        except (BotoCoreError, ClientError) as e:
            raise PortraitUploadError(
                f"Failed to upload student portrait markdown to S3 for user {object_key}: {e}"
            ) from e

        logger.info(f"Portrait uploaded: s3://{self.bucket}/{object_key}")
        return response.get("VersionId")
