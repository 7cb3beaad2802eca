"""
교재 검색 클라이언트 (textbook_search edge function)
"""
from typing import Any, Optional
import logging

import httpx
from pydantic import BaseModel

from config import Config

logger = logging.getLogger(__name__)


class SupabaseAuth(BaseModel):
    """교재 검색 호출에 필요한 인증 정보"""
    email: str
    password: str
    authorization: str


class TextbookSearchClient:
    """textbook_search 엔드포인트 래퍼. HTTP 오류는 그대로 전파합니다."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = (base_url if base_url is not None else Config.TEXTBOOK_SEARCH_BASE_URL).rstrip("/")
        self.timeout = timeout or Config.TEXTBOOK_SEARCH_TIMEOUT
        self.transport = transport

    async def search(self, query: str, auth: SupabaseAuth, top_k: int, ext_k: int) -> Any:
        headers = {
            "email": auth.email,
            "password": auth.password,
            "Authorization": f"Bearer {auth.authorization}",
        }
        payload = {"query": query, "topK": top_k, "extK": ext_k}

        logger.debug(f"Textbook search: query={query[:50]!r} topK={top_k} extK={ext_k}")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(f"{self.base_url}/textbook_search", json=payload, headers=headers)
            response.raise_for_status()
            return response.json()
