"""
공용 유틸리티 모듈 - 모델 생성 + 텍스트 정리
"""
from typing import Any, Optional
import uuid

from langchain_openai import ChatOpenAI

from config import Config


# =============================================================================
# LLM 유틸리티
# =============================================================================

def create_chat_model(model: Optional[str] = None, **overrides: Any) -> ChatOpenAI:
    """
    Config 기반으로 ChatOpenAI 인스턴스를 생성합니다.

    Args:
        model (Optional[str]): 사용할 모델 이름. 기본값은 Config.OPENAI_CHAT_MODEL_MINI
        **overrides: ChatOpenAI에 그대로 전달할 추가 인자 (timeout, temperature 등)

    Returns:
        ChatOpenAI: 스트리밍이 비활성화된 채팅 모델
    """
    params = {
        "model": model or Config.OPENAI_CHAT_MODEL_MINI,
        "api_key": Config.OPENAI_API_KEY,
        "base_url": Config.OPENAI_BASE_URL,
        "streaming": False,
    }
    if Config.LLM_TEMPERATURE is not None:
        params["temperature"] = Config.LLM_TEMPERATURE
    params.update({key: value for key, value in overrides.items() if value is not None})
    return ChatOpenAI(**params)


# =============================================================================
# 텍스트 유틸리티
# =============================================================================

def random_uuid():
    return str(uuid.uuid4())


def normalize_value(value: Any) -> str:
    """None은 빈 문자열로, 나머지는 문자열로 변환 후 공백 제거"""
    if value is None:
        return ""
    return str(value).strip()


def truncate_text(value: str, max_length: int) -> str:
    """
    LLM 컨텍스트 보호용 절단. 절단 시 원래 길이를 표시합니다.

    Args:
        value (str): 원본 텍스트
        max_length (int): 최대 길이

    Returns:
        str: 절단된 텍스트 (필요 없으면 원본 그대로)
    """
    if not value:
        return ""
    if len(value) <= max_length:
        return value
    return f"{value[:max_length]}\n...[已截断，原始长度 {len(value)} 字符]"
