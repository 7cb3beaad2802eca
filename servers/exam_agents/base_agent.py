"""
Base Agent 클래스 정의
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Type, TypeVar
import logging

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage
from pydantic import BaseModel

logger = logging.getLogger("eduflow.agents")

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class BaseAgent(ABC):
    """모든 워크플로우 에이전트의 기본 클래스"""

    def __init__(self, llm: BaseChatModel):
        self.llm = llm
        self.agent_name = self.__class__.__name__

    @abstractmethod
    async def execute(self, state: Dict[str, Any]) -> Dict[str, Any]:
        """에이전트의 주요 실행 로직 (상태 업데이트만 반환)"""
        pass

    def log_debug(self, message: str):
        """디버그 로그 출력"""
        logger.debug(f"[{self.agent_name}] {message}")

    def log_progress(self, phase: str, message: str):
        """진행 상태 로그"""
        logger.info(f"PROGRESS [{phase}] {self.agent_name}: {message}")

    async def call_structured(self, schema: Type[SchemaT], messages: List[BaseMessage]) -> SchemaT:
        """스키마 검증된 구조화 출력으로 LLM 호출"""
        structured_llm = self.llm.with_structured_output(schema, method="function_calling")
        try:
            return await structured_llm.ainvoke(messages)
        except Exception as e:
            self.log_debug(f"Structured LLM call for {schema.__name__} failed: {e}")
            raise
