"""Shared fixtures and fakes."""

from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.messages import AIMessage

from config import Config
from servers.exam_agents.exam_planner import ExamPlanItem
from servers.exam_agents.state import QuestionType


def make_fake_llm(
    structured: Optional[Dict[type, Any]] = None,
    text: Any = "模型回复",
) -> MagicMock:
    """
    Create a chat model double.

    ``structured`` maps a schema class to what ``with_structured_output(schema).ainvoke``
    yields: a single value, a list of values (one per call), an exception to raise
    or a callable side effect.
    ``text`` is what plain ``ainvoke`` returns as message content (or a list, one per call).
    """
    structured = structured or {}
    runners: Dict[type, MagicMock] = {}

    def with_structured_output(schema, **kwargs):
        if schema not in runners:
            value = structured[schema]
            runner = MagicMock()
            if isinstance(value, (list, BaseException)):
                runner.ainvoke = AsyncMock(side_effect=value)
            elif callable(value) and not hasattr(value, "model_dump"):
                runner.ainvoke = AsyncMock(side_effect=value)
            else:
                runner.ainvoke = AsyncMock(return_value=value)
            runners[schema] = runner
        return runners[schema]

    llm = MagicMock()
    llm.with_structured_output = MagicMock(side_effect=with_structured_output)
    llm.structured_runners = runners
    if isinstance(text, list):
        llm.ainvoke = AsyncMock(side_effect=[AIMessage(content=item) for item in text])
    else:
        llm.ainvoke = AsyncMock(return_value=AIMessage(content=text))
    return llm


def make_plan_item(
    question_type: QuestionType = QuestionType.SINGLE_CHOICE,
    question_count: int = 1,
    difficulty: int = 4,
    knowledge_points: Optional[List[str]] = None,
    label: str = "煤矸石综合利用",
) -> ExamPlanItem:
    return ExamPlanItem(
        merged_label=label,
        knowledge_points=knowledge_points or ["煤矸石的形成"],
        question_type=question_type,
        question_count=question_count,
        difficulty=difficulty,
        focus="形成机理",
        rationale="区分度高",
        expected_skills=["分析", "计算"],
        answer_expectations="说明形成条件",
    )


@pytest.fixture(autouse=True)
def progress_dir(tmp_path, monkeypatch) -> str:
    """Keep progress files inside the test's temp directory."""
    directory = str(tmp_path / "progress")
    monkeypatch.setattr(Config, "PROGRESS_DIR", directory)
    return directory
