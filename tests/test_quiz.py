"""Tests for the practice quiz workflow."""

from datetime import date

import pytest
from pydantic import ValidationError

from servers.practice_agents.quiz import (
    QuizResponse,
    QuizSingleChoice,
    QuizWorkflow,
    build_variant_seed,
    summarize_user_context,
)
from tests.conftest import make_fake_llm


def single_choice(options=("A", "B", "C", "D")) -> dict:
    return {
        "Type": "SingleChoice",
        "TypeText": "单选题",
        "ProblemType": 1,
        "Body": "煤矸石自燃的主要诱因是？",
        "Options": [{"key": key, "value": f"选项{key}"} for key in options],
        "Answer": ["A"],
        "difficulty": 3,
        "Remark": "硫铁矿氧化放热",
    }


def multiple_choice() -> dict:
    return {
        "Type": "MultipleChoice",
        "TypeText": "多选题",
        "ProblemType": 2,
        "Body": "煤矸石可用于？",
        "Options": [{"key": key, "value": key} for key in "ABCD"],
        "Answer": ["A", "B"],
        "difficulty": 3,
        "Remark": "建材与充填",
    }


def short_answer() -> dict:
    return {
        "Type": "ShortAnswer",
        "TypeText": "主观题",
        "ProblemType": 5,
        "Body": "论述煤矸石资源化途径。",
        "difficulty": 4,
        "Remark": "要点",
    }


class TestVariantSeed:
    def test_joins_non_empty_parts(self) -> None:
        seed = build_variant_seed({"student_id": "s1", "major": "环境工程"}, today=date(2025, 1, 2))
        assert seed == "s1|环境工程|2025-01-02"

    def test_date_only(self) -> None:
        assert build_variant_seed({}, today=date(2025, 1, 2)) == "2025-01-02"


class TestSummarizeUserContext:
    def test_labels_present_fields(self) -> None:
        text = summarize_user_context({"grade": "大二", "history": ["酸碱", "沉淀"]})
        assert text == "年级: 大二； 历史错题: 酸碱； 沉淀"

    def test_empty_context(self) -> None:
        assert summarize_user_context({}) == "无"


class TestQuizSchemas:
    def test_true_false_as_two_options(self) -> None:
        question = QuizSingleChoice.model_validate(single_choice(options=("A", "B")))
        assert [option.key for option in question.Options] == ["A", "B"]

    def test_skipped_option_key_is_rejected(self) -> None:
        with pytest.raises(ValidationError, match="顺序"):
            QuizSingleChoice.model_validate(single_choice(options=("A", "C")))

    def test_duplicate_option_key_is_rejected(self) -> None:
        with pytest.raises(ValidationError, match="重复"):
            QuizSingleChoice.model_validate(single_choice(options=("A", "A")))

    def test_exactly_three_questions(self) -> None:
        with pytest.raises(ValidationError):
            QuizResponse.model_validate({"questions": [single_choice(), short_answer()]})

    def test_multiple_choice_needs_two_answers(self) -> None:
        payload = {**multiple_choice(), "Answer": ["A"]}
        with pytest.raises(ValidationError):
            QuizResponse.model_validate({"questions": [single_choice(), payload, short_answer()]})


class TestQuizWorkflow:
    @pytest.mark.asyncio
    async def test_generates_three_questions(self) -> None:
        response = QuizResponse.model_validate({
            "questions": [single_choice(), multiple_choice(), short_answer()],
        })
        llm = make_fake_llm({QuizResponse: response})
        workflow = QuizWorkflow(llm)

        questions = await workflow.generate_quiz(
            knowledge_point_name="煤矸石",
            knowledge_content="煤矸石是成煤过程中伴生的岩石",
            sample_questions=["样题一", "样题二", "样题三"],
            user_context={"grade": "大三"},
        )

        assert [q["Type"] for q in questions] == ["SingleChoice", "MultipleChoice", "ShortAnswer"]

        messages = llm.structured_runners[QuizResponse].ainvoke.call_args.args[0]
        assert "变体种子（用于不同学生有差异）：大三|" in messages[0].content
        assert messages[1].content.startswith("知识点名称: 煤矸石\n")
        assert messages[2].content == "学生上下文: 年级: 大三"
        assert messages[3].content == "示例题目（逐条对应生成一题）：\n1. 样题一\n2. 样题二\n3. 样题三"
