"""Tests for per-type question generators."""

import pytest
from pydantic import TypeAdapter

from servers.exam_agents.question_generators import (
    ChoiceDraft,
    GeneratedQuestion,
    MultipleChoicesGenerator,
    ShortAnswerDraft,
    ShortAnswerGenerator,
    SingleChoiceGenerator,
    clamp_difficulty,
)
from servers.exam_agents.state import QuestionType
from tests.conftest import make_fake_llm, make_plan_item


def choice_draft(difficulty: float = 3, answer=("A",)) -> ChoiceDraft:
    return ChoiceDraft(
        Body="某矿区煤矸石堆自燃的主要原因是？",
        Options=[{"key": key, "value": f"选项{key}"} for key in "ABCD"],
        Answer=list(answer),
        difficulty=difficulty,
        Remark="解析",
    )


class TestClampDifficulty:
    @pytest.mark.parametrize(
        ("planned", "reported", "expected"),
        [(4, 2, 4), (3, 5, 5), (5, 9, 5), (3, 0, 3), (4, 4.4, 4)],
    )
    def test_clamp_up(self, planned: int, reported: float, expected: int) -> None:
        assert clamp_difficulty(planned, reported) == expected


class TestSingleChoiceGenerator:
    @pytest.mark.asyncio
    async def test_raises_without_plan_item(self) -> None:
        generator = SingleChoiceGenerator(make_fake_llm({ChoiceDraft: choice_draft()}))

        with pytest.raises(ValueError, match="plan_item"):
            await generator.execute({"instructions": "指令"})

    @pytest.mark.asyncio
    async def test_enriches_draft(self) -> None:
        llm = make_fake_llm({ChoiceDraft: choice_draft(difficulty=2)})
        generator = SingleChoiceGenerator(llm)

        result = await generator.execute({
            "plan_item": make_plan_item(difficulty=4),
            "plan_strategy": "策略",
            "instructions": "指令正文",
        })

        assert len(result["questions"]) == 1
        question = result["questions"][0]
        assert question["Type"] == "SingleChoice"
        assert question["TypeText"] == "单选题"
        assert question["ProblemType"] == 1
        assert question["difficulty"] == 4

        messages = llm.structured_runners[ChoiceDraft].ainvoke.call_args.args[0]
        assert messages[1].content.startswith("指令正文\n\n产出要求：\n- 语言：中文。")
        assert "- 难度系数不低于 4。" in messages[1].content

    @pytest.mark.asyncio
    async def test_accepts_plan_item_as_dict(self) -> None:
        generator = SingleChoiceGenerator(make_fake_llm({ChoiceDraft: choice_draft(difficulty=5)}))
        plan_item = make_plan_item(difficulty=3).model_dump(by_alias=True)

        result = await generator.execute({"plan_item": plan_item, "instructions": ""})

        assert result["questions"][0]["difficulty"] == 5


class TestMultipleChoicesGenerator:
    @pytest.mark.asyncio
    async def test_wire_tag_and_labels(self) -> None:
        generator = MultipleChoicesGenerator(make_fake_llm({ChoiceDraft: choice_draft(answer=("A", "C"))}))

        result = await generator.execute({
            "plan_item": make_plan_item(QuestionType.MULTIPLE_CHOICES),
            "instructions": "",
        })

        question = result["questions"][0]
        assert question["Type"] == "MultipleChoice"
        assert question["TypeText"] == "多选题"
        assert question["ProblemType"] == 2
        assert question["Answer"] == ["A", "C"]


class TestShortAnswerGenerator:
    @pytest.mark.asyncio
    async def test_difficulty_requirement_position(self) -> None:
        draft = ShortAnswerDraft(Body="论述题", difficulty=3, Remark="评分要点")
        llm = make_fake_llm({ShortAnswerDraft: draft})
        generator = ShortAnswerGenerator(llm)

        result = await generator.execute({
            "plan_item": make_plan_item(QuestionType.SHORT_ANSWER, difficulty=5),
            "instructions": "",
        })

        assert result["questions"][0]["Type"] == "ShortAnswer"
        assert result["questions"][0]["ProblemType"] == 5
        assert result["questions"][0]["difficulty"] == 5

        prompt = llm.structured_runners[ShortAnswerDraft].ainvoke.call_args.args[0][1].content
        requirement_lines = prompt.split("产出要求：\n")[1].split("\n")
        assert requirement_lines[2] == "- 难度系数不低于 5。"


class TestGeneratedQuestionUnion:
    def test_discriminates_on_type(self) -> None:
        adapter = TypeAdapter(GeneratedQuestion)
        question = adapter.validate_python({
            "Type": "ShortAnswer",
            "Body": "题干",
            "difficulty": 4,
            "Remark": "要点",
        })

        assert question.TypeText == "简答题"
        assert question.ProblemType == 5
