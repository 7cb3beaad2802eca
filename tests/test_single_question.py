"""Tests for the single question workflow."""

import pytest

from servers.practice_agents import SingleQuestionWorkflow, route_question_type
from servers.practice_agents.single_question import (
    MultipleChoiceBody,
    SingleChoiceBody,
    format_question_history,
)
from tests.conftest import make_fake_llm

OPTIONS = [{"key": key, "value": f"选项{key}"} for key in "ABCD"]


def single_llm():
    return make_fake_llm({
        SingleChoiceBody: SingleChoiceBody(Body="煤矸石是什么？", Options=OPTIONS, Answer=["B"], Remark="定义"),
    })


def multiple_llm():
    return make_fake_llm({
        MultipleChoiceBody: MultipleChoiceBody(Body="哪些属于利用途径？", Options=OPTIONS, Answer=["A", "C"], Remark="综合"),
    })


class TestRouting:
    def test_single_choice_requires_descriptions(self) -> None:
        assert route_question_type({"knowledge_descriptions": "描述", "question_type": 1}) == "SingleChoice"
        assert route_question_type({"knowledge_descriptions": "", "question_type": 1}) == "MultipleChoices"
        assert route_question_type({"knowledge_descriptions": "描述", "question_type": 2}) == "MultipleChoices"
        assert route_question_type({}) == "MultipleChoices"

    def test_history_joins_questions(self) -> None:
        history = [{"question": "问一", "complete": "是"}, {"complete": "否"}, {"question": "问二"}]
        assert format_question_history(history) == "问一\n \n 问二"
        assert format_question_history(None) == ""


class TestSingleQuestionWorkflow:
    @pytest.mark.asyncio
    async def test_single_choice_output(self) -> None:
        llm = single_llm()
        workflow = SingleQuestionWorkflow(llm, multiple_choice_llm=multiple_llm())

        question = await workflow.generate(
            knowledge_point="煤矸石",
            knowledge_descriptions="成煤过程中伴生的岩石",
            question_history=[{"question": "旧题", "complete": "true"}],
            question_type=1,
            difficulty=2,
        )

        assert question["Type"] == "SingleChoice"
        assert question["TypeText"] == "单选题"
        assert question["ProblemType"] == 1
        assert question["Difficulty"] == 2
        assert question["Answer"] == ["B"]
        messages = llm.structured_runners[SingleChoiceBody].ainvoke.call_args.args[0]
        assert "related to '煤矸石'" in messages[0].content
        assert messages[1].content == "Knowledge descriptions: 成煤过程中伴生的岩石"
        assert messages[2].content == "Question history: 旧题"

    @pytest.mark.asyncio
    async def test_multiple_choice_uses_its_own_model(self) -> None:
        llm = single_llm()
        other = multiple_llm()
        workflow = SingleQuestionWorkflow(llm, multiple_choice_llm=other)

        question = await workflow.generate(knowledge_point="煤矸石", question_type=1, difficulty=3)

        assert question["Type"] == "MultipleChoice"
        assert question["TypeText"] == "多选题"
        assert question["ProblemType"] == 2
        assert question["Difficulty"] == 3
        assert question["Answer"] == ["A", "C"]
        assert llm.structured_runners == {}
        messages = other.structured_runners[MultipleChoiceBody].ainvoke.call_args.args[0]
        assert messages[2].content == "Question history: "
