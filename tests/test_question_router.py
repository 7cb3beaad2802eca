"""Tests for instruction assembly and plan fan-out routing."""

from langgraph.types import Send

from servers.exam_agents.exam_planner import ExamPlanItem
from servers.exam_agents.question_router import (
    QuestionTask,
    build_question_instruction,
    route_exam_plan,
)
from servers.exam_agents.state import QuestionType, format_student_profile
from tests.conftest import make_plan_item

ROUTE_KWARGS = dict(
    course="环境工程",
    student_profile="年级：大三",
    plan_strategy="突出综合应用",
    knowledge_digest="DIGEST",
)


class TestFormatStudentProfile:
    def test_defaults(self) -> None:
        assert format_student_profile({}) == "年级：未提供； 专业：未提供； 学术背景：未提供； 掌握程度：未提供"

    def test_history_segment(self) -> None:
        profile = format_student_profile({"grade": "大三", "history": ["酸碱", "沉淀"]})
        assert profile.startswith("年级：大三； ")
        assert profile.endswith("历史薄弱点：酸碱； 沉淀")


class TestBuildQuestionInstruction:
    def test_lines_in_order(self) -> None:
        item = make_plan_item(QuestionType.MULTIPLE_CHOICES, difficulty=5)
        text = build_question_instruction("环境工程", item, "", "画像", "知识", 3)
        lines = text.split("\n")

        assert lines[0] == "课程：环境工程"
        assert lines[1] == "学生画像：画像"
        assert lines[2] == "命题策略：关注学生薄弱点，保持较高区分度"
        assert lines[6] == "题型：多选题（第 3 题）"
        assert lines[7].startswith("难度要求：5/5")
        assert "相关知识点摘要：\n知识" in text
        assert "评分要点" not in text

    def test_long_knowledge_is_truncated(self) -> None:
        item = make_plan_item()
        text = build_question_instruction("课", item, "策略", "画像", "x" * 2500, 1)

        assert "x" * 2000 + "..." in text
        assert "x" * 2001 not in text

    def test_short_answer_clause(self) -> None:
        item = make_plan_item(QuestionType.SHORT_ANSWER)
        text = build_question_instruction("课", item, "策略", "画像", None, 1)

        assert text.endswith("该题需综合主观论述与必要计算步骤，明确给出评分要点。")
        assert "相关知识点摘要" not in text


class TestRouteExamPlan:
    def test_orders_are_continuous_across_items(self) -> None:
        plan = [
            make_plan_item(QuestionType.SINGLE_CHOICE, question_count=2),
            make_plan_item(QuestionType.SHORT_ANSWER, question_count=1),
            make_plan_item(QuestionType.MULTIPLE_CHOICES, question_count=3),
        ]
        tasks = route_exam_plan(plan, {}, **ROUTE_KWARGS)

        assert [task.order for task in tasks] == [1, 2, 3, 4, 5, 6]
        assert [task.question_type for task in tasks] == [
            QuestionType.SINGLE_CHOICE,
            QuestionType.SINGLE_CHOICE,
            QuestionType.SHORT_ANSWER,
            QuestionType.MULTIPLE_CHOICES,
            QuestionType.MULTIPLE_CHOICES,
            QuestionType.MULTIPLE_CHOICES,
        ]
        assert "（第 4 题）" in tasks[3].instructions

    def test_count_is_clamped(self) -> None:
        base = make_plan_item().model_dump()
        too_many = ExamPlanItem.model_construct(**{**base, "question_count": 7})
        too_few = ExamPlanItem.model_construct(**{**base, "question_count": 0})

        assert len(route_exam_plan([too_many], {}, **ROUTE_KWARGS)) == 3
        assert len(route_exam_plan([too_few], {}, **ROUTE_KWARGS)) == 1

    def test_digest_fallback_when_no_detail_found(self) -> None:
        tasks = route_exam_plan([make_plan_item(knowledge_points=["不存在"])], {}, **ROUTE_KWARGS)
        assert "相关知识点摘要：\nDIGEST" in tasks[0].instructions

    def test_matched_details_are_numbered_and_deduplicated(self) -> None:
        detail_map = {"煤矸石的形成": "形成详情", "煤矸石的组分": "组分详情"}
        item = make_plan_item(knowledge_points=["煤矸石的形成", "煤矸石 的形成", "煤矸石的组分"])
        tasks = route_exam_plan([item], detail_map, **ROUTE_KWARGS)

        assert "关联知识点精要：\n1. 形成详情\n2. 组分详情" in tasks[0].instructions

    def test_details_capped_at_eight(self) -> None:
        detail_map = {f"点{i}": f"详情{i}" for i in range(10)}
        item = make_plan_item(knowledge_points=[f"点{i}" for i in range(10)])
        instructions = route_exam_plan([item], detail_map, **ROUTE_KWARGS)[0].instructions

        assert "8. 详情7" in instructions
        assert "详情8" not in instructions

    def test_empty_plan(self) -> None:
        assert route_exam_plan([], {}, **ROUTE_KWARGS) == []


class TestQuestionTask:
    def test_to_send_targets_type_node(self) -> None:
        item = make_plan_item(QuestionType.MULTIPLE_CHOICES)
        task = QuestionTask(
            question_type=item.question_type,
            plan_item=item,
            plan_strategy="策略",
            instructions="指令",
            order=1,
        )
        send = task.to_send()

        assert isinstance(send, Send)
        assert send.node == "MultipleChoices"
        assert send.arg == {"plan_item": item, "plan_strategy": "策略", "instructions": "指令"}


class TestExamPlanItemAliases:
    def test_camel_case_input(self) -> None:
        item = ExamPlanItem.model_validate({
            "mergedLabel": "组合",
            "knowledgePoints": ["点"],
            "questionType": "ShortAnswer",
            "questionCount": 2,
            "difficulty": 3,
            "focus": "f",
            "rationale": "r",
            "expectedSkills": ["s"],
            "answerExpectations": "a",
        })

        assert item.question_type is QuestionType.SHORT_ANSWER
        assert item.model_dump(by_alias=True)["questionCount"] == 2
