"""
Question Router - 출제 청사진을 문제별 팬아웃 태스크로 분해
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from langgraph.types import Send

from .exam_planner import ExamPlanItem
from .knowledge_summarizer import lookup_knowledge_detail
from .state import QUESTION_TYPE_LABEL, QuestionType

DEFAULT_PLAN_STRATEGY = "关注学生薄弱点，保持较高区分度"
MAX_KNOWLEDGE_DETAILS = 8
MAX_INSTRUCTION_KNOWLEDGE_LENGTH = 2000
MIN_QUESTION_COUNT = 1
MAX_QUESTION_COUNT = 3


@dataclass(frozen=True)
class QuestionTask:
    """문제 한 개를 생성하는 팬아웃 단위"""
    question_type: QuestionType
    plan_item: ExamPlanItem
    plan_strategy: str
    instructions: str
    order: int

    def to_send(self) -> Send:
        return Send(self.question_type.value, {
            "plan_item": self.plan_item,
            "plan_strategy": self.plan_strategy,
            "instructions": self.instructions,
        })


def build_question_instruction(
    course: str,
    plan_item: ExamPlanItem,
    plan_strategy: str,
    student_profile: str,
    raw_knowledge: Optional[str],
    order: int
) -> str:
    """문제 생성 모델에 전달할 지시문 조립"""
    lines = [
        f"课程：{course}",
        f"学生画像：{student_profile}",
        f"命题策略：{plan_strategy or DEFAULT_PLAN_STRATEGY}",
        f"重点考查组合：{plan_item.merged_label}",
        f"覆盖知识点：{'； '.join(plan_item.knowledge_points)}",
        f"目标能力：{'； '.join(plan_item.expected_skills)}",
        f"题型：{QUESTION_TYPE_LABEL[plan_item.question_type]}（第 {order} 题）",
        f"难度要求：{plan_item.difficulty}/5，务必具有挑战性，避免直接记忆型问答",
        f"命题聚焦：{plan_item.focus}",
        f"答案要点：{plan_item.answer_expectations}",
        f"命题理由：{plan_item.rationale}",
    ]

    if raw_knowledge:
        if len(raw_knowledge) > MAX_INSTRUCTION_KNOWLEDGE_LENGTH:
            raw_knowledge = f"{raw_knowledge[:MAX_INSTRUCTION_KNOWLEDGE_LENGTH]}..."
        lines.append(f"相关知识点摘要：\n{raw_knowledge}")

    lines.append("整体要求：结合学生背景设计高阶思维问题，确保题干清晰并能拉开成绩分布，避免过于基础的直接记忆题。")

    if plan_item.question_type == QuestionType.SHORT_ANSWER:
        lines.append("该题需综合主观论述与必要计算步骤，明确给出评分要点。")

    return "\n".join(lines)


def collect_knowledge_context(
    plan_item: ExamPlanItem,
    detail_map: Dict[str, str],
    knowledge_digest: str
) -> str:
    """청사진 항목의 지식점 상세 (없으면 전체 발췌로 대체)"""
    details: List[str] = []
    for point in plan_item.knowledge_points:
        detail = lookup_knowledge_detail(detail_map, point)
        if detail and detail not in details:
            details.append(detail)
        if len(details) == MAX_KNOWLEDGE_DETAILS:
            break

    if not details:
        return knowledge_digest

    numbered = "\n".join(f"{index}. {detail}" for index, detail in enumerate(details, start=1))
    return f"关联知识点精要：\n{numbered}"


def expand_plan_item(
    plan_item: ExamPlanItem,
    last_order: int,
    detail_map: Dict[str, str],
    *,
    course: str,
    student_profile: str,
    plan_strategy: str,
    knowledge_digest: str
) -> Tuple[List[QuestionTask], int]:
    """
    청사진 항목 하나를 문제 태스크로 펼칩니다.

    Returns:
        Tuple[List[QuestionTask], int]: 생성된 태스크와 마지막으로 사용한 문제 번호
    """
    count = max(MIN_QUESTION_COUNT, min(MAX_QUESTION_COUNT, plan_item.question_count))
    knowledge_context = collect_knowledge_context(plan_item, detail_map, knowledge_digest)

    tasks = []
    for order in range(last_order + 1, last_order + count + 1):
        tasks.append(QuestionTask(
            question_type=plan_item.question_type,
            plan_item=plan_item,
            plan_strategy=plan_strategy,
            instructions=build_question_instruction(
                course=course,
                plan_item=plan_item,
                plan_strategy=plan_strategy,
                student_profile=student_profile,
                raw_knowledge=knowledge_context,
                order=order,
            ),
            order=order,
        ))

    return tasks, last_order + count


def route_exam_plan(
    plan: Sequence[ExamPlanItem],
    detail_map: Dict[str, str],
    *,
    course: str,
    student_profile: str,
    plan_strategy: str,
    knowledge_digest: str
) -> List[QuestionTask]:
    """
    청사진 전체를 순서대로 팬아웃 태스크 목록으로 변환합니다.

    문제 번호는 항목별로 초기화되지 않고 청사진 전체에 걸쳐 이어집니다.
    """
    tasks: List[QuestionTask] = []
    last_order = 0
    for plan_item in plan:
        item_tasks, last_order = expand_plan_item(
            plan_item,
            last_order,
            detail_map,
            course=course,
            student_profile=student_profile,
            plan_strategy=plan_strategy,
            knowledge_digest=knowledge_digest,
        )
        tasks.extend(item_tasks)
    return tasks
