"""
Exam Planner Agent - 학생 정보와 지식 구조로 출제 청사진 설계
"""
from typing import Any, Dict, List

from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .base_agent import BaseAgent
from .state import ExamState, ProcessingPhase, QuestionType, format_student_profile


class ExamPlanItem(BaseModel):
    """출제 청사진 항목 (계획 후 읽기 전용)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    merged_label: str = Field(description="合并后的考查组合名称")
    knowledge_points: List[str] = Field(min_length=1, description="覆盖的知识点名称")
    question_type: QuestionType = Field(description="题型：SingleChoice、MultipleChoices、ShortAnswer 之一")
    question_count: int = Field(ge=1, le=3, description="该组合的出题数量（1-3）")
    difficulty: int = Field(ge=3, le=5, description="难度系数（3-5）")
    focus: str = Field(description="命题聚焦点")
    rationale: str = Field(description="命题理由")
    expected_skills: List[str] = Field(min_length=1, description="考查的目标能力")
    answer_expectations: str = Field(description="答案要点")


class ExamPlan(BaseModel):
    """출제 전략 + 청사진"""
    strategy: str = Field(description="整体命题策略")
    blueprint: List[ExamPlanItem] = Field(min_length=3, description="命题蓝图")


class ExamPlannerAgent(BaseAgent):
    """지식 구조를 묶고 문제 유형을 배정하는 에이전트"""

    SYSTEM_PROMPT = (
        "你是一名高校《命题学》专家，负责根据学生画像和课程考核点设计高难度试题。"
        "请先对考点进行合并与归类，再匹配合适题型。"
        "题型只能是 SingleChoice、MultipleChoices、ShortAnswer 三种字符串之一，并确保难度系数在 3-5 范围。"
        "请覆盖全部三种题型且每种至少安排一题。短答题需要包含主观论述与必要计算，可适当分配多题。"
        "如果考点超过 20 个，请先分组再命题。"
    )

    async def execute(self, state: ExamState) -> Dict[str, Any]:
        """출제 청사진 생성"""
        self.log_progress(ProcessingPhase.EXAM_PLANNING.value, "📐 命题蓝图设计中...")

        student_profile = format_student_profile(state.get("student_profile") or {})
        knowledge_tree = state.get("knowledge_tree", "")

        user_prompt = f"""课程名称：{state.get("course_title", "")}
学生画像：{student_profile}
知识结构总览：
{state.get("knowledge_outline") or knowledge_tree}

叶子知识点节选：
{state.get("knowledge_question_digest") or knowledge_tree}"""

        plan = await self.call_structured(ExamPlan, [
            SystemMessage(content=self.SYSTEM_PROMPT),
            HumanMessage(content=user_prompt),
        ])

        self.log_debug(f"Exam plan ready: {len(plan.blueprint)} blueprint items")

        return {"exam_plan": list(plan.blueprint), "plan_strategy": plan.strategy}
