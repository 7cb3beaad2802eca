"""
Question Generator Agents - 청사진 항목 하나로 문제 한 개 생성
"""
from typing import Annotated, Any, Dict, List, Literal, Type, Union

from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel, Field

from .base_agent import BaseAgent
from .exam_planner import ExamPlanItem
from .state import QUESTION_TYPE_LABEL, QUESTION_TYPE_PROBLEM_TYPE, QuestionType

OptionKey = Literal["A", "B", "C", "D"]
MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5


class OptionItem(BaseModel):
    key: OptionKey
    value: str = Field(description="option")


# 모델이 직접 채우는 초안 스키마
class ChoiceDraft(BaseModel):
    Body: str = Field(description="Question body")
    Options: List[OptionItem]
    Answer: List[OptionKey] = Field(description="Correct answers to this question")
    difficulty: float = Field(description="difficulty level of the question, 1 means easy, 5 means hard")
    Remark: str = Field(description="explanation of the answer")


class ShortAnswerDraft(BaseModel):
    Body: str = Field(description="Question body")
    difficulty: float = Field(description="difficulty level of the question, 1 means easy, 5 means hard")
    Remark: str = Field(description="explanation of the answer including key points needed for grading")


# 최종 산출물 (Type 필드로 구분)
class SingleChoiceQuestion(ChoiceDraft):
    Type: Literal["SingleChoice"] = "SingleChoice"
    TypeText: str = QUESTION_TYPE_LABEL[QuestionType.SINGLE_CHOICE]
    ProblemType: int = QUESTION_TYPE_PROBLEM_TYPE[QuestionType.SINGLE_CHOICE]
    difficulty: int


class MultipleChoiceQuestion(ChoiceDraft):
    Type: Literal["MultipleChoice"] = "MultipleChoice"
    TypeText: str = QUESTION_TYPE_LABEL[QuestionType.MULTIPLE_CHOICES]
    ProblemType: int = QUESTION_TYPE_PROBLEM_TYPE[QuestionType.MULTIPLE_CHOICES]
    difficulty: int


class ShortAnswerQuestion(ShortAnswerDraft):
    Type: Literal["ShortAnswer"] = "ShortAnswer"
    TypeText: str = QUESTION_TYPE_LABEL[QuestionType.SHORT_ANSWER]
    ProblemType: int = QUESTION_TYPE_PROBLEM_TYPE[QuestionType.SHORT_ANSWER]
    difficulty: int


GeneratedQuestion = Annotated[
    Union[SingleChoiceQuestion, MultipleChoiceQuestion, ShortAnswerQuestion],
    Field(discriminator="Type"),
]


def clamp_difficulty(planned: int, reported: float) -> int:
    """계획 난이도 이상으로 올리고 1-5 범위로 제한"""
    return int(min(MAX_DIFFICULTY, max(MIN_DIFFICULTY, planned, round(reported))))


class QuestionGeneratorAgent(BaseAgent):
    """문제 유형별 생성 에이전트의 공통 로직"""

    question_type: QuestionType
    draft_schema: Type[BaseModel]
    question_schema: Type[BaseModel]
    system_prompt: str = ""
    requirements: List[str] = []

    def build_user_prompt(self, instructions: str, plan_item: ExamPlanItem) -> str:
        lines = [f"- {requirement.format(difficulty=plan_item.difficulty)}" for requirement in self.requirements]
        return f"{instructions}\n\n产出要求：\n" + "\n".join(lines)

    async def execute(self, state: Dict[str, Any]) -> Dict[str, Any]:
        plan_item = state.get("plan_item")
        if plan_item is None:
            raise ValueError(f"{self.question_type.value} node requires plan_item in state")
        if isinstance(plan_item, dict):
            plan_item = ExamPlanItem.model_validate(plan_item)

        draft = await self.call_structured(self.draft_schema, [
            SystemMessage(content=self.system_prompt),
            HumanMessage(content=self.build_user_prompt(state.get("instructions") or "", plan_item)),
        ])

        payload = draft.model_dump()
        payload["difficulty"] = clamp_difficulty(plan_item.difficulty, draft.difficulty)
        question = self.question_schema.model_validate(payload)

        self.log_debug(f"{self.question_type.value} generated (difficulty {question.difficulty})")

        return {"questions": [question.model_dump()]}


class SingleChoiceGenerator(QuestionGeneratorAgent):
    question_type = QuestionType.SINGLE_CHOICE
    draft_schema = ChoiceDraft
    question_schema = SingleChoiceQuestion
    system_prompt = "你是一名经验丰富的大学考试命题专家。当前需要输出高难度单选题，确保选项具有迷惑性并考查高阶思维能力。"
    requirements = [
        "语言：中文。",
        "题干要结合情境，避免直接记忆题。",
        "选项需互斥且具有迷惑性，确保只有一个正确答案。",
        "难度系数不低于 {difficulty}。",
        "在解析中，必须解释正确选项的原因并逐一指出干扰项的误区。",
    ]


class MultipleChoicesGenerator(QuestionGeneratorAgent):
    question_type = QuestionType.MULTIPLE_CHOICES
    draft_schema = ChoiceDraft
    question_schema = MultipleChoiceQuestion
    system_prompt = "你是一名大学高阶能力评估专家。请根据给定蓝图设计高难度多选题，至少包含两个正确选项，干扰项需源自常见误区。"
    requirements = [
        "语言：中文。",
        "题干应强调综合分析、比较或推理，避免纯记忆描述。",
        "设置至少两个正确答案，其余选项需要针对性干扰，体现常见混淆点。",
        "难度系数不低于 {difficulty}。",
        "解析中先整体说明，再分别阐释每个正确选项和错误选项。",
    ]


class ShortAnswerGenerator(QuestionGeneratorAgent):
    question_type = QuestionType.SHORT_ANSWER
    draft_schema = ShortAnswerDraft
    question_schema = ShortAnswerQuestion
    system_prompt = "你是一名资深大学命题专家。请根据命题蓝图生成需要主观论述与计算分析的高难度简答题，并提供详尽评分要点。"
    requirements = [
        "语言：中文。",
        "题干需包含真实案例或复杂情境，引导学生分析并进行必要的计算或推导。",
        "难度系数不低于 {difficulty}。",
        "评分要点需拆分为可量化的子项，包含计算步骤、关键结论与论证逻辑。",
    ]
