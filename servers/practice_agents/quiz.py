"""
Quiz Workflow - 예시 문제와 유사하지만 중복되지 않는 연습 문제 3개 생성
"""
from typing import Annotated, Any, Dict, List, Literal, Optional, TypedDict, Union
from datetime import date, datetime, timezone
import logging

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langgraph.graph import StateGraph, START, END
from pydantic import BaseModel, Field, field_validator

from servers.exam_agents.base_agent import BaseAgent
from servers.exam_agents.state import StudentProfile

logger = logging.getLogger(__name__)

OptionKey = Literal["A", "B", "C", "D"]
OPTION_ORDER = ("A", "B", "C", "D")
QUIZ_QUESTION_COUNT = 3


class QuizOption(BaseModel):
    key: OptionKey
    value: str = Field(description="选项内容（中文）。")


class QuizSingleChoice(BaseModel):
    Type: Literal["SingleChoice"]
    TypeText: Literal["单选题"]
    ProblemType: Literal[1]
    Body: str = Field(description="题干内容（中文）。不要在此处包含选项标签或答案。")
    Options: List[QuizOption] = Field(min_length=2, max_length=4, description="提供 2-4 个选项，键按从 A 开始连续排列。")
    Answer: List[OptionKey] = Field(min_length=1, max_length=1, description="仅有 1 个正确答案，用其选项键表示。")
    difficulty: float = Field(description="难度等级 1（易）至 5（难），与样题难度一致。")
    Remark: str = Field(description="说明答案正确的原因，并引用相关知识内容。")

    @field_validator("Options")
    @classmethod
    def check_option_order(cls, options: List[QuizOption]) -> List[QuizOption]:
        keys = [option.key for option in options]
        if len(set(keys)) != len(keys):
            raise ValueError("选项键不能重复。")
        if keys != list(OPTION_ORDER[:len(keys)]):
            raise ValueError("选项必须按照 A、B、C、D 的顺序连续排列，不得跳过。")
        return options


class QuizMultipleChoice(BaseModel):
    Type: Literal["MultipleChoice"]
    TypeText: Literal["多选题"]
    ProblemType: Literal[2]
    Body: str = Field(description="题干内容（中文）。不要包含选项标签或答案。")
    Options: List[QuizOption] = Field(min_length=4, max_length=4, description="提供 A-D 共 4 个选项。")
    Answer: List[OptionKey] = Field(min_length=2, description="至少 2 个正确答案，用其选项键表示。")
    difficulty: float = Field(description="难度等级 1（易）至 5（难），与样题难度一致。")
    Remark: str = Field(description="解释每个选项正确或错误的原因。")


class QuizShortAnswer(BaseModel):
    Type: Literal["ShortAnswer"]
    TypeText: Literal["主观题"]
    ProblemType: Literal[5]
    Body: str = Field(description="题干内容（中文），引导学习者进行开放式作答。")
    difficulty: float = Field(description="难度等级 1（易）至 5（难），与样题难度一致。")
    Remark: str = Field(description="参考知识内容给出示例答案或评分要点。")


QuizQuestion = Annotated[
    Union[QuizSingleChoice, QuizMultipleChoice, QuizShortAnswer],
    Field(discriminator="Type"),
]


class QuizResponse(BaseModel):
    questions: List[QuizQuestion] = Field(
        min_length=QUIZ_QUESTION_COUNT,
        max_length=QUIZ_QUESTION_COUNT,
        description="严格输出 3 道题。每题应根据对应样题选择匹配的题型架构。",
    )


class QuizState(TypedDict, total=False):
    knowledge_point_name: str
    knowledge_content: str
    sample_questions: List[str]
    user_context: StudentProfile
    output: List[Dict[str, Any]]


def build_variant_seed(user_context: StudentProfile, today: Optional[date] = None) -> str:
    """학생별로 다른 문제가 나오도록 하는 시드 (student_id|grade|major|날짜)"""
    today_text = (today or datetime.now(timezone.utc).date()).isoformat()
    components = [
        user_context.get("student_id") or "",
        user_context.get("grade") or "",
        user_context.get("major") or "",
        today_text,
    ]
    return "|".join(component for component in components if component) or today_text


def summarize_user_context(user_context: StudentProfile) -> str:
    entries = [
        f"学生ID: {user_context['student_id']}" if user_context.get("student_id") else "",
        f"年级: {user_context['grade']}" if user_context.get("grade") else "",
        f"专业: {user_context['major']}" if user_context.get("major") else "",
        f"专业背景: {user_context['major_background']}" if user_context.get("major_background") else "",
        f"掌握程度: {user_context['grasp_level']}" if user_context.get("grasp_level") else "",
        f"历史错题: {'； '.join(user_context['history'])}" if user_context.get("history") else "",
    ]
    return "； ".join(entry for entry in entries if entry) or "无"


class QuizGeneratorAgent(BaseAgent):
    """예시 문제 매핑 기반 연습 문제 생성"""

    SYSTEM_PROMPT_TEMPLATE = """你是一名教学设计专家，负责根据给定的样题生成高度相似且不重复的练习题。
请严格遵循以下要求：
- 语言：全程使用中文编写题干、选项、答案与解析。
- 题型规范：每道题必须严格匹配以下之一的结构：
  * 单选题：仅 1 个正确选项。
  * 多选题：存在多个正确选项。
  * 主观题：开放式作答，无选项。
- 样题映射：逐条分析样题，并一一对应生成新题：
  * 总共输出 3 道题，顺序与输入样题一致。
  * 若样题为单选题或问答且存在唯一答案，则输出单选题。
  * 若样题为多选题或需要多个关键要点，则输出多选题。
  * 若样题要求开放式回答，则输出主观题。
  * 若样题为判断题（对/错），请转换为单选题，且仅提供两个选项：A：正确、B：错误，不得出现其他选项，并设置唯一正确答案。
- 知识对齐：题干、答案与解析必须与提供的知识内容一致，并明确指向给定的知识点。
- 相似不重复：保持与样题相同的题型与思维路径，但更换情境、角色、数据或措辞，避免与样题重复。
- 结构映射：保持与样题相同的逻辑结构、难度与认知要求，同时更换表述与背景以避免重复。
- 多样性：三道题应体现不同角度或应用场景。
- 难度：每题的难度值（1-5）应与其对应样题的隐含难度保持一致。
- 解析：请在解析中明确将推理或关键点与知识内容对应。
- 变体种子（用于不同学生有差异）：{variant_seed}。
- 学生上下文：如有可用，在不改变题型的前提下，将其背景、掌握程度或历史错题细节融合到题面中。"""

    async def execute(self, state: QuizState) -> Dict[str, Any]:
        user_context = state.get("user_context") or {}
        samples = "\n".join(
            f"{index}. {question}" for index, question in enumerate(state.get("sample_questions") or [], start=1)
        )

        response = await self.call_structured(QuizResponse, [
            SystemMessage(content=self.SYSTEM_PROMPT_TEMPLATE.format(variant_seed=build_variant_seed(user_context))),
            HumanMessage(content=(
                f"知识点名称: {state.get('knowledge_point_name') or ''}\n"
                f"知识点内容: {state.get('knowledge_content') or ''}\n"
                "请基于该知识点生成三道新题目。"
            )),
            HumanMessage(content=f"学生上下文: {summarize_user_context(user_context)}"),
            HumanMessage(content=f"示例题目（逐条对应生成一题）：\n{samples}"),
        ])

        self.log_debug(f"Quiz generated for {state.get('knowledge_point_name')!r}")
        return {"output": [question.model_dump() for question in response.questions]}


class QuizWorkflow:
    """단일 노드 연습 문제 워크플로우"""

    def __init__(self, llm: BaseChatModel):
        self.agent = QuizGeneratorAgent(llm)
        self.workflow = self._build_workflow()

    def _build_workflow(self):
        workflow = StateGraph(QuizState)
        workflow.add_node("generate_quiz_questions", self.agent.execute)
        workflow.add_edge(START, "generate_quiz_questions")
        workflow.add_edge("generate_quiz_questions", END)
        return workflow.compile()

    async def generate_quiz(
        self,
        knowledge_point_name: str,
        knowledge_content: str,
        sample_questions: List[str],
        user_context: Optional[StudentProfile] = None
    ) -> List[Dict[str, Any]]:
        final_state = await self.workflow.ainvoke({
            "knowledge_point_name": knowledge_point_name,
            "knowledge_content": knowledge_content,
            "sample_questions": sample_questions,
            "user_context": user_context or {},
        })
        return final_state["output"]
