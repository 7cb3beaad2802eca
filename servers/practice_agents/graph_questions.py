"""
Graph Question Workflow - 지식 그래프 경로를 근거로 난이도 3단계 x 문제 유형 3종, 총 9문제 생성
"""
from dataclasses import dataclass
from typing import Annotated, Any, Dict, List, Optional, Tuple, Type, TypedDict
import logging
import operator

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langgraph.graph import StateGraph, START, END
from langgraph.types import Send
from pydantic import BaseModel

from servers.clients.graph_store import KnowledgeGraphStore
from servers.exam_agents.base_agent import BaseAgent
from servers.exam_agents.question_generators import (
    ChoiceDraft,
    MultipleChoiceQuestion,
    ShortAnswerDraft,
    ShortAnswerQuestion,
    SingleChoiceQuestion,
    clamp_difficulty,
)
from servers.exam_agents.state import QuestionType, StudentProfile

logger = logging.getLogger(__name__)

OUTPUT_NODE = "output_questions"


class GraphQuestionState(TypedDict, total=False):
    input: str
    descriptions: str
    user_data: StudentProfile
    graph_data: str
    instructions: str
    # 팬아웃된 9개 노드의 결과를 누적
    questions: Annotated[List[Dict[str, Any]], operator.add]
    output: List[Dict[str, Any]]


class GraphShortAnswerQuestion(ShortAnswerQuestion):
    TypeText: str = "主观题"


@dataclass(frozen=True)
class DifficultyLevel:
    name: str
    template: str
    # 학생 정보가 비어 있을 때 쓰는 (grade, major_background, grasp_level)
    defaults: Tuple[str, str, str]


DIFFICULTY_LEVELS = (
    DifficultyLevel(
        name="simple",
        template="""Generate a very simple question based on the following topic: {topic}, specifically targeting potential knowledge gaps identified in the student's historical interactions.
Review their conversation history ({history}) to identify areas where they may have misconceptions or incomplete understanding.
The question should help address these specific knowledge gaps while reinforcing core concepts.
After the question, provide a clear and concise answer that explains the key point and helps clarify the concept, with special attention to the student's academic background ({grade}, {major_background}) and current grasp level ({grasp_level}).
Output these questions in ** Chinese **.""",
        defaults=("本科生", "没有经验", "不太熟练"),
    ),
    DifficultyLevel(
        name="medium",
        template="""Generate a medium-difficulty exam question that tests the understanding of key concepts in {topic}, specifically targeting potential knowledge gaps identified in the student's historical interactions.
Review their conversation history ({history}) to identify areas where they may have misconceptions or incomplete understanding.
The question should require the respondent to demonstrate their comprehension of the material and apply their knowledge to a relevant scenario.
Ensure the question is challenging enough to stimulate critical thinking and encourage a deeper understanding of the topic.
After the question, provide a clear and concise answer that explains the key point and helps clarify the concept, with special attention to the student's academic background ({grade}, {major_background}) and current grasp level ({grasp_level}).
Output these questions in ** Chinese **.""",
        defaults=("硕士生", "具有一定经验", "基本掌握"),
    ),
    DifficultyLevel(
        name="hard",
        template="""Generate a high-difficulty exam question that assesses a student's deep understanding of key concepts in {topic}, specifically targeting potential knowledge gaps identified in the student's historical interactions.
Review their conversation history ({history}) to identify areas where they may have misconceptions or incomplete understanding.
The question should require the student to critically analyze and synthesize their knowledge, applying it to a complex real-world problem or scenario.
The task should challenge the student to demonstrate not only their theoretical understanding but also their ability to integrate and use the knowledge in practical, real-world contexts.
After the question, provide a clear and concise answer that explains the key point and helps clarify the concept, with special attention to the student's academic background ({grade}, {major_background}) and current grasp level ({grasp_level}). Output these questions in ** Chinese **.""",
        defaults=("博士生", "具有丰富经验", "十分熟练"),
    ),
)


def build_level_instructions(level: DifficultyLevel, topic: str, user: StudentProfile) -> str:
    """난이도별 시스템 지시문 (학생 정보가 없으면 난이도 기본값 사용)"""
    grade, major_background, grasp_level = level.defaults
    history = user.get("history")
    return level.template.format(
        topic=topic,
        history="； ".join(history) if history else "无",
        grade=user.get("grade") or grade,
        major_background=user.get("major_background") or major_background,
        grasp_level=user.get("grasp_level") or grasp_level,
    )


class GraphQuestionAgent(BaseAgent):
    """그래프 경로 기반 문제 생성 공통 로직 (Send 페이로드: instructions, descriptions, graph_data)"""

    question_type: QuestionType
    question_label: str
    draft_schema: Type[BaseModel]
    question_schema: Type[BaseModel]
    guidelines: List[str] = []

    def build_user_prompt(self, descriptions: str, graph_data: str) -> str:
        lines = list(self.guidelines)
        if descriptions:
            lines.insert(1, f"Descriptions:  {descriptions}")
        body = "\n".join(f"- {line}" for line in lines)
        return (
            "Using the knowledge extracted from the Neo4j query results, "
            f"generate a {self.question_label} question with the following guidelines:\n"
            f"{body}\n\nNeo4j query results: {graph_data}\n"
        )

    async def execute(self, state: Dict[str, Any]) -> Dict[str, Any]:
        draft = await self.call_structured(self.draft_schema, [
            SystemMessage(content=state.get("instructions") or ""),
            HumanMessage(content=self.build_user_prompt(
                state.get("descriptions") or "", state.get("graph_data") or ""
            )),
        ])

        payload = draft.model_dump()
        payload["difficulty"] = clamp_difficulty(1, draft.difficulty)
        question = self.question_schema.model_validate(payload)

        self.log_debug(f"{self.question_type.value} generated (difficulty {question.difficulty})")
        return {"questions": [question.model_dump()]}


COMMON_TAIL = [
    "Question clarity: The question should be clear and concise, ensuring students can easily understand what is being asked.",
    "Knowledge alignment: Use the knowledge extracted from the Neo4j database as a reference point for creating questions, "
    "but feel free to incorporate related concepts or extend beyond the exact data provided.",
]
DIFFICULTY_GUIDELINE = (
    "Difficulty level: Assign a difficulty level to the question based on the complexity of the content. "
    "1 and 2 mean easy, 3 means medium, 4 and 5 mean hard."
)
BODY_GUIDELINE = (
    "Question body: The question should focus on core concepts or key facts "
    "that require the user to recall and apply the information."
)
EXTREME_TERMS_GUIDELINE = (
    "Avoid extreme terms: Do not include extreme terms like “always” or “never” in the options, "
    "as they are easily ruled out by students."
)


class GraphSingleChoiceAgent(GraphQuestionAgent):
    question_type = QuestionType.SINGLE_CHOICE
    question_label = "Single-choice"
    draft_schema = ChoiceDraft
    question_schema = SingleChoiceQuestion
    guidelines = [
        "Language: Chinese.",
        BODY_GUIDELINE,
        "Options: Provide four options labeled A, B, C, and D, with one correct answer and three distractors.",
        "Answer: Indicate the correct answer by specifying the corresponding option (A, B, C, or D).",
        DIFFICULTY_GUIDELINE,
        "Explanation: Provide a clear and concise explanation of the correct answer, helping students understand "
        "why the answer is correct and why the other options are incorrect.",
        EXTREME_TERMS_GUIDELINE,
        *COMMON_TAIL,
    ]


class GraphMultipleChoicesAgent(GraphQuestionAgent):
    question_type = QuestionType.MULTIPLE_CHOICES
    question_label = "Multiple-choice"
    draft_schema = ChoiceDraft
    question_schema = MultipleChoiceQuestion
    guidelines = [
        "Language: Must be in Chinese.",
        BODY_GUIDELINE,
        "Options: Provide four options labeled A, B, C, and D, with at least two correct answer and other distractors.",
        "Answer: Indicate the correct answer by specifying the corresponding option (A, B, C, or D).",
        DIFFICULTY_GUIDELINE,
        "Explanation: Provide a clear and concise explanation of these correct answer, helping students understand "
        "why the answer is correct and why the other options are incorrect.",
        EXTREME_TERMS_GUIDELINE,
        *COMMON_TAIL,
    ]


class GraphShortAnswerAgent(GraphQuestionAgent):
    question_type = QuestionType.SHORT_ANSWER
    question_label = "short-answer"
    draft_schema = ShortAnswerDraft
    question_schema = GraphShortAnswerQuestion
    guidelines = [
        "Language: Must be in Chinese.",
        BODY_GUIDELINE,
        DIFFICULTY_GUIDELINE,
        "Explanation: Provide a clear and concise explanation of this question that includes the key points that "
        "should be present in a complete answer. List the specific elements that would constitute a correct and "
        "complete response.",
        *COMMON_TAIL,
    ]


class GraphQuestionWorkflow:
    """START → get_graph → (난이도 3 x 유형 3) 팬아웃 → output_questions → END"""

    def __init__(self, llm: BaseChatModel, graph_store: KnowledgeGraphStore):
        self.llm = llm
        self.graph_store = graph_store
        self.generators = {
            generator.question_type.value: generator
            for generator in (GraphSingleChoiceAgent(llm), GraphMultipleChoicesAgent(llm), GraphShortAnswerAgent(llm))
        }
        self.workflow = self._build_workflow()

    async def _get_graph(self, state: GraphQuestionState) -> Dict[str, Any]:
        graph_data = await self.graph_store.query_question_paths(state["input"])
        return {"graph_data": graph_data}

    def _route_questions(self, state: GraphQuestionState) -> List[Send]:
        """난이도마다 모든 문제 유형 노드로 Send (난이도 순서 유지)"""
        user = state.get("user_data") or {}
        sends = []
        for level in DIFFICULTY_LEVELS:
            instructions = build_level_instructions(level, state.get("input") or "", user)
            for node_name in self.generators:
                sends.append(Send(node_name, {
                    "instructions": instructions,
                    "descriptions": state.get("descriptions") or "",
                    "graph_data": state.get("graph_data") or "",
                }))
        logger.info(f"Dispatching {len(sends)} graph question tasks")
        return sends

    async def _output_questions(self, state: GraphQuestionState) -> Dict[str, Any]:
        return {"output": list(state.get("questions") or [])}

    def _build_workflow(self):
        workflow = StateGraph(GraphQuestionState)

        workflow.add_node("get_graph", self._get_graph)
        for node_name, generator in self.generators.items():
            workflow.add_node(node_name, generator.execute)
        workflow.add_node(OUTPUT_NODE, self._output_questions)

        workflow.add_edge(START, "get_graph")
        workflow.add_conditional_edges("get_graph", self._route_questions, list(self.generators))
        for node_name in self.generators:
            workflow.add_edge(node_name, OUTPUT_NODE)
        workflow.add_edge(OUTPUT_NODE, END)

        return workflow.compile()

    async def generate(
        self,
        topic: str,
        descriptions: str = "",
        user_data: Optional[StudentProfile] = None
    ) -> List[Dict[str, Any]]:
        """주제 하나로 9문제 생성 (어느 노드든 실패하면 예외 전파)"""
        final_state = await self.workflow.ainvoke({
            "input": topic,
            "descriptions": descriptions,
            "user_data": user_data or {},
        })
        return final_state.get("output") or []
