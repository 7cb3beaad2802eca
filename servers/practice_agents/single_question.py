"""
Single Question Workflow - 지식점 설명과 출제 이력으로 중복 없는 선택형 문제 1개 생성
"""
from typing import Any, Dict, List, Optional, Type, TypedDict

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langgraph.graph import StateGraph, START, END
from pydantic import BaseModel, Field

from servers.exam_agents.base_agent import BaseAgent
from servers.exam_agents.question_generators import OptionItem, OptionKey
from servers.exam_agents.state import QUESTION_TYPE_LABEL, QUESTION_TYPE_PROBLEM_TYPE, QuestionType

SINGLE_CHOICE_TYPE = 1


class QuestionHistoryItem(TypedDict, total=False):
    question: str
    complete: str


class SingleQuestionState(TypedDict, total=False):
    knowledge_point: str
    knowledge_descriptions: str
    question_history: List[QuestionHistoryItem]
    question_type: int
    difficulty: Optional[int]
    output: Dict[str, Any]


class SingleChoiceBody(BaseModel):
    Body: str = Field(description="Only the question body, dont include the options and also other information.")
    Options: List[OptionItem]
    Answer: List[OptionKey] = Field(description="One correct answer to this question")
    Remark: str = Field(description="explanation of the answer")


class MultipleChoiceBody(BaseModel):
    Body: str = Field(description="Only the question body, dont include the options and also other information")
    Options: List[OptionItem]
    Answer: List[OptionKey] = Field(description="A set of correct answers to this question")
    Remark: str = Field(description="explanation of the answer")


def route_question_type(state: SingleQuestionState) -> str:
    """설명이 있고 question_type == 1 일 때만 단일 선택, 나머지는 다중 선택"""
    if state.get("knowledge_descriptions") and state.get("question_type") == SINGLE_CHOICE_TYPE:
        return QuestionType.SINGLE_CHOICE.value
    return QuestionType.MULTIPLE_CHOICES.value


def format_question_history(history: Optional[List[QuestionHistoryItem]]) -> str:
    return "\n ".join(item.get("question") or "" for item in history or [] if isinstance(item, dict))


class SingleQuestionAgent(BaseAgent):
    """유형별 시스템 지시문과 초안 스키마만 다른 단일 문제 생성기"""

    question_type: QuestionType
    # 출력 Type 값 (노드 이름과 다를 수 있음)
    type_name: str
    draft_schema: Type[BaseModel]
    system_prompt: str = ""

    async def execute(self, state: SingleQuestionState) -> Dict[str, Any]:
        draft = await self.call_structured(self.draft_schema, [
            SystemMessage(content=self.system_prompt.format(knowledge_point=state.get("knowledge_point") or "")),
            HumanMessage(content=f"Knowledge descriptions: {state.get('knowledge_descriptions') or ''}"),
            HumanMessage(content=f"Question history: {format_question_history(state.get('question_history'))}"),
        ])

        output = draft.model_dump()
        output.update({
            "Type": self.type_name,
            "TypeText": QUESTION_TYPE_LABEL[self.question_type],
            "Difficulty": state.get("difficulty"),
            "ProblemType": QUESTION_TYPE_PROBLEM_TYPE[self.question_type],
        })
        self.log_debug(f"{self.question_type.value} generated for {state.get('knowledge_point')!r}")
        return {"output": output}


class SingleChoiceQuestionAgent(SingleQuestionAgent):
    question_type = QuestionType.SINGLE_CHOICE
    type_name = "SingleChoice"
    draft_schema = SingleChoiceBody
    system_prompt = """According to the given knowledge descriptions, generate a Single-choice question related to '{knowledge_point}' with the following guidelines:
- Language: Chinese.
- Question body: The question should focus on core concepts or key facts that require the user to recall and apply the information.
- Question options: Provide four options labeled A, B, C, and D, with one correct answer and three distractors. Distractors should be plausible but incorrect, requiring careful consideration to identify the correct answer.
- Answer: Indicate the correct answer by specifying the corresponding option (A, B, C, or D).
- Explanation: Provide a clear and concise explanation of the correct answer, helping students understand why the answer is correct and why the other options are incorrect.
- Avoid extreme terms: Do not include extreme terms like “always” or “never” in the options, as they are easily ruled out by students.
- Question clarity: The question should be clear and concise, ensuring students can easily understand what is being asked.
- Knowledge alignment: Do not extend beyond the provided knowledge, strictly base questions only on the information given in the knowledge descriptions, without adding external knowledge or concepts.
- Question uniqueness: Do not repeat questions that have been asked before. Review the question history and ensure the new question is different from previous ones."""


class MultipleChoiceQuestionAgent(SingleQuestionAgent):
    question_type = QuestionType.MULTIPLE_CHOICES
    type_name = "MultipleChoice"
    draft_schema = MultipleChoiceBody
    system_prompt = """Generate a Multiple-choice question (Focus on higher-order thinking skills rather than basic comprehension of knowledge descriptions) related to '{knowledge_point}' with the following guidelines:
- Language: Must be in Chinese.
- Question body: The question should focus on core concepts or key facts that require the user to recall and apply the information.
- Question options: Provide four options labeled A, B, C, and D, with at least two correct answer and other distractors. Ensure distractors are sophisticated distractors that: draw from related but distinct concepts, represent common student errors in reasoning, include elements that might be true in different contexts, and require domain knowledge to identify as incorrect.
- Answer: Indicate the correct answer by specifying the corresponding option (A, B, C, or D).
- Explanation: Provide a clear and concise explanation of these correct answer, helping students understand why the answer is correct and why the other options are incorrect.
- Avoid extreme terms: Do not include extreme terms like “always”, "only", "just" or “never” in the options, as they are easily ruled out by students.
- Question uniqueness: Do not repeat questions that have been asked before. Review the question history and ensure the new question is different from previous ones.
- Question clarity: The question should be clear and concise, ensuring students can easily understand what is being asked.
- Question complexity: Design questions that:
  * Involve multi-step reasoning
  * Require integration of different knowledge areas
  * Test understanding of cause-and-effect relationships
  * Challenge common misconceptions
- Knowledge extension: While using the provided knowledge descriptions as foundation, extend to:
  * Real-world applications and case studies
  * Cross-disciplinary connections
  * Contemporary developments and trends
  * Practical implications and problem-solving scenarios."""


class SingleQuestionWorkflow:
    """START → (SingleChoice | MultipleChoices) → END"""

    def __init__(self, llm: BaseChatModel, multiple_choice_llm: Optional[BaseChatModel] = None):
        self.single_choice = SingleChoiceQuestionAgent(llm)
        self.multiple_choice = MultipleChoiceQuestionAgent(multiple_choice_llm or llm)
        self.workflow = self._build_workflow()

    def _build_workflow(self):
        workflow = StateGraph(SingleQuestionState)

        nodes = {
            QuestionType.SINGLE_CHOICE.value: self.single_choice,
            QuestionType.MULTIPLE_CHOICES.value: self.multiple_choice,
        }
        for node_name, agent in nodes.items():
            workflow.add_node(node_name, agent.execute)
            workflow.add_edge(node_name, END)
        workflow.add_conditional_edges(START, route_question_type, list(nodes))

        return workflow.compile()

    async def generate(
        self,
        knowledge_point: str,
        knowledge_descriptions: str = "",
        question_history: Optional[List[QuestionHistoryItem]] = None,
        question_type: int = SINGLE_CHOICE_TYPE,
        difficulty: Optional[int] = None
    ) -> Dict[str, Any]:
        final_state = await self.workflow.ainvoke({
            "knowledge_point": knowledge_point,
            "knowledge_descriptions": knowledge_descriptions,
            "question_history": question_history or [],
            "question_type": question_type,
            "difficulty": difficulty,
        })
        return final_state["output"]
