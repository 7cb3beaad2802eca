"""
Data Synthesis Workflow - 교재 청크별 문답/사고과정 데이터 생성 (청크 단위 팬아웃)
"""
from typing import Annotated, Any, Dict, List, TypedDict
import operator
import logging

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langgraph.graph import StateGraph, START, END
from langgraph.types import Send
from pydantic import BaseModel, Field

from servers.clients.textbook_search import SupabaseAuth, TextbookSearchClient
from servers.exam_agents.base_agent import BaseAgent

logger = logging.getLogger(__name__)

SEARCH_TOP_K = 3
SEARCH_EXT_K = 2


class ChunkAnalysisItem(BaseModel):
    question: str = Field(description="问题内容与支撑材料")
    response: str = Field(description="详细解答与明确结论")
    chain_of_thought: str = Field(description="思考过程以及用于分析的材料")


class ChunkAnalysis(BaseModel):
    analysis: List[ChunkAnalysisItem]


class DataSynthesisState(TypedDict, total=False):
    input: str
    supabase_auth: SupabaseAuth
    textbook_chunks: List[Dict[str, Any]]
    chunk_content: str
    chunk_analysis: Annotated[List[Dict[str, Any]], operator.add]


class ChunkAnalyzerAgent(BaseAgent):
    """교재 청크 하나를 교수 관점의 문답 데이터로 변환"""

    SYSTEM_PROMPT = """请以一位资深教授的角度，基于所提供的教材内容，完成以下三个任务。所有解释、分析和思考过程均以中文输出。
1.明确以下教材内容中所有的教学目标、教学重点和教学难点（尽可能覆盖全面），并以完整的学术问题形式提出。每个问题的表述需涵盖核心概念，并强调“反应机理、影响因素及其在环境工程中的应用”三方面内容（如适用）。同时，为每个问题提供支撑材料（如案例、数据、理论依据、相关文献等）。
2.针对第一步中提出的每个问题，结合教材内容进行详细解答并给出明确结论。回答内容需尽可能详细、全面且准确。
-思考过程需层层递进，明确问题的背景、核心原理、分析方法、数据支持、计算方式（若适用）以及现实应用。
-使用系统性的推理方式（如因果分析、数理推导、对比分析等）来组织答案，而不仅是总结教材内容。
3.对于每个教学目标、教学重点和教学难点，根据提供内容完整阐述你的思考过程（chain-of-thought），重点强调如何科学、系统地思考和分析问题。具体要求如下：
-明确问题的认知路径：从问题的背景入手，分析其学术价值或实际意义，并拆解为子问题。
-建立逻辑推理链：围绕问题，依次思考核心概念、影响因素、适用条件及其内在联系。
-提供完整支撑材料，而非简单总结教材内容（数据以表格展示，计算方式以完整公式表述，案例以详细描述呈现，而非仅提供来源）。"""

    async def execute(self, state: Dict[str, Any]) -> Dict[str, Any]:
        response = await self.call_structured(ChunkAnalysis, [
            SystemMessage(content=self.SYSTEM_PROMPT),
            HumanMessage(content=state.get("chunk_content") or ""),
        ])
        return {"chunk_analysis": [item.model_dump() for item in response.analysis]}


class DataSynthesisWorkflow:
    """search_textbooks → (청크별 Send) analyze_chunk → END"""

    def __init__(self, llm: BaseChatModel, search_client: TextbookSearchClient):
        # llm은 temperature=0 으로 생성된 모델
        self.analyzer = ChunkAnalyzerAgent(llm)
        self.search_client = search_client
        self.workflow = self._build_workflow()

    async def _search_textbooks(self, state: DataSynthesisState) -> Dict[str, Any]:
        chunks = await self.search_client.search(
            state["input"], state["supabase_auth"], top_k=SEARCH_TOP_K, ext_k=SEARCH_EXT_K
        )
        logger.info(f"Textbook search returned {len(chunks or [])} chunks")
        return {"textbook_chunks": chunks or []}

    def _route_chunks(self, state: DataSynthesisState) -> List[Send]:
        return [
            Send("analyze_chunk", {"chunk_content": chunk.get("content", "")})
            for chunk in state.get("textbook_chunks") or []
        ]

    def _build_workflow(self):
        workflow = StateGraph(DataSynthesisState)
        workflow.add_node("search_textbooks", self._search_textbooks)
        workflow.add_node("analyze_chunk", self.analyzer.execute)
        workflow.add_edge(START, "search_textbooks")
        workflow.add_conditional_edges("search_textbooks", self._route_chunks, ["analyze_chunk"])
        workflow.add_edge("analyze_chunk", END)
        return workflow.compile()

    async def synthesize(self, query: str, auth: SupabaseAuth) -> List[Dict[str, Any]]:
        final_state = await self.workflow.ainvoke({
            "input": query,
            "supabase_auth": auth,
            "chunk_analysis": [],
        })
        return final_state.get("chunk_analysis") or []
