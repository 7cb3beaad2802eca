"""
Sub Path Workflow - 학습 경로의 한 지식점을 하위 개념으로 확장
"""
from typing import Any, Dict, List, Optional, TypedDict

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, HumanMessage
from langgraph.graph import StateGraph, START, END
from pydantic import BaseModel, Field

from servers.clients.graph_store import KnowledgeGraphStore
from servers.clients.textbook_search import SupabaseAuth, TextbookSearchClient
from servers.exam_agents.base_agent import BaseAgent
from servers.exam_agents.state import StudentProfile

REFS_TOP_K = 1
REFS_EXT_K = 2


class RelatedNodes(BaseModel):
    related_nodes: List[str] = Field(description="Related Node Names")


class SubPathState(TypedDict, total=False):
    content: str
    knowledge_point: str
    learning_path: List[Dict[str, str]]
    supabase_auth: SupabaseAuth
    user_data: StudentProfile
    ref_data: Dict[str, Any]
    graph_data: List[str]
    path_data: List[Dict[str, str]]


class SubPathAgent(BaseAgent):
    """지식점 중심 하위 개념 추출"""

    def __init__(self, llm: BaseChatModel, graph_store: KnowledgeGraphStore, search_client: TextbookSearchClient):
        super().__init__(llm)
        self.graph_store = graph_store
        self.search_client = search_client

    async def get_refs(self, state: SubPathState) -> Dict[str, Any]:
        """검색 결과 중 첫 번째 청크만 사용"""
        chunks = await self.search_client.search(
            state["content"] + state["knowledge_point"],
            state["supabase_auth"],
            top_k=REFS_TOP_K,
            ext_k=REFS_EXT_K,
        )
        return {"ref_data": chunks[0] if chunks else {}}

    async def execute(self, state: SubPathState) -> Dict[str, Any]:
        """하위 개념 이름 목록 생성 (지식점 자신은 제외)"""
        knowledge_point = state["knowledge_point"]
        response = await self.call_structured(RelatedNodes, [
            AIMessage(content=f"""Analyze the provided textbook chunks related to "{state['content']}" as reference material to help construct a knowledge structure centered around "{knowledge_point}". While using these materials as guidance, focus on creating a comprehensive and logical knowledge framework. Follow these detailed instructions:
1. Framework Structure:
   - Root Node: The subject, represented by the concise term of "{knowledge_point}".
   - Related Nodes: Identify **only the most essential sub-concepts or components** that are direct constituents of {knowledge_point}.
2. Node Selection Criteria:
   - Exclude tangentially related topics, broader categories, or solution concepts like "技术创新" or "管理方法"
   - Limit results to concrete characteristics rather than applications or management approaches
   - Keep the most critical and specific sub-properties
3. Node Representation:
   - Use concise and specific terms for nodes (e.g., "力的分解" instead of "力的分解概念")
   - Avoid abstract terms like "knowledge modules" in the node names
   - Output Format: Use **Chinese language** for key related node names."""),
            HumanMessage(content=f"Textbook chunks: {(state.get('ref_data') or {}).get('content', '')}."),
        ])
        related = [node for node in response.related_nodes if node != knowledge_point]
        self.log_debug(f"{len(related)} related nodes for {knowledge_point!r}")
        return {"graph_data": related}

    async def return_graph(self, state: SubPathState) -> Dict[str, Any]:
        """노드/관계 병합 후 기존 학습 경로에 없는 노드만 반환"""
        names = state.get("graph_data") or []
        nodes = await self.graph_store.merge_concepts(names)
        existing_ids = {node.get("id") for node in state.get("learning_path") or []}
        await self.graph_store.link_concepts(state["knowledge_point"], names)
        return {"path_data": [node for node in nodes if node["id"] not in existing_ids]}


class SubPathWorkflow:
    """get_refs → get_graph_data → return_graph"""

    def __init__(
        self,
        llm: BaseChatModel,
        graph_store: KnowledgeGraphStore,
        search_client: TextbookSearchClient
    ):
        self.agent = SubPathAgent(llm, graph_store, search_client)
        self.workflow = self._build_workflow()

    def _build_workflow(self):
        workflow = StateGraph(SubPathState)
        workflow.add_node("get_refs", self.agent.get_refs)
        workflow.add_node("get_graph_data", self.agent.execute)
        workflow.add_node("return_graph", self.agent.return_graph)
        workflow.add_edge(START, "get_refs")
        workflow.add_edge("get_refs", "get_graph_data")
        workflow.add_edge("get_graph_data", "return_graph")
        workflow.add_edge("return_graph", END)
        return workflow.compile()

    async def expand(
        self,
        content: str,
        knowledge_point: str,
        learning_path: List[Dict[str, str]],
        auth: SupabaseAuth,
        user_data: Optional[StudentProfile] = None
    ) -> List[Dict[str, str]]:
        final_state = await self.workflow.ainvoke({
            "content": content,
            "knowledge_point": knowledge_point,
            "learning_path": learning_path,
            "supabase_auth": auth,
            "user_data": user_data or {},
        })
        return final_state["path_data"]
