"""
Learning Path Workflow - 지식 그래프 + 교재 + 학생 정보로 선형 학습 경로 생성
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


class PathText(BaseModel):
    path: str = Field(description="知识点顺序学习列表，从初始知识点到最终知识点,用->分隔")


class PathList(BaseModel):
    path: List[str] = Field(description="知识点顺序学习列表")


class LearningPathState(TypedDict, total=False):
    content: str
    supabase_auth: SupabaseAuth
    user_data: StudentProfile
    graph_data: str
    ref_data: str
    portrait_data: str
    path_data: Any


def format_portrait_request(user: StudentProfile) -> str:
    history = user.get("history")
    return f"""学生情况：
-年级（用于判断学习阶段和相应需求）：{user.get("grade") or ""}，
-之前专业（仅适用于硕士/博士生，否则为空）：{user.get("major") or "无"}，
-专业背景（用于评估其学科基础）：{user.get("major_background") or ""}，
-掌握程度（用于衡量知识熟练度）：{user.get("grasp_level") or ""}，
-过往提出的问题（用于分析其关注点和可能的知识盲区）：{", ".join(history) if history else "无"}。"""


class LearningPathAgent(BaseAgent):
    """학습 경로 그래프의 LLM 단계 모음"""

    def __init__(self, llm: BaseChatModel, graph_store: KnowledgeGraphStore, search_client: TextbookSearchClient):
        super().__init__(llm)
        self.graph_store = graph_store
        self.search_client = search_client

    async def _invoke_text(self, messages: list) -> str:
        response = await self.llm.ainvoke(messages)
        return response.content if isinstance(response.content, str) else str(response.content)

    async def get_graph(self, state: LearningPathState) -> Dict[str, Any]:
        graph_data = await self.graph_store.query_concept_paths(state["content"])
        return {"graph_data": graph_data}

    async def get_refs(self, state: LearningPathState) -> Dict[str, Any]:
        chunks = await self.search_client.search(
            state["content"], state["supabase_auth"], top_k=REFS_TOP_K, ext_k=REFS_EXT_K
        )
        joined = "\n".join(chunk.get("content") or "" for chunk in chunks or [] if isinstance(chunk, dict))
        summary = await self._invoke_text([
            AIMessage(content=(
                "你是一位专业的教育内容分析助手。你的任务是分析教材内容，"
                f"围绕用户提出的问题或主题\"{state['content']}\"，识别并总结需要掌握的关键知识点，给出一段简洁明了的知识总结。"
            )),
            HumanMessage(content=joined or str(chunks or "无")),
        ])
        return {"ref_data": summary}

    async def get_portrait(self, state: LearningPathState) -> Dict[str, Any]:
        portrait = await self._invoke_text([
            AIMessage(content=(
                "你是一位专业的教育分析助手。你的任务是基于学生信息进行用户画像分析，"
                "概括学生的知识掌握情况以及学习关注点与需求（不需要给出建议），确保信息全面但简洁明了。"
            )),
            HumanMessage(content=format_portrait_request(state.get("user_data") or {})),
        ])
        return {"portrait_data": portrait}

    async def get_knowledge(self, state: LearningPathState) -> Dict[str, Any]:
        knowledge = await self._invoke_text([
            AIMessage(content=(
                f"你是一位智能学习顾问，负责根据学生提出的问题（{state.get('content') or '无'}），"
                "请根据知识点总结，对初始知识体系进行优化。你需要识别并去除与问题关联性小、过于细化可以合并的冗余点以及与教材内容和事实相悖的知识点。"
                "最终给出一个合理的知识体系（知识点列表及其相互关系），用“->”表示先后关系。"
            )),
            HumanMessage(content=f"以下是从Neo4j数据库提取的初始知识体系（初始知识点列表及其相互关系）：{state.get('graph_data') or '无'}。"),
            HumanMessage(content=f"以下是主要知识点总结：{state.get('ref_data') or '无'}。"),
        ])
        return {"graph_data": knowledge}

    async def execute(self, state: LearningPathState) -> Dict[str, Any]:
        """경로 설계 단계 (get_path 노드): 지식 체계와 학생 특성으로 '->' 구분 경로 생성"""
        result = await self.call_structured(PathText, [
            AIMessage(content=f"""你是一位专业的学习路径规划专家，你的任务是基于学生当前水平，生成最简可行的学习路径。请严格按照以下要求进行分析和输出：
1. 分析学习需求：结合学生的问题（{state.get('content') or '无'}）及学习特点，明确需要掌握的关键知识点。
2. 识别关键知识点：结合提供的知识体系，提炼最核心的知识点（如形成过程、生物与化学性质、资源化利用相关要点、必要的基础化学与材料科学知识等）。
3. 构建线性学习路径：
- 严格遵循知识点的逻辑依赖关系（A→B 表示必须先掌握A，才能理解B）。
- 仅保留最核心的知识点，避免冗余，确保路径最短且最有效。
- 输出格式必须为严格的线性序列，即 A→B→C→D，不能出现并列项（如 A→B 且 A→C）。
- 知识点表述必须简洁明了，避免冗长的解释，同时也避免过于笼统的表述（如“基础概念”），直接给出核心内容。
- 不需要过多强调学生背景与实践应用，除非直接影响学习路径的设计。
- 不需要考虑学术交流、数据建模等能力提升、跨学科研究方法、总结与展望等无关且没有实际内容的知识点。
4. 最终输出格式：
- 仅输出的学习路径应为知识点顺序学习列表，从初始知识点到最终知识点，用“->”分隔,示例：基础化学知识→矿物化学（硅酸盐及其活性成分）→ 煤矸石的形成→煤矸石的化学组分→煤矸石的活性因素→资源化利用方法->矿物回收->建筑材料应用。
- 不需要给出其他描述性语言。"""),
            HumanMessage(content=f"知识体系：{state.get('graph_data') or '无'}"),
            HumanMessage(content=f"学生学习特点与需求:{state.get('portrait_data') or '无'}。"),
        ])
        return {"path_data": result.path}

    async def refine_path(self, state: LearningPathState) -> Dict[str, Any]:
        result = await self.call_structured(PathList, [
            AIMessage(content=(
                "将设计好的学习路径（'->'分隔）中的每个环节（要求：只保留文字语义内容；不要保留序号）重新用顺序列表表示。按照以下要求进行适当优化：\n"
                "- 知识点（必须是名词，不需要掌握、理解、了解等动词描述）表述必须简洁明了，避免冗长的解释，"
                "同时也避免过于笼统的表述（如“基础概念”、“研究进展”、“技术应用”），直接给出核心内容。"
            )),
            HumanMessage(content=f"学习路径：{state.get('path_data') or '无'}"),
        ])
        self.log_debug(f"Refined path with {len(result.path)} steps")
        return {"path_data": result.path}

    async def output_path(self, state: LearningPathState) -> Dict[str, Any]:
        nodes = await self.graph_store.merge_concepts(list(state.get("path_data") or []))
        return {"path_data": nodes}


class LearningPathWorkflow:
    """START → get_graph | get_refs | get_portrait → get_knowledge → get_path → refine_path → output_path → END"""

    def __init__(
        self,
        llm: BaseChatModel,
        graph_store: KnowledgeGraphStore,
        search_client: TextbookSearchClient
    ):
        self.agent = LearningPathAgent(llm, graph_store, search_client)
        self.workflow = self._build_workflow()

    def _build_workflow(self):
        workflow = StateGraph(LearningPathState)

        workflow.add_node("get_graph", self.agent.get_graph)
        workflow.add_node("get_refs", self.agent.get_refs)
        workflow.add_node("get_portrait", self.agent.get_portrait)
        workflow.add_node("get_knowledge", self.agent.get_knowledge)
        workflow.add_node("get_path", self.agent.execute)
        workflow.add_node("refine_path", self.agent.refine_path)
        workflow.add_node("output_path", self.agent.output_path)

        for node_name in ("get_graph", "get_refs", "get_portrait"):
            workflow.add_edge(START, node_name)
        # 세 입력 단계가 모두 끝난 뒤 한 번만 실행
        workflow.add_edge(["get_graph", "get_refs", "get_portrait"], "get_knowledge")
        workflow.add_edge("get_knowledge", "get_path")
        workflow.add_edge("get_path", "refine_path")
        workflow.add_edge("refine_path", "output_path")
        workflow.add_edge("output_path", END)

        return workflow.compile()

    async def generate_path(
        self,
        content: str,
        auth: SupabaseAuth,
        user_data: Optional[StudentProfile] = None
    ) -> List[Dict[str, str]]:
        final_state = await self.workflow.ainvoke({
            "content": content,
            "supabase_auth": auth,
            "user_data": user_data or {},
        })
        return final_state["path_data"]
