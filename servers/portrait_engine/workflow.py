"""
학생 포트레이트 워크플로우 - 과정 평가 + 결과물 평가 → 종합 포트레이트 → Markdown
"""
from typing import Annotated, Any, Dict, List, Optional, TypedDict
import asyncio
import json
import logging
import operator
import re

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langgraph.graph import StateGraph, START, END

from servers.exam_agents.base_agent import BaseAgent
from .artifacts import ArtifactAnalyzer
from .plan_summary import build_plan_summary, format_student_info, truncate_text
from .schemas import (
    ArtifactAnalysis,
    PerformanceAssessment,
    PortraitMarkdown,
    PortraitOverview,
    ProcessAssessment,
    StudentPortrait,
)
from .storage import PortraitStorage

logger = logging.getLogger(__name__)

EMPTY_PORTRAIT_MARKDOWN = "# 学生学习画像\n\n暂无画像结果。"
_ABORT_PATTERN = re.compile(r"abort|timeout|timed out", re.IGNORECASE)


class PerformanceAssessmentError(RuntimeError):
    pass


class PortraitState(TypedDict, total=False):
    # 입력
    theme: str
    student_info: Dict[str, Any]
    plan_detail: List[Dict[str, Any]]
    final_artifacts: List[str]

    # 로컬 생성
    plan_summary: str
    artifact_analysis: Annotated[List[ArtifactAnalysis], operator.add]
    artifact_summary: str

    # LLM 생성
    process_assessment: ProcessAssessment
    performance_assessment: PerformanceAssessment
    portrait: StudentPortrait
    portrait_markdown: str


def is_aborted_error(error: BaseException) -> bool:
    if isinstance(error, (asyncio.TimeoutError, asyncio.CancelledError)):
        return True
    return bool(_ABORT_PATTERN.search(f"{type(error).__name__} {error}"))


class ProcessAssessorAgent(BaseAgent):
    """학습 과정 평가 (지식 구조, 숙달/안정성/전이, 다음 단계)"""

    SYSTEM_PROMPT = """你是一位具备教育测评与学习科学背景的教学诊断专家。请根据提供的学习计划、答题表现与互动记录，输出过程考查（process_assessment）结论，并严格遵循给定的 JSON schema。使用时先阅读摘要把握全局指标，再结合 JSON 证据补充细节。需要：
1. 针对知识体系中每个节点梳理掌握度、优势、问题、改进行动与证据；
2. 对掌握度、稳定性、迁移度三大维度给出等级判定、解释及支撑证据（如有波动或迁移不足需列出）；
3. 明确下一步的重点与练习建议（面向学生，避免“监控指标”“常规动作”等表述）；
4. 给出沟通要点或风险提示（聚焦可执行的短期行动，不涉及“长期监测”“研究跟进”）；
5. 结合学习投入、完成度、互动与反思等证据，按照提供的评分等级表计算过程考查的 total_score（0-100）与 grade（A-E），并说明评分依据与关键证据。
请只基于提供的数据，不得臆造。
注意：避免使用“子节点”“母节点”等术语；如需表达层级关系，请使用“知识点”“主题”“分项”等中性表述。"""

    GRADING_TABLE = """过程考查评分等级说明:
| 等级 | 分数区间 | 特征描述 |
| --- | --- | --- |
| A | 90-100 | 全程积极投入，学习频率高；能自主查找资料，知识掌握稳步提升；与同伴交流频繁，反思深刻、具有独立见解。 |
| B | 80-89 | 学习态度认真，完成任务及时；掌握水平有明显提升；能主动参与讨论并做出反思。 |
| C | 70-79 | 学习投入较稳定，能按要求完成任务；有一定提升但不显著；反思简单、合作有限。 |
| D | 60-69 | 学习积极性不足；任务常延迟或流于形式；进步缓慢或波动大；反思浅显。 |
| E | <60 | 学习参与度低，任务缺失严重；无明显成长；缺乏合作与反思。 |
请据此确定 total_score 与 grade，并在 interpretation 中写清判定理由。"""

    async def execute(self, state: PortraitState) -> Dict[str, Any]:
        assessment = await self.call_structured(ProcessAssessment, [
            SystemMessage(content=self.SYSTEM_PROMPT),
            HumanMessage(content=f"学习主题或课程: {state.get('theme') or '未提供'}"),
            HumanMessage(content=f"学生基础信息:\n{format_student_info(state.get('student_info'))}"),
            HumanMessage(content=(
                "学习计划与作答摘要（仅呈现全局指标与趋势，供你把握整体水平）:\n"
                f"{truncate_text(state.get('plan_summary') or '') or '无'}"
            )),
            HumanMessage(content=self.GRADING_TABLE),
        ])
        return {"process_assessment": assessment}


class PerformanceAssessorAgent(BaseAgent):
    """최종 작품 평가 (4개 차원 점수)"""

    SYSTEM_PROMPT = """你是一位擅长表现性评价的教学测评专家。请基于提供的作品解析数据，输出最终表现（performance_assessment）结论，并严格遵循给定的 JSON schema。先参考摘要掌握整体评分走向，再用 JSON 证据支撑细节描述。
要求：
1. 对每件作品在“内容质量、思维与创新、表达与呈现、规范与反思”四个维度分别给出 0-100 分的量化评分、等级（A-E）与评语；
2. 结合证据列出作品亮点、问题、改进行动与支撑证据；
3. 给出整体总结和面向学生的短期改进行动建议（避免“长期监测”“研究跟进”等表述）；
4. 严格依据数据，不得编造；
5. 依据评分等级表计算最终表现的 overall_score（total_score、grade、interpretation），明确综合得分与判定理由。
评分需参考以下等级说明：
| 等级 | 分数区间 | 特征描述 |
| --- | --- | --- |
| A | 90-100 | 逻辑严密、内容深入、创新显著、表达专业，具研究价值 |
| B | 80-89 | 内容扎实、思路清晰、略有创新、表达规范 |
| C | 70-79 | 内容基本正确、表达一般、创新性不足 |
| D | 60-69 | 存在明显逻辑或内容缺陷，表达欠清晰 |
| E | <60 | 内容错误多、结构混乱或可疑抄袭 |"""

    async def execute(self, state: PortraitState) -> Dict[str, Any]:
        artifact_summary = truncate_text(state.get("artifact_summary") or "")
        try:
            assessment = await self.call_structured(PerformanceAssessment, [
                SystemMessage(content=self.SYSTEM_PROMPT),
                HumanMessage(content=f"学习主题或课程: {state.get('theme') or '未提供'}"),
                HumanMessage(content=f"学生基础信息:\n{format_student_info(state.get('student_info'))}"),
                HumanMessage(content=(
                    "最终作品解析摘要（全局评分与总体结论，帮助你抓住宏观表现）:\n"
                    f"{artifact_summary or '无'}"
                )),
            ])
        except Exception as e:
            if is_aborted_error(e):
                raise PerformanceAssessmentError(
                    "assess_performance 被中断（aborted）。常见原因：\n"
                    "- OpenAI 请求超时或被取消（可设置环境变量 OPENAI_TIMEOUT_MS 增大超时）；\n"
                    "- 上下文过长导致请求过大（已做保护性截断，仍建议减少作品解析长度/数量）；\n"
                    "- 短时网络中断或对端关闭连接。\n"
                    f"原始错误：{e}"
                ) from e
            raise PerformanceAssessmentError(f"assess_performance 调用失败：{e}") from e

        return {"performance_assessment": assessment}


class PortraitComposerAgent(BaseAgent):
    """두 평가를 종합한 개요 생성"""

    SYSTEM_PROMPT = (
        "你是一位教学诊断专家。请基于提供的过程考查与最终表现结论，提炼一句概括学生当前水平、一句指出关键优势、"
        "一句强调优先改进方向，共 2-3 句话，严格返回 JSON。不得引入原数据之外的假设。"
    )

    async def execute(self, state: PortraitState) -> Dict[str, Any]:
        process = state.get("process_assessment")
        performance = state.get("performance_assessment")
        if not process or not performance:
            return {}

        payload = json.dumps({
            "theme": state.get("theme") or "未提供",
            "student_profile": format_student_info(state.get("student_info")),
            "process_assessment": process.model_dump(),
            "performance_assessment": performance.model_dump(),
        }, ensure_ascii=False)

        result = await self.call_structured(PortraitOverview, [
            SystemMessage(content=self.SYSTEM_PROMPT),
            HumanMessage(content=payload),
        ])

        return {"portrait": StudentPortrait(
            overview=result.overview,
            process_assessment=process,
            performance_assessment=performance,
        )}


class MarkdownRendererAgent(BaseAgent):
    """포트레이트를 학생용 Markdown으로 정리하고 업로드"""

    SYSTEM_PROMPT = """你是一位教学诊断专家，需要把既定的学生画像内容排版为 Markdown。请严格基于输入 JSON，保持事实一致，输出对象 { "markdown": string }。Markdown 必须包含三个部分：
- “总体概览”：用 2-3 句话概述 portrait.overview 要点，并用自然语言给出两项评分及等级。例如：“过程性评分：85 分（等级 B）；表现性评分：88 分（等级 B）。”同时补充学生的学习目标或阶段性意向（若输入可支持），并给出基于事实的简短肯定性描述（如坚持、改进意愿、优势表现等，不可臆测）。不要在文本中出现任何字段名或路径（如 process_assessment.score.total_score、performance_assessment.overall_score 等），不要出现“=”“:”这类程序化标注。若某项数据缺失，仅写“未提供”。
- “成绩与解读”：围绕过程考查与最终表现的关键结论/问题方向进行分点说明，覆盖掌握度、稳定性、迁移度等主要维度以及最终表现亮点或风险。不要描述“依据/证据来源/数据来源/字段名/schema”等元信息，只呈现客观结论与必要的事实描述。
- “下一步建议”：整合 process_assessment.next_steps（priorities、recommended_practices）与 process_assessment.communication_notes，去重后按逻辑分组列出，聚焦学生可立即执行的有限任务与学习策略；禁止出现任何括注或方法性说明（如“按紧急与带动效应排序”“建议按……进行”），仅输出具体建议与要点。若信息缺失，仅写“未提供”。
其他约束：
- 输出必须为有效的 Markdown 格式，包含标题、列表等结构化元素，便于阅读与理解；
- 严禁输出任何内部变量名、字段路径或 schema 名称；
- 不要使用“依据来源”“证据来源”“输入数据未提供XXX”之类表述；缺失项统一写“未提供”；
- 禁止新增或删除事实，仅可为可读性进行轻微润色（包括去除括号内的排序/方法说明等元语句）；
- 语气客观、中性，允许在事实支撑下作简短肯定性表述；读者为学生，避免“监控指标与常规动作”“长期监测与研究跟进”等表述；
- 避免使用“子节点”“母节点”等术语，如需表达层级关系，用“知识点”“主题”“分项”等中性表述。"""

    def __init__(self, llm: BaseChatModel, storage: PortraitStorage):
        super().__init__(llm)
        self.storage = storage

    async def execute(self, state: PortraitState) -> Dict[str, Any]:
        portrait = state.get("portrait")
        if not portrait:
            return {"portrait_markdown": EMPTY_PORTRAIT_MARKDOWN}

        payload = json.dumps({
            "theme": state.get("theme") or "未提供",
            "student_profile": format_student_info(state.get("student_info")),
            "overview": portrait.overview,
            "process_assessment": portrait.process_assessment.model_dump(),
            "performance_assessment": portrait.performance_assessment.model_dump(),
        }, ensure_ascii=False)

        result = await self.call_structured(PortraitMarkdown, [
            SystemMessage(content=self.SYSTEM_PROMPT),
            HumanMessage(content=payload),
        ])

        await self.storage.upload_markdown(result.markdown, state.get("student_info"))
        return {"portrait_markdown": result.markdown}


class StudentPortraitWorkflow:
    """
    START → summarize_plan_detail | analyze_artifacts
          → assess_process / assess_performance → generate_portrait → render_markdown → END
    """

    def __init__(
        self,
        llm: BaseChatModel,
        artifact_analyzer: ArtifactAnalyzer,
        storage: PortraitStorage,
        performance_llm: Optional[BaseChatModel] = None,
        markdown_llm: Optional[BaseChatModel] = None
    ):
        self.artifact_analyzer = artifact_analyzer
        self.process_assessor = ProcessAssessorAgent(llm)
        self.performance_assessor = PerformanceAssessorAgent(performance_llm or llm)
        self.composer = PortraitComposerAgent(llm)
        self.renderer = MarkdownRendererAgent(markdown_llm or llm, storage)
        self.workflow = self._build_workflow()

    async def _summarize_plan_detail(self, state: PortraitState) -> Dict[str, Any]:
        return {"plan_summary": build_plan_summary(state.get("plan_detail"))}

    async def _analyze_artifacts(self, state: PortraitState) -> Dict[str, Any]:
        return await self.artifact_analyzer.analyze(state.get("final_artifacts") or [])

    def _build_workflow(self):
        workflow = StateGraph(PortraitState)

        workflow.add_node("summarize_plan_detail", self._summarize_plan_detail)
        workflow.add_node("analyze_artifacts", self._analyze_artifacts)
        workflow.add_node("assess_process", self.process_assessor.execute)
        workflow.add_node("assess_performance", self.performance_assessor.execute)
        workflow.add_node("generate_portrait", self.composer.execute)
        workflow.add_node("render_markdown", self.renderer.execute)

        workflow.add_edge(START, "summarize_plan_detail")
        workflow.add_edge(START, "analyze_artifacts")
        workflow.add_edge("summarize_plan_detail", "assess_process")
        workflow.add_edge("analyze_artifacts", "assess_performance")
        # 두 평가가 모두 끝난 뒤 한 번만 실행
        workflow.add_edge(["assess_process", "assess_performance"], "generate_portrait")
        workflow.add_edge("generate_portrait", "render_markdown")
        workflow.add_edge("render_markdown", END)

        return workflow.compile()

    async def generate_portrait(
        self,
        theme: str,
        student_info: Optional[Dict[str, Any]] = None,
        plan_detail: Optional[List[Dict[str, Any]]] = None,
        final_artifacts: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        final_state = await self.workflow.ainvoke({
            "theme": theme,
            "student_info": student_info or {},
            "plan_detail": plan_detail or [],
            "final_artifacts": final_artifacts or [],
            "artifact_analysis": [],
        })
        portrait = final_state.get("portrait")
        return {
            "portrait": portrait.model_dump() if portrait else None,
            "portrait_markdown": final_state.get("portrait_markdown") or EMPTY_PORTRAIT_MARKDOWN,
        }
