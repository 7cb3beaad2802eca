"""
LangGraph 기반 시험 출제 워크플로우
"""
import os
import re
import json
import logging
from typing import Any, Dict, List, Union
from datetime import datetime

from langchain_core.language_models import BaseChatModel
from langgraph.graph import StateGraph, START, END
from langgraph.types import Send

from config import Config
from .state import ExamState, ProcessingPhase, StudentProfile, create_initial_state, format_student_profile
from .knowledge_summarizer import summarize_knowledge_content
from .exam_planner import ExamPlannerAgent
from .question_router import route_exam_plan
from .question_generators import MultipleChoicesGenerator, ShortAnswerGenerator, SingleChoiceGenerator

logger = logging.getLogger(__name__)

OUTPUT_NODE = "output_questions"

# 진행 파일 이름 그대로 사용 (경로 구분자, "." 불가)
SESSION_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]{1,64}")

PHASE_INFO = {
    ProcessingPhase.KNOWLEDGE_PREPARATION: {"step": 1, "total": 4, "name": "知识结构整理"},
    ProcessingPhase.EXAM_PLANNING: {"step": 2, "total": 4, "name": "命题蓝图设计"},
    ProcessingPhase.QUESTION_GENERATION: {"step": 3, "total": 4, "name": "题目生成"},
    ProcessingPhase.OUTPUT: {"step": 4, "total": 4, "name": "汇总输出"},
    ProcessingPhase.COMPLETED: {"step": 4, "total": 4, "name": "完成"},
}

PHASE_PROGRESS = {
    ProcessingPhase.KNOWLEDGE_PREPARATION: 10,
    ProcessingPhase.EXAM_PLANNING: 30,
    ProcessingPhase.QUESTION_GENERATION: 60,
    ProcessingPhase.OUTPUT: 95,
}


def progress_file_path(session_id: str) -> str:
    """session_id 검증 후 PROGRESS_DIR 안의 진행 파일 경로 반환"""
    if not isinstance(session_id, str) or not SESSION_ID_PATTERN.fullmatch(session_id):
        raise ValueError(f"invalid session_id: {session_id!r}")
    return os.path.join(Config.PROGRESS_DIR, f"{session_id}.json")


def save_progress(session_id: str, phase: ProcessingPhase, step_name: str, message: str = "", progress_percent: int = 0):
    """진행 상황을 {PROGRESS_DIR}/{session_id}.json 에 저장 (잘못된 session_id는 ValueError)"""
    progress_file = progress_file_path(session_id)
    try:
        os.makedirs(Config.PROGRESS_DIR, exist_ok=True)

        progress_data = {
            "session_id": session_id,
            "current_phase": phase.value,
            "step_name": step_name,
            "message": message,
            "progress_percent": progress_percent,
            "updated_at": datetime.now().isoformat(),
            "phase_info": PHASE_INFO.get(phase, {"step": 0, "total": 4, "name": step_name}),
        }

        with open(progress_file, 'w', encoding='utf-8') as f:
            json.dump(progress_data, f, ensure_ascii=False, indent=2)

    except OSError as e:
        logger.error(f"Failed to save progress for {session_id}: {e}")


def load_progress(session_id: str) -> Dict[str, Any]:
    """저장된 진행 상황 조회 (없으면 FileNotFoundError)"""
    progress_file = progress_file_path(session_id)
    with open(progress_file, 'r', encoding='utf-8') as f:
        return json.load(f)


class ExamGeneratorWorkflow:
    """계획 기반 팬아웃 시험 출제 워크플로우"""

    def __init__(self, llm: BaseChatModel):
        self.llm = llm
        self.planner = ExamPlannerAgent(llm)
        self.generators = {
            generator.question_type.value: generator
            for generator in (SingleChoiceGenerator(llm), MultipleChoicesGenerator(llm), ShortAnswerGenerator(llm))
        }
        self.workflow = self._build_workflow()

    def _wrap_agent_execution(self, agent_func, phase: ProcessingPhase, step_name: str):
        """노드 실행을 래핑하여 진행 상황 추적"""
        async def wrapped_execution(state: ExamState):
            session_id = state.get("session_id", "unknown")
            progress_percent = PHASE_PROGRESS.get(phase, 0)

            logger.debug(f"Starting {step_name} for session {session_id}")
            save_progress(session_id, phase, step_name, f"{step_name}开始", progress_percent)

            try:
                result = await agent_func(state)
            except Exception as e:
                logger.error(f"Node {step_name} failed for session {session_id}: {e}")
                save_progress(session_id, ProcessingPhase.ERROR, step_name, f"{step_name}失败：{e}", 0)
                raise

            save_progress(session_id, phase, step_name, f"{step_name}完成", progress_percent)
            return result

        return wrapped_execution

    async def _prepare_knowledge(self, state: ExamState) -> Dict[str, Any]:
        summary = summarize_knowledge_content(state.get("knowledge_tree"))
        return {
            "knowledge_outline": summary.outline,
            "knowledge_question_digest": summary.leaf_highlights,
            "knowledge_map": summary.detail_map,
            "knowledge_tree": summary.condensed_raw,
        }

    def _route_exam_plan(self, state: ExamState) -> Union[List[Send], str]:
        """청사진 항목을 문제 유형 노드로 팬아웃 (청사진이 비면 바로 출력)"""
        tasks = route_exam_plan(
            state.get("exam_plan") or [],
            state.get("knowledge_map") or {},
            course=state.get("course_title") or "",
            student_profile=format_student_profile(state.get("student_profile") or {}),
            plan_strategy=state.get("plan_strategy") or "",
            knowledge_digest=state.get("knowledge_question_digest") or state.get("knowledge_tree") or "",
        )
        if not tasks:
            logger.warning(f"Empty exam plan for session {state.get('session_id', 'unknown')}")
            return OUTPUT_NODE

        logger.info(f"Dispatching {len(tasks)} question tasks")
        return [task.to_send() for task in tasks]

    async def _output_questions(self, state: ExamState) -> Dict[str, Any]:
        return {"output": list(state.get("questions") or [])}

    def _build_workflow(self):
        """워크플로우 구성"""
        workflow = StateGraph(ExamState)

        workflow.add_node("prepare_knowledge",
                          self._wrap_agent_execution(self._prepare_knowledge,
                                                     ProcessingPhase.KNOWLEDGE_PREPARATION, "知识结构整理"))
        workflow.add_node("prepare_exam_plan",
                          self._wrap_agent_execution(self.planner.execute,
                                                     ProcessingPhase.EXAM_PLANNING, "命题蓝图设计"))
        # 팬아웃 노드는 Send 페이로드만 받으므로 session_id 없이 실행
        for node_name, generator in self.generators.items():
            workflow.add_node(node_name, generator.execute)
        workflow.add_node(OUTPUT_NODE,
                          self._wrap_agent_execution(self._output_questions,
                                                     ProcessingPhase.OUTPUT, "汇总输出"))

        workflow.add_edge(START, "prepare_knowledge")
        workflow.add_edge("prepare_knowledge", "prepare_exam_plan")
        workflow.add_conditional_edges(
            "prepare_exam_plan",
            self._route_exam_plan,
            [*self.generators, OUTPUT_NODE],
        )
        for node_name in self.generators:
            workflow.add_edge(node_name, OUTPUT_NODE)
        workflow.add_edge(OUTPUT_NODE, END)

        return workflow.compile()

    async def generate_exam(
        self,
        session_id: str,
        course_title: str,
        knowledge_tree: str,
        student_profile: StudentProfile = None
    ) -> List[Dict[str, Any]]:
        """시험 문제 생성 실행 (어느 노드든 실패하면 예외 전파)"""
        initial_state = create_initial_state(
            session_id=session_id,
            course_title=course_title,
            knowledge_tree=knowledge_tree,
            student_profile=student_profile,
        )

        save_progress(session_id, ProcessingPhase.KNOWLEDGE_PREPARATION, "出题开始", "开始生成试题", 0)

        try:
            final_state = await self.workflow.ainvoke(initial_state)
        except Exception as e:
            logger.error(f"Exam workflow failed for session {session_id}: {e}")
            save_progress(session_id, ProcessingPhase.ERROR, "错误", f"试题生成失败：{e}", 0)
            raise

        questions = final_state.get("output") or []
        save_progress(session_id, ProcessingPhase.COMPLETED, "完成", f"共生成 {len(questions)} 道试题", 100)
        return questions


def create_exam_workflow(llm: BaseChatModel) -> ExamGeneratorWorkflow:
    """시험 출제 워크플로우 팩토리 함수"""
    return ExamGeneratorWorkflow(llm)
