from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union
from datetime import datetime
from contextlib import asynccontextmanager
import json
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from config import Config
from utils import create_chat_model, random_uuid
from servers.clients.graph_store import KnowledgeGraphStore
from servers.clients.textbook_search import SupabaseAuth, TextbookSearchClient
from servers.exam_agents.workflow import ExamGeneratorWorkflow, create_exam_workflow, load_progress
from servers.learning_path_agents.learning_path import LearningPathWorkflow
from servers.learning_path_agents.sub_path import SubPathWorkflow
from servers.portrait_engine.artifacts import ArtifactAnalyzer
from servers.portrait_engine.storage import PortraitStorage
from servers.portrait_engine.workflow import StudentPortraitWorkflow
from servers.practice_agents.data_synthesis import DataSynthesisWorkflow
from servers.practice_agents.graph_questions import GraphQuestionWorkflow
from servers.practice_agents.quiz import QuizWorkflow
from servers.practice_agents.single_question import SingleQuestionWorkflow

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@dataclass
class Services:
    """앱 수명 동안 공유하는 워크플로우 모음"""
    exam: ExamGeneratorWorkflow
    quiz: QuizWorkflow
    data_synthesis: DataSynthesisWorkflow
    graph_questions: GraphQuestionWorkflow
    single_question: SingleQuestionWorkflow
    learning_path: LearningPathWorkflow
    sub_path: SubPathWorkflow
    portrait: StudentPortraitWorkflow


def build_services() -> Services:
    """Config 기반으로 모델/클라이언트/워크플로우 생성 (Neo4j 연결은 첫 사용 시)"""
    search_client = TextbookSearchClient()
    graph_store = KnowledgeGraphStore()

    return Services(
        exam=create_exam_workflow(create_chat_model(Config.OPENAI_CHAT_MODEL_REASONING_MINI)),
        quiz=QuizWorkflow(create_chat_model(Config.OPENAI_CHAT_MODEL_REASONING_MINI)),
        data_synthesis=DataSynthesisWorkflow(
            create_chat_model(Config.OPENAI_CHAT_MODEL, temperature=0), search_client
        ),
        graph_questions=GraphQuestionWorkflow(create_chat_model(Config.OPENAI_CHAT_MODEL_MINI), graph_store),
        single_question=SingleQuestionWorkflow(
            create_chat_model(Config.OPENAI_CHAT_MODEL_MINI),
            multiple_choice_llm=create_chat_model(Config.OPENAI_CHAT_MODEL),
        ),
        learning_path=LearningPathWorkflow(create_chat_model(Config.OPENAI_CHAT_MODEL), graph_store, search_client),
        sub_path=SubPathWorkflow(create_chat_model(Config.OPENAI_CHAT_MODEL_MINI), graph_store, search_client),
        portrait=StudentPortraitWorkflow(
            create_chat_model(Config.OPENAI_CHAT_MODEL_REASONING),
            ArtifactAnalyzer(),
            PortraitStorage(),
            performance_llm=create_chat_model(
                Config.OPENAI_CHAT_MODEL_REASONING, timeout=Config.get_openai_timeout_seconds()
            ),
            markdown_llm=create_chat_model(Config.OPENAI_CHAT_MODEL_REASONING_MINI),
        ),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Building workflows...")
    app.state.services = build_services()
    logger.info("✅ Workflows ready")
    yield


app = FastAPI(title="EduFlow Agents", lifespan=lifespan)


def get_services(request: Request) -> Services:
    return request.app.state.services


# =============================================================================
# 오류 매핑
# =============================================================================

@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    logger.warning(f"Invalid request on {request.url.path}: {exc}")
    return JSONResponse(status_code=422, content={"error": str(exc)})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.warning(f"Validation failed on {request.url.path}: {exc}")
    return JSONResponse(status_code=422, content={"error": str(exc)})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"❌ {request.url.path} failed: {exc}")
    return JSONResponse(status_code=500, content={"error": f"{type(exc).__name__}: {exc}"})


# =============================================================================
# 요청 모델
# =============================================================================

class ExamRequest(BaseModel):
    session_id: Optional[str] = Field(default=None, pattern=r"^[A-Za-z0-9_-]{1,64}$")
    course_title: str
    knowledge_tree: Union[str, List[Any], Dict[str, Any]]
    student_profile: Dict[str, Any] = Field(default_factory=dict)


class QuizRequest(BaseModel):
    knowledge_point_name: str
    knowledge_content: str = ""
    sample_questions: List[str] = Field(default_factory=list)
    user_context: Dict[str, Any] = Field(default_factory=dict)


class DataSynthesisRequest(BaseModel):
    input: str
    supabase_auth: SupabaseAuth


class GraphQuestionRequest(BaseModel):
    input: str
    descriptions: str = ""
    user_data: Dict[str, Any] = Field(default_factory=dict)


class QuestionHistoryEntry(BaseModel):
    question: str = ""
    complete: str = ""


class SingleQuestionRequest(BaseModel):
    knowledge_point: str
    knowledge_descriptions: str = ""
    question_history: List[QuestionHistoryEntry] = Field(default_factory=list)
    question_type: int = 1
    difficulty: Optional[int] = None


class LearningPathRequest(BaseModel):
    content: str
    supabase_auth: SupabaseAuth
    user_data: Dict[str, Any] = Field(default_factory=dict)


class LearningPathExpandRequest(LearningPathRequest):
    knowledge_point: str
    learning_path: List[Dict[str, str]] = Field(default_factory=list)


class StudentPortraitRequest(BaseModel):
    theme: str = ""
    student_info: Dict[str, Any] = Field(default_factory=dict)
    plan_detail: List[Dict[str, Any]] = Field(default_factory=list)
    final_artifacts: List[str] = Field(default_factory=list)


# =============================================================================
# 엔드포인트
# =============================================================================

@app.get("/health")
async def health():
    return {"status": "ok", "timestamp": datetime.now().isoformat()}


@app.post("/api/exam")
async def generate_exam(body: ExamRequest, request: Request):
    """지식 트리 + 학생 정보로 시험 문제 생성"""
    session_id = body.session_id or random_uuid()[:8]
    knowledge_tree = body.knowledge_tree
    if not isinstance(knowledge_tree, str):
        knowledge_tree = json.dumps(knowledge_tree, ensure_ascii=False)

    questions = await get_services(request).exam.generate_exam(
        session_id=session_id,
        course_title=body.course_title,
        knowledge_tree=knowledge_tree,
        student_profile=body.student_profile,
    )
    return {"session_id": session_id, "questions": questions}


@app.post("/api/quiz")
async def generate_quiz(body: QuizRequest, request: Request):
    questions = await get_services(request).quiz.generate_quiz(
        knowledge_point_name=body.knowledge_point_name,
        knowledge_content=body.knowledge_content,
        sample_questions=body.sample_questions,
        user_context=body.user_context,
    )
    return {"questions": questions}


@app.post("/api/data-synthesis")
async def synthesize_data(body: DataSynthesisRequest, request: Request):
    analysis = await get_services(request).data_synthesis.synthesize(body.input, body.supabase_auth)
    return {"chunk_analysis": analysis}


@app.post("/api/graph-questions")
async def generate_graph_questions(body: GraphQuestionRequest, request: Request):
    """지식 그래프 경로 기반 난이도별 문제 9개 생성"""
    questions = await get_services(request).graph_questions.generate(
        topic=body.input,
        descriptions=body.descriptions,
        user_data=body.user_data,
    )
    return {"questions": questions}


@app.post("/api/single-question")
async def generate_single_question(body: SingleQuestionRequest, request: Request):
    question = await get_services(request).single_question.generate(
        knowledge_point=body.knowledge_point,
        knowledge_descriptions=body.knowledge_descriptions,
        question_history=[entry.model_dump() for entry in body.question_history],
        question_type=body.question_type,
        difficulty=body.difficulty,
    )
    return {"question": question}


@app.post("/api/learning-path")
async def generate_learning_path(body: LearningPathRequest, request: Request):
    path = await get_services(request).learning_path.generate_path(
        content=body.content,
        auth=body.supabase_auth,
        user_data=body.user_data,
    )
    return {"path": path}


@app.post("/api/learning-path/expand")
async def expand_learning_path(body: LearningPathExpandRequest, request: Request):
    """학습 경로의 한 지식점을 하위 개념으로 확장"""
    nodes = await get_services(request).sub_path.expand(
        content=body.content,
        knowledge_point=body.knowledge_point,
        learning_path=body.learning_path,
        auth=body.supabase_auth,
        user_data=body.user_data,
    )
    return {"path": nodes}


@app.post("/api/student-portrait")
async def generate_student_portrait(body: StudentPortraitRequest, request: Request):
    return await get_services(request).portrait.generate_portrait(
        theme=body.theme,
        student_info=body.student_info,
        plan_detail=body.plan_detail,
        final_artifacts=body.final_artifacts,
    )


@app.get("/api/progress/{session_id}")
async def get_exam_progress(session_id: str):
    """시험 생성 진행 상황 조회 (기록이 없으면 대기 상태)"""
    try:
        return load_progress(session_id)
    except FileNotFoundError:
        return {
            "session_id": session_id,
            "current_phase": "waiting",
            "step_name": "准备中",
            "message": "正在准备生成试题",
            "progress_percent": 0,
            "updated_at": datetime.now().isoformat(),
        }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=Config.HOST, port=Config.PORT, access_log=False)
