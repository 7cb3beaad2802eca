"""
LangGraph 시험 출제 시스템의 상태 정의
"""
from typing import Annotated, Any, Dict, List, Optional, TypedDict
from datetime import datetime
from enum import Enum
import operator


class ProcessingPhase(str, Enum):
    """처리 단계 정의"""
    KNOWLEDGE_PREPARATION = "knowledge_preparation"
    EXAM_PLANNING = "exam_planning"
    QUESTION_GENERATION = "question_generation"
    OUTPUT = "output"
    COMPLETED = "completed"
    ERROR = "error"


class QuestionType(str, Enum):
    """출제 가능한 문제 유형 (그래프 노드 이름과 동일)"""
    SINGLE_CHOICE = "SingleChoice"
    MULTIPLE_CHOICES = "MultipleChoices"
    SHORT_ANSWER = "ShortAnswer"


QUESTION_TYPE_LABEL = {
    QuestionType.SINGLE_CHOICE: "单选题",
    QuestionType.MULTIPLE_CHOICES: "多选题",
    QuestionType.SHORT_ANSWER: "简答题",
}

QUESTION_TYPE_PROBLEM_TYPE = {
    QuestionType.SINGLE_CHOICE: 1,
    QuestionType.MULTIPLE_CHOICES: 2,
    QuestionType.SHORT_ANSWER: 5,
}


class StudentProfile(TypedDict, total=False):
    """학생 정보 (외부 입력, 모두 선택)"""
    grade: str
    major_background: str
    grasp_level: str
    major: str
    history: List[str]
    student_id: str


def format_student_profile(user: StudentProfile) -> str:
    """학생 정보를 프롬프트용 한 줄 요약으로 변환"""
    segments = [
        f"年级：{user.get('grade') or '未提供'}",
        f"专业：{user.get('major') or '未提供'}",
        f"学术背景：{user.get('major_background') or '未提供'}",
        f"掌握程度：{user.get('grasp_level') or '未提供'}",
    ]
    if user.get("history"):
        segments.append(f"历史薄弱点：{'； '.join(user['history'])}")
    return "； ".join(segments)


class ExamState(TypedDict, total=False):
    """LangGraph에서 사용할 전체 상태"""
    # 입력 정보
    session_id: str
    course_title: str
    knowledge_tree: str
    student_profile: StudentProfile

    # 지식 요약 (prepare_knowledge)
    knowledge_outline: str
    knowledge_question_digest: str
    knowledge_map: Dict[str, str]

    # 출제 청사진 (prepare_exam_plan)
    plan_strategy: str
    exam_plan: List[Any]

    # 팬아웃 태스크 전용 (Send로 전달)
    plan_item: Optional[Any]
    instructions: str

    # 결과 (동시 실행 결과를 이어붙임)
    questions: Annotated[List[Dict[str, Any]], operator.add]
    output: List[Dict[str, Any]]

    # 메타데이터
    started_at: datetime


def create_initial_state(
    session_id: str,
    course_title: str,
    knowledge_tree: str,
    student_profile: Optional[StudentProfile] = None
) -> ExamState:
    """초기 상태 생성"""
    return ExamState(
        session_id=session_id,
        course_title=course_title,
        knowledge_tree=knowledge_tree,
        student_profile=student_profile or {},

        knowledge_outline="",
        knowledge_question_digest="",
        knowledge_map={},

        plan_strategy="",
        exam_plan=[],

        questions=[],

        started_at=datetime.now()
    )
