"""
Exam Agents Package
"""
from .state import ExamState, ProcessingPhase, QuestionType, create_initial_state, format_student_profile
from .base_agent import BaseAgent
from .knowledge_summarizer import KnowledgeSummary, lookup_knowledge_detail, summarize_knowledge_content
from .exam_planner import ExamPlan, ExamPlanItem, ExamPlannerAgent
from .question_router import QuestionTask, build_question_instruction, route_exam_plan
from .question_generators import (
    GeneratedQuestion,
    MultipleChoicesGenerator,
    ShortAnswerGenerator,
    SingleChoiceGenerator,
)
from .workflow import ExamGeneratorWorkflow, create_exam_workflow, load_progress

__all__ = [
    'ExamState',
    'ProcessingPhase',
    'QuestionType',
    'create_initial_state',
    'format_student_profile',
    'BaseAgent',
    'KnowledgeSummary',
    'lookup_knowledge_detail',
    'summarize_knowledge_content',
    'ExamPlan',
    'ExamPlanItem',
    'ExamPlannerAgent',
    'QuestionTask',
    'build_question_instruction',
    'route_exam_plan',
    'GeneratedQuestion',
    'SingleChoiceGenerator',
    'MultipleChoicesGenerator',
    'ShortAnswerGenerator',
    'ExamGeneratorWorkflow',
    'create_exam_workflow',
    'load_progress'
]
