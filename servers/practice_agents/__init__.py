"""
Practice Agents Package
"""
from .quiz import QuizGeneratorAgent, QuizWorkflow, build_variant_seed, summarize_user_context
from .data_synthesis import ChunkAnalyzerAgent, DataSynthesisWorkflow
from .graph_questions import GraphQuestionWorkflow, build_level_instructions
from .single_question import SingleQuestionWorkflow, route_question_type

__all__ = [
    'QuizGeneratorAgent',
    'QuizWorkflow',
    'build_variant_seed',
    'summarize_user_context',
    'ChunkAnalyzerAgent',
    'DataSynthesisWorkflow',
    'GraphQuestionWorkflow',
    'build_level_instructions',
    'SingleQuestionWorkflow',
    'route_question_type'
]
