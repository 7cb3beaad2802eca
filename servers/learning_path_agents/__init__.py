"""
Learning Path Agents Package
"""
from .learning_path import LearningPathAgent, LearningPathWorkflow
from .sub_path import SubPathAgent, SubPathWorkflow

__all__ = [
    'LearningPathAgent',
    'LearningPathWorkflow',
    'SubPathAgent',
    'SubPathWorkflow'
]
