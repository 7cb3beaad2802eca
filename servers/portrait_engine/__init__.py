"""
Student Portrait Engine
"""
from .plan_summary import aggregate_stats, build_plan_summary, compute_local_stats, format_student_info
from .artifacts import ArtifactAnalyzer, build_mineru_summary
from .storage import PortraitStorage, PortraitUploadError
from .workflow import PerformanceAssessmentError, StudentPortraitWorkflow

__all__ = [
    'aggregate_stats',
    'build_plan_summary',
    'compute_local_stats',
    'format_student_info',
    'ArtifactAnalyzer',
    'build_mineru_summary',
    'PortraitStorage',
    'PortraitUploadError',
    'PerformanceAssessmentError',
    'StudentPortraitWorkflow'
]
