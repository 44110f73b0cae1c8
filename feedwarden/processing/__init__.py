"""
FeedWarden Processing Module
============================

Quality grading, lifecycle transitions and the extraction pipeline that
moves queued articles to their graded state.
"""

from .quality_gate import QualityGate, QualityGrade
from .pipeline import ProcessingPipeline, QueueRunResult

__all__ = [
    'QualityGate',
    'QualityGrade',
    'ProcessingPipeline',
    'QueueRunResult',
]
