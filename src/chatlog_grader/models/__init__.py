"""Domain models for the chatlog grading system."""

from chatlog_grader.models.enums import ErrorKind, ResolutionScale, RunState, ScoreDimension
from chatlog_grader.models.evaluation import (
    EvaluationItem,
    EvaluationJob,
    ItemError,
    JobSnapshot,
    ScoreResult,
    ScoreSet,
)
from chatlog_grader.models.performance import PerformanceMetrics, ScoreRecord

__all__ = [
    "ErrorKind",
    "EvaluationItem",
    "EvaluationJob",
    "ItemError",
    "JobSnapshot",
    "PerformanceMetrics",
    "ResolutionScale",
    "RunState",
    "ScoreDimension",
    "ScoreRecord",
    "ScoreResult",
    "ScoreSet",
]
