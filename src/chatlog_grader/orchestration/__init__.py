"""Batch evaluation orchestration: rate limiting, retry, control, progress."""

from chatlog_grader.orchestration.control import RunController
from chatlog_grader.orchestration.orchestrator import BatchOrchestrator
from chatlog_grader.orchestration.progress import (
    ProgressEstimate,
    ProgressTracker,
    format_duration,
    planned_duration_text,
)
from chatlog_grader.orchestration.rate_limiter import RateLimiter
from chatlog_grader.orchestration.retry import RetryCoordinator
from chatlog_grader.orchestration.runner import EvaluationRunner
from chatlog_grader.orchestration.session import EvaluationSession

__all__ = [
    "BatchOrchestrator",
    "EvaluationRunner",
    "EvaluationSession",
    "ProgressEstimate",
    "ProgressTracker",
    "RateLimiter",
    "RetryCoordinator",
    "RunController",
    "format_duration",
    "planned_duration_text",
]
