"""Chatlog Grader.

Scores customer-service conversations with an LLM under a strict request
rate limit, with pause/resume/cancel, throttling backoff and live progress,
and aggregates stored scores into a weighted performance figure per agent.
"""

__version__ = "0.1.0"

from chatlog_grader.models.enums import ErrorKind, ResolutionScale, RunState

__all__ = [
    "__version__",
    "ErrorKind",
    "ResolutionScale",
    "RunState",
]
