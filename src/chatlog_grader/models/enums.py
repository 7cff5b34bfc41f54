"""Enumerations for the chatlog grading system."""

from enum import Enum


class RunState(str, Enum):
    """Lifecycle state of an evaluation job."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        """Whether the job can no longer make progress."""
        return self in (RunState.CANCELLED, RunState.COMPLETED)


class ErrorKind(str, Enum):
    """Classification of a terminal per-item failure."""

    TRANSPORT = "transport"
    INVALID_RESPONSE = "invalid_response"
    VALIDATION = "validation"


class ScoreDimension(str, Enum):
    """Quality dimensions returned by the scoring service."""

    COHERENCE = "coherence"
    POLITENESS = "politeness"
    RELEVANCE = "relevance"
    RESOLUTION = "resolution"


class ResolutionScale(str, Enum):
    """Scale the stored resolution values were recorded on."""

    UNIT = "0-1"
    FIVE_POINT = "0-5"
