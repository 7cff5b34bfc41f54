"""Stored score records and derived performance metrics."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from chatlog_grader.models.enums import ResolutionScale


class ScoreRecord(BaseModel):
    """A persisted score for one conversation of one subject (agent).

    Values are floats because historical records may hold resolution on
    a 0-5 scale rather than the current 0/1 outcome.
    """

    record_id: str
    subject_id: str
    transcript: str
    scenario: str = ""
    shift: Optional[str] = None
    conversation_time: Optional[datetime] = None

    coherence: float
    politeness: float
    relevance: float
    resolution: float

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PerformanceMetrics(BaseModel):
    """Averaged scores for one subject.

    ``resolution`` is always normalized to 0-1; ``average_score`` is on the
    1-5 scale with resolution rescaled before weighting.
    """

    coherence: float
    politeness: float
    relevance: float
    resolution: float
    average_score: float
    total_evaluations: int
    resolution_scale: ResolutionScale
