"""Evaluation job and result models."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from chatlog_grader.models.enums import ErrorKind, RunState


class EvaluationItem(BaseModel):
    """One transcript submitted for scoring.

    Identity is the item's position in the job, so items are frozen once
    created and a throttled retry always resends the same input.
    """

    transcript: str = Field(..., min_length=1)
    scenario: Optional[str] = None
    shift: Optional[str] = None
    timestamp: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)

    @property
    def preview(self) -> str:
        """First 100 characters of the transcript, for logs."""
        if len(self.transcript) <= 100:
            return self.transcript
        return self.transcript[:100] + "..."


class ScoreSet(BaseModel):
    """The four quality dimensions for one conversation."""

    coherence: int = Field(..., ge=1, le=5)
    politeness: int = Field(..., ge=1, le=5)
    relevance: int = Field(..., ge=1, le=5)
    resolution: int = Field(..., ge=0, le=1)


class ItemError(BaseModel):
    """Why an item could not be scored."""

    kind: ErrorKind
    message: str
    status: Optional[int] = None
    raw_response: Optional[str] = None


class ScoreResult(BaseModel):
    """Outcome of scoring one item: either scores or an error, never both."""

    item_index: int = Field(..., ge=0)
    scores: Optional[ScoreSet] = None
    error: Optional[ItemError] = None

    # Carried over from the source item
    transcript: str
    scenario: Optional[str] = None
    shift: Optional[str] = None
    timestamp: Optional[datetime] = None

    evaluated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def _exactly_one_outcome(self) -> "ScoreResult":
        if (self.scores is None) == (self.error is None):
            raise ValueError("exactly one of scores or error must be set")
        return self

    @property
    def succeeded(self) -> bool:
        """Whether the item was scored."""
        return self.scores is not None

    @classmethod
    def success(cls, index: int, item: EvaluationItem, scores: ScoreSet) -> "ScoreResult":
        """Build a result for a scored item."""
        return cls(
            item_index=index,
            scores=scores,
            transcript=item.transcript,
            scenario=item.scenario,
            shift=item.shift,
            timestamp=item.timestamp,
        )

    @classmethod
    def failure(cls, index: int, item: EvaluationItem, error: ItemError) -> "ScoreResult":
        """Build a result for an item that failed terminally."""
        return cls(
            item_index=index,
            error=error,
            transcript=item.transcript,
            scenario=item.scenario,
            shift=item.shift,
            timestamp=item.timestamp,
        )


class EvaluationJob(BaseModel):
    """An ordered batch of items and its running tallies.

    Mutated only by the orchestrator. Readers may see momentarily stale
    counters, but ``processed`` is derived so it always equals
    ``succeeded + failed``.
    """

    job_id: str
    items: tuple[EvaluationItem, ...]
    state: RunState = RunState.IDLE
    succeeded: int = 0
    failed: int = 0
    results: list[ScoreResult] = Field(default_factory=list)

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @computed_field
    @property
    def processed(self) -> int:
        """Number of items with a terminal outcome."""
        return self.succeeded + self.failed

    @property
    def total(self) -> int:
        """Number of items in the job."""
        return len(self.items)

    @property
    def remaining(self) -> int:
        """Items not yet processed."""
        return self.total - self.processed

    @property
    def successful_results(self) -> list[ScoreResult]:
        """Results that carry scores."""
        return [r for r in self.results if r.succeeded]

    @property
    def failed_results(self) -> list[ScoreResult]:
        """Results that carry an error."""
        return [r for r in self.results if not r.succeeded]

    @property
    def duration_seconds(self) -> Optional[float]:
        """Wall time of the run so far."""
        if self.started_at is None:
            return None
        end = self.completed_at or datetime.now(timezone.utc)
        return (end - self.started_at).total_seconds()

    def record(self, result: ScoreResult) -> None:
        """Record a terminal outcome and bump the matching counter."""
        self.results.append(result)
        if result.succeeded:
            self.succeeded += 1
        else:
            self.failed += 1


class JobSnapshot(BaseModel):
    """Point-in-time view of a job, published after every state change."""

    job_id: str
    state: RunState
    total_count: int
    processed_count: int
    succeeded_count: int
    failed_count: int
    percent: int
    eta_text: Optional[str] = None
    status_message: str = ""
    wait_seconds: Optional[float] = None

    model_config = ConfigDict(frozen=True)
