"""Pytest configuration and fixtures."""

from typing import Iterable, Optional, Union

import pytest

from chatlog_grader.config.models import GraderConfig, RateLimitConfig, RetryConfig, RunConfig
from chatlog_grader.models.evaluation import EvaluationItem, ScoreSet


class FakeClock:
    """Manually advanced monotonic clock with a matching sleep coroutine."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


Outcome = Union[ScoreSet, BaseException]


class ScriptedScoringClient:
    """Scoring client that replays a fixed sequence of outcomes.

    Each call consumes the next outcome; exceptions are raised, ScoreSets
    are returned. Once the script runs out, ``default`` is returned.
    """

    model_name = "scripted-model"

    def __init__(self, outcomes: Iterable[Outcome] = (), default: Optional[ScoreSet] = None):
        self._outcomes = list(outcomes)
        self._default = default or ScoreSet(coherence=4, politeness=5, relevance=4, resolution=1)
        self.calls: list[str] = []
        self.on_call = None
        self.closed = False

    async def score(self, transcript: str) -> ScoreSet:
        self.calls.append(transcript)
        if self.on_call is not None:
            self.on_call(len(self.calls), transcript)
        outcome = self._outcomes.pop(0) if self._outcomes else self._default
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_clock() -> FakeClock:
    """A fake clock starting at t=1000s."""
    return FakeClock()


@pytest.fixture
def good_scores() -> ScoreSet:
    return ScoreSet(coherence=4, politeness=5, relevance=4, resolution=1)


@pytest.fixture
def make_items():
    """Factory for numbered evaluation items."""

    def _make(count: int) -> list[EvaluationItem]:
        return [
            EvaluationItem(
                transcript=f"Customer: issue {i}\nAgent: resolved {i}",
                scenario=f"scenario-{i}",
                shift="morning",
            )
            for i in range(count)
        ]

    return _make


@pytest.fixture
def scripted_client():
    """Factory for ScriptedScoringClient instances."""

    def _make(outcomes: Iterable[Outcome] = ()) -> ScriptedScoringClient:
        return ScriptedScoringClient(outcomes)

    return _make


@pytest.fixture
def fast_config() -> GraderConfig:
    """Configuration with short waits suitable for real-time tests."""
    return GraderConfig(
        rate_limit=RateLimitConfig(capacity=30, window_seconds=60.0, buffer_seconds=0.0),
        retry=RetryConfig(
            default_throttle_wait_seconds=0.2,
            throttle_buffer_seconds=0.1,
            failure_cooldown_seconds=0.0,
        ),
        run=RunConfig(pause_poll_interval_seconds=0.05),
    )
