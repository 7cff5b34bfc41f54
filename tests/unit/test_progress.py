"""Tests for progress tracking and ETA text."""

import io

import pytest
from rich.console import Console

from chatlog_grader.models.enums import ErrorKind
from chatlog_grader.models.evaluation import EvaluationItem, ItemError, ScoreResult, ScoreSet
from chatlog_grader.orchestration.progress import (
    ProgressTracker,
    format_duration,
    planned_duration_text,
)

ITEM = EvaluationItem(transcript="Customer: hi\nAgent: hello")
SCORES = ScoreSet(coherence=5, politeness=5, relevance=5, resolution=1)


def success() -> ScoreResult:
    return ScoreResult.success(0, ITEM, SCORES)


def failure() -> ScoreResult:
    return ScoreResult.failure(0, ITEM, ItemError(kind=ErrorKind.TRANSPORT, message="timeout"))


class TestFormatDuration:
    """Tests for format_duration."""

    @pytest.mark.parametrize(
        "seconds,expected",
        [
            (0, "less than a minute"),
            (59.9, "less than a minute"),
            (60, "about 1 minute"),
            (119, "about 1 minute"),
            (150, "about 2 minutes"),
            (3599, "about 59 minutes"),
            (3600, "about 1 hour"),
            (3660, "about 1 hour and 1 minute"),
            (7500, "about 2 hours and 5 minutes"),
            (-5, "less than a minute"),
        ],
    )
    def test_format(self, seconds, expected):
        assert format_duration(seconds) == expected

    def test_planned_duration(self):
        """31 items at 30 per minute need two windows."""
        assert planned_duration_text(31, 30) == "about 2 minutes"
        assert planned_duration_text(30, 30) == "about 1 minute"


class TestProgressTracker:
    """Tests for ProgressTracker."""

    @pytest.fixture
    def tracker(self, fake_clock):
        return ProgressTracker(show_progress=False, eta_refresh_seconds=10.0, clock=fake_clock)

    def test_no_eta_before_first_outcome(self, tracker):
        tracker.start(4)
        estimate = tracker.estimate()
        assert estimate.percent == 0
        assert estimate.eta_text is None

    def test_counts_outcomes(self, tracker):
        tracker.start(3)
        tracker.update(success())
        tracker.update(failure())

        assert tracker.succeeded == 1
        assert tracker.failed == 1
        assert tracker.processed == 2
        assert tracker.estimate().percent == 67

    def test_percent_rounds_half_up(self, tracker):
        """One of eight is 12.5%, shown as 13."""
        tracker.start(8)
        tracker.update(success())
        assert tracker.estimate().percent == 13

    def test_eta_from_throughput(self, tracker, fake_clock):
        """ETA = elapsed / processed * remaining."""
        tracker.start(4)
        fake_clock.advance(30.0)
        tracker.update(success())

        estimate = tracker.estimate()
        assert estimate.percent == 25
        assert estimate.eta_text == "about 1 minute"  # 90s

    def test_eta_refreshes_at_most_every_interval(self, tracker, fake_clock):
        tracker.start(4)
        fake_clock.advance(30.0)
        tracker.update(success())
        assert tracker.estimate().eta_text == "about 1 minute"

        # 35s / 2 * 2 = 35s would read "less than a minute", but it is too soon
        fake_clock.advance(5.0)
        tracker.update(success())
        assert tracker.estimate().eta_text == "about 1 minute"

        fake_clock.advance(10.0)
        tracker.update(success())
        assert tracker.estimate().eta_text == "less than a minute"

    def test_no_eta_when_done(self, tracker, fake_clock):
        tracker.start(2)
        fake_clock.advance(20.0)
        tracker.update(success())
        tracker.update(success())

        estimate = tracker.estimate()
        assert estimate.percent == 100
        assert estimate.eta_text is None

    def test_start_resets(self, tracker):
        tracker.start(2)
        tracker.update(success())
        tracker.start(5)
        assert tracker.processed == 0
        assert tracker.total == 5

    def test_progress_bar_lifecycle(self, fake_clock):
        """The Rich progress bar starts, updates and stops without error."""
        console = Console(file=io.StringIO(), force_terminal=False)
        tracker = ProgressTracker(console=console, show_progress=True, clock=fake_clock)

        tracker.start(2)
        tracker.set_status("Evaluating chatlog 1 of 2...")
        tracker.update(success())
        tracker.update(failure())
        tracker.finish()

        assert tracker.processed == 2
