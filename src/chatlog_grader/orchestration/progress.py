"""Progress tracking, ETA estimation, and Rich console output."""

import logging
import math
import time
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from chatlog_grader.config.defaults import DEFAULT_ETA_REFRESH_SECONDS
from chatlog_grader.models.evaluation import EvaluationJob, ScoreResult

logger = logging.getLogger("chatlog_grader.orchestration.progress")


def format_duration(seconds: float) -> str:
    """Human-readable duration with whole-minute granularity.

    Examples: "less than a minute", "about 1 minute", "about 12 minutes",
    "about 2 hours and 5 minutes".
    """
    minutes = int(max(seconds, 0.0) // 60)

    if minutes < 1:
        return "less than a minute"
    if minutes == 1:
        return "about 1 minute"
    if minutes < 60:
        return f"about {minutes} minutes"

    hours, minutes = divmod(minutes, 60)
    text = f"about {hours} hour{'s' if hours > 1 else ''}"
    if minutes > 0:
        text += f" and {minutes} minute{'s' if minutes > 1 else ''}"
    return text


def planned_duration_text(total: int, capacity: int, window_seconds: float = 60.0) -> str:
    """Up-front estimate from the rate limit alone, before any throughput exists."""
    windows = math.ceil(total / capacity) if capacity > 0 else 0
    return format_duration(windows * window_seconds)


class ProgressEstimate(BaseModel):
    """Percent complete and the throughput-based ETA, if defined."""

    percent: int
    eta_text: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class ProgressTracker:
    """Counts terminal outcomes and estimates remaining time.

    The ETA is ``elapsed / processed * remaining`` and is recomputed at
    most once per ``eta_refresh_seconds``; between refreshes the previous
    text is returned. No ETA exists until one item has been processed,
    and none once all items are done.
    """

    def __init__(
        self,
        console: Optional[Console] = None,
        show_progress: bool = True,
        eta_refresh_seconds: float = DEFAULT_ETA_REFRESH_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the progress tracker.

        Args:
            console: Rich console for output (created if not provided).
            show_progress: Whether to show a progress bar.
            eta_refresh_seconds: Minimum seconds between ETA recomputations.
            clock: Monotonic clock returning seconds.
        """
        self._console = console or Console()
        self._show_progress = show_progress
        self._eta_refresh_seconds = eta_refresh_seconds
        self._clock = clock
        self._progress: Optional[Progress] = None
        self._task_id: Optional[TaskID] = None
        self._reset(0)

    def _reset(self, total: int) -> None:
        self._total = total
        self._succeeded = 0
        self._failed = 0
        self._started_at = self._clock()
        self._eta_text: Optional[str] = None
        self._eta_computed_at: Optional[float] = None

    @property
    def total(self) -> int:
        return self._total

    @property
    def processed(self) -> int:
        return self._succeeded + self._failed

    @property
    def succeeded(self) -> int:
        return self._succeeded

    @property
    def failed(self) -> int:
        return self._failed

    def start(self, total: int) -> None:
        """Begin tracking a run of ``total`` items.

        Args:
            total: Total item count.
        """
        self._reset(total)
        if self._show_progress:
            self._create_progress_bar()

    def _create_progress_bar(self) -> None:
        """Create and start the progress bar."""
        if self._progress is not None:
            return

        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("•"),
            TimeElapsedColumn(),
            TextColumn("•"),
            TextColumn("{task.fields[eta]}"),
            console=self._console,
            transient=False,
        )
        self._progress.start()
        self._task_id = self._progress.add_task(
            "Evaluating chatlogs",
            total=self._total,
            eta="",
        )

    def update(self, outcome: ScoreResult) -> None:
        """Record one terminal outcome.

        Args:
            outcome: Result of a scored or failed item.
        """
        if outcome.succeeded:
            self._succeeded += 1
        else:
            self._failed += 1

        if self._progress and self._task_id is not None:
            estimate = self.estimate()
            self._progress.update(
                self._task_id,
                completed=self.processed,
                eta=f"ETA {estimate.eta_text}" if estimate.eta_text else "",
            )

    def estimate(self) -> ProgressEstimate:
        """Current percent complete and ETA text."""
        processed = self.processed
        percent = math.floor(processed / self._total * 100 + 0.5) if self._total else 0
        remaining = self._total - processed

        if processed == 0 or remaining <= 0:
            self._eta_text = None
            return ProgressEstimate(percent=percent, eta_text=None)

        now = self._clock()
        due = (
            self._eta_computed_at is None
            or now - self._eta_computed_at >= self._eta_refresh_seconds
        )
        if due:
            elapsed = now - self._started_at
            self._eta_text = format_duration(elapsed / processed * remaining)
            self._eta_computed_at = now

        return ProgressEstimate(percent=percent, eta_text=self._eta_text)

    def set_status(self, message: str) -> None:
        """Show a status message as the progress bar description."""
        if self._progress and self._task_id is not None:
            display = message if len(message) <= 60 else message[:57] + "..."
            self._progress.update(self._task_id, description=display)

    def finish(self) -> None:
        """Stop the progress bar and print a short summary."""
        if self._progress:
            self._progress.stop()
            self._progress = None
            self._task_id = None

            self._console.print()
            self._console.print(f"[bold green]✓ Evaluated:[/] {self._succeeded} chatlogs")
            if self._failed > 0:
                self._console.print(f"[bold red]✗ Failed:[/] {self._failed} chatlogs")

    def display_summary_table(self, job: EvaluationJob) -> None:
        """Display a summary table for a finished job.

        Args:
            job: The evaluated job.
        """
        table = Table(title="Evaluation Summary")

        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right")

        table.add_row("Status", job.state.value)
        table.add_row("Total Chatlogs", str(job.total))
        table.add_row("Processed", str(job.processed))
        table.add_row("Succeeded", f"[green]{job.succeeded}[/]")
        table.add_row(
            "Failed",
            f"[red]{job.failed}[/]" if job.failed > 0 else "0",
        )

        scored = job.successful_results
        if scored:
            for dimension in ("coherence", "politeness", "relevance"):
                values = [getattr(r.scores, dimension) for r in scored]
                table.add_row(f"Avg {dimension.title()}", f"{sum(values) / len(values):.2f}")
            resolved = sum(r.scores.resolution for r in scored)
            table.add_row("Resolved", f"{resolved}/{len(scored)}")

        if job.duration_seconds is not None:
            table.add_row("Duration", f"{job.duration_seconds / 60:.1f} minutes")

        self._console.print(table)

