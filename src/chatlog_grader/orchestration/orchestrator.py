"""Batch evaluation of chatlogs under a rate limit with pause/resume/cancel."""

import asyncio
import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from chatlog_grader.config.models import GraderConfig
from chatlog_grader.errors import AllItemsFailedError, JobCancelledError, NoInputItemsError
from chatlog_grader.models.enums import RunState
from chatlog_grader.models.evaluation import (
    EvaluationItem,
    EvaluationJob,
    JobSnapshot,
    ScoreResult,
    ScoreSet,
)
from chatlog_grader.orchestration.control import RunController
from chatlog_grader.orchestration.progress import ProgressTracker, planned_duration_text
from chatlog_grader.orchestration.rate_limiter import RateLimiter
from chatlog_grader.orchestration.retry import RetryCoordinator
from chatlog_grader.scoring.protocol import ScoringClient

logger = logging.getLogger("chatlog_grader.orchestration.orchestrator")

SnapshotListener = Callable[[JobSnapshot], None]


class BatchOrchestrator:
    """Drives one EvaluationJob through the scoring service, one item at a time.

    Each item is gated by the RunController, admitted by the RateLimiter,
    scored, and on throttling retried in place by the RetryCoordinator.
    A JobSnapshot is published to listeners after every state change.
    """

    def __init__(
        self,
        scoring_client: ScoringClient,
        rate_limiter: Optional[RateLimiter] = None,
        retry_coordinator: Optional[RetryCoordinator] = None,
        progress_tracker: Optional[ProgressTracker] = None,
        config: Optional[GraderConfig] = None,
    ):
        """Initialize the orchestrator.

        Args:
            scoring_client: Client that scores one transcript per call.
            rate_limiter: Sliding-window limiter (built from config if omitted).
            retry_coordinator: Throttling policy (built from config if omitted).
            progress_tracker: Progress/ETA tracker (silent one if omitted).
            config: Grader configuration for defaults.
        """
        config = config or GraderConfig()
        self._client = scoring_client
        self._limiter = rate_limiter if rate_limiter is not None else RateLimiter(
            capacity=config.rate_limit.capacity,
            window_seconds=config.rate_limit.window_seconds,
            buffer_seconds=config.rate_limit.buffer_seconds,
        )
        self._retry = retry_coordinator if retry_coordinator is not None else RetryCoordinator(
            self._limiter,
            default_wait_seconds=config.retry.default_throttle_wait_seconds,
            buffer_seconds=config.retry.throttle_buffer_seconds,
            failure_cooldown_seconds=config.retry.failure_cooldown_seconds,
        )
        self._progress = progress_tracker if progress_tracker is not None else ProgressTracker(
            show_progress=False,
            eta_refresh_seconds=config.progress.eta_refresh_seconds,
        )
        self._poll_interval = config.run.pause_poll_interval_seconds
        self._listeners: list[SnapshotListener] = []
        self._job: Optional[EvaluationJob] = None
        self._status_message = ""

    @property
    def job(self) -> Optional[EvaluationJob]:
        """The job currently (or most recently) run."""
        return self._job

    def add_listener(self, listener: SnapshotListener) -> None:
        """Register a callback invoked with every published snapshot."""
        self._listeners.append(listener)

    def remove_listener(self, listener: SnapshotListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def snapshot(self, wait_seconds: Optional[float] = None) -> Optional[JobSnapshot]:
        """Point-in-time view of the current job, or None before the first run."""
        job = self._job
        if job is None:
            return None

        estimate = self._progress.estimate()
        return JobSnapshot(
            job_id=job.job_id,
            state=job.state,
            total_count=job.total,
            processed_count=job.processed,
            succeeded_count=job.succeeded,
            failed_count=job.failed,
            percent=estimate.percent,
            eta_text=estimate.eta_text,
            status_message=self._status_message,
            wait_seconds=wait_seconds,
        )

    def _publish(self, message: str, wait_seconds: Optional[float] = None) -> None:
        self._status_message = message
        self._progress.set_status(message)

        snapshot = self.snapshot(wait_seconds)
        if snapshot is None:
            return
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Snapshot listener raised; continuing")

    async def run(
        self,
        items: Sequence[EvaluationItem],
        controller: Optional[RunController] = None,
        job_id: Optional[str] = None,
    ) -> EvaluationJob:
        """Evaluate every item and return the finished job.

        Per-item failures never abort the batch. A cancelled job is
        returned in its partial state with ``state == CANCELLED``.

        Args:
            items: Chatlogs to evaluate, in order.
            controller: Pause/resume/cancel gate (a private one if omitted).
            job_id: Optional job identifier (generated if not provided).

        Returns:
            The EvaluationJob with all recorded results.

        Raises:
            NoInputItemsError: If ``items`` is empty.
            AllItemsFailedError: If the job completed with zero successes.
        """
        if not items:
            raise NoInputItemsError()

        controller = controller or RunController(poll_interval=self._poll_interval)
        controller.bind()

        job = EvaluationJob(job_id=job_id or self._generate_job_id(), items=tuple(items))
        self._job = job
        job.state = RunState.RUNNING
        job.started_at = datetime.now(timezone.utc)

        self._progress.start(job.total)
        planned = planned_duration_text(job.total, self._limiter.capacity, self._limiter.window_seconds)
        logger.info(f"Starting job {job.job_id}: {job.total} chatlogs (estimated {planned})")
        self._publish(f"Preparing to evaluate {job.total} chatlogs (estimated {planned})...")

        try:
            for index, item in enumerate(job.items):
                await self._gate(job, controller)

                result = await self._evaluate_item(job, index, item, controller)
                job.record(result)
                self._progress.update(result)

                if result.succeeded:
                    self._publish(f"Evaluated chatlog {index + 1} of {job.total}")
                    continue

                self._publish(f"Failed to evaluate chatlog {index + 1}: {result.error.message}")
                if index < job.total - 1:
                    await self._retry.cool_down(controller.sleep)

        except JobCancelledError:
            job.state = RunState.CANCELLED
            logger.info(f"Job {job.job_id} cancelled after {job.processed} of {job.total} chatlogs")
            self._finish(job)
            self._publish("Evaluation cancelled by user.")
            return job

        except asyncio.CancelledError:
            job.state = RunState.CANCELLED
            self._finish(job)
            self._publish("Evaluation task cancelled.")
            raise

        job.state = RunState.COMPLETED
        self._finish(job)
        logger.info(
            f"Job {job.job_id} complete: {job.succeeded} succeeded, {job.failed} failed"
        )

        if job.succeeded == 0:
            self._publish("No chatlogs were successfully evaluated.")
            raise AllItemsFailedError(job)

        self._publish("Evaluation complete!")
        return job

    def _finish(self, job: EvaluationJob) -> None:
        job.completed_at = datetime.now(timezone.utc)
        self._progress.finish()

    async def _gate(self, job: EvaluationJob, controller: RunController) -> None:
        """Hold the job while paused; raise JobCancelledError on cancel."""
        controller.raise_if_cancelled()
        if not controller.is_paused:
            return

        job.state = RunState.PAUSED
        self._publish("Evaluation paused. Resume to continue.")

        if await controller.wait_while_paused() == RunState.CANCELLED:
            raise JobCancelledError("Evaluation cancelled during pause")

        job.state = RunState.RUNNING
        self._publish("Resuming evaluation...")

    async def _evaluate_item(
        self,
        job: EvaluationJob,
        index: int,
        item: EvaluationItem,
        controller: RunController,
    ) -> ScoreResult:
        """Score one item, retrying it in place while throttled.

        Args:
            job: The running job.
            index: Position of the item in the job.
            item: The item to score.
            controller: Gate consulted before every attempt and during waits.

        Returns:
            A success or failure ScoreResult.

        Raises:
            JobCancelledError: If the job is cancelled while waiting.
        """

        def on_rate_wait(wait: float) -> None:
            self._publish(f"Rate limit reached. Waiting {math.ceil(wait)} seconds...", wait_seconds=wait)

        def on_throttle(wait: float, error: BaseException) -> None:
            self._publish(
                f"API quota exceeded. Waiting {math.ceil(wait)} seconds before retrying "
                f"chatlog {index + 1}...",
                wait_seconds=wait,
            )

        async def attempt() -> ScoreSet:
            while True:
                await self._gate(job, controller)
                await self._limiter.admit(sleep=controller.sleep, on_wait=on_rate_wait)
                if not controller.is_paused:
                    break
                # Paused during the admission wait; hold the call until resumed
                self._limiter.release()
            self._publish(f"Evaluating chatlog {index + 1} of {job.total}...")
            return await self._client.score(item.transcript)

        try:
            scores = await self._retry.call(attempt, sleep=controller.sleep, on_throttle=on_throttle)
        except JobCancelledError:
            raise
        except Exception as e:
            error = self._retry.classify(e)
            logger.warning(
                f"Failed to evaluate chatlog {index + 1} ({error.kind.value}): {error.message}"
            )
            logger.debug(f"Chatlog {index + 1} preview: {item.preview}")
            return ScoreResult.failure(index, item, error)

        logger.debug(f"Chatlog {index + 1} scored: {scores.model_dump()}")
        return ScoreResult.success(index, item, scores)

    def _generate_job_id(self) -> str:
        """Generate a unique job ID."""
        return f"job-{uuid.uuid4().hex[:8]}"
