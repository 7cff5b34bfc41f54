"""Caller-facing handle for one running evaluation job."""

import asyncio
import logging
from typing import AsyncIterator, Optional, Sequence

from chatlog_grader.config.defaults import DEFAULT_PAUSE_POLL_SECONDS
from chatlog_grader.errors import NoInputItemsError
from chatlog_grader.models.enums import RunState
from chatlog_grader.models.evaluation import EvaluationItem, EvaluationJob, JobSnapshot
from chatlog_grader.orchestration.control import RunController
from chatlog_grader.orchestration.orchestrator import BatchOrchestrator

logger = logging.getLogger("chatlog_grader.orchestration.session")


class EvaluationSession:
    """Runs a BatchOrchestrator as a background task and fans out its snapshots.

    ``pause``, ``resume`` and ``cancel`` are safe to call from any thread.
    ``subscribe`` and ``wait`` must be used from the event loop that
    called ``start``.
    """

    def __init__(
        self,
        orchestrator: BatchOrchestrator,
        poll_interval: float = DEFAULT_PAUSE_POLL_SECONDS,
    ):
        """Initialize the session.

        Args:
            orchestrator: Orchestrator that will run the job.
            poll_interval: Pause/cancel re-check interval.
        """
        self._orchestrator = orchestrator
        self._controller = RunController(poll_interval=poll_interval)
        self._task: Optional[asyncio.Task] = None
        self._latest: Optional[JobSnapshot] = None
        self._subscribers: list[asyncio.Queue] = []

        orchestrator.add_listener(self._on_snapshot)

    @property
    def controller(self) -> RunController:
        return self._controller

    @property
    def done(self) -> bool:
        """Whether the job task has finished."""
        return self._task is not None and self._task.done()

    def start(
        self,
        items: Sequence[EvaluationItem],
        job_id: Optional[str] = None,
    ) -> asyncio.Task:
        """Start evaluating ``items`` in the background.

        Args:
            items: Chatlogs to evaluate.
            job_id: Optional job identifier.

        Returns:
            The task running the job; its result is the finished EvaluationJob.

        Raises:
            NoInputItemsError: If ``items`` is empty.
            RuntimeError: If the session was already started.
        """
        if self._task is not None:
            raise RuntimeError("Session already started")
        if not items:
            raise NoInputItemsError()

        self._controller.bind()
        self._task = asyncio.get_running_loop().create_task(
            self._orchestrator.run(list(items), controller=self._controller, job_id=job_id)
        )
        self._task.add_done_callback(self._on_done)
        logger.debug(f"Session started with {len(items)} chatlogs")
        return self._task

    def pause(self) -> bool:
        """Request a pause before the next item."""
        return self._controller.pause()

    def resume(self) -> bool:
        """Resume a paused job."""
        return self._controller.resume()

    def cancel(self) -> bool:
        """Request cooperative cancellation."""
        return self._controller.cancel()

    def snapshot(self) -> Optional[JobSnapshot]:
        """Latest published snapshot (poll-style access)."""
        return self._latest

    async def subscribe(self) -> AsyncIterator[JobSnapshot]:
        """Yield every snapshot published from now until the job ends.

        The most recent snapshot, if any, is yielded first. Iteration
        stops after the job reaches a terminal state.
        """
        if self.done:
            if self._latest is not None:
                yield self._latest
            return

        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.append(queue)
        try:
            if self._latest is not None:
                yield self._latest
            while True:
                snapshot = await queue.get()
                if snapshot is None:
                    return
                yield snapshot
        finally:
            if queue in self._subscribers:
                self._subscribers.remove(queue)

    async def wait(self) -> EvaluationJob:
        """Wait for the job to finish.

        Returns:
            The finished job (Completed or Cancelled).

        Raises:
            RuntimeError: If the session was never started.
            AllItemsFailedError: If every item failed.
        """
        if self._task is None:
            raise RuntimeError("Session not started")
        return await self._task

    def _on_snapshot(self, snapshot: JobSnapshot) -> None:
        self._latest = snapshot
        for queue in self._subscribers:
            queue.put_nowait(snapshot)

    def _on_done(self, task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Session task ended with {type(task.exception()).__name__}")
        for queue in self._subscribers:
            queue.put_nowait(None)

    def __repr__(self) -> str:
        state = self._latest.state if self._latest else RunState.IDLE
        return f"EvaluationSession(state={state.value})"
