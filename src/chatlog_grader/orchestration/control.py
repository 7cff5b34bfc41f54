"""Cooperative pause/resume/cancel gate for evaluation jobs."""

import asyncio
import logging
import threading
from typing import Optional

from chatlog_grader.config.defaults import DEFAULT_PAUSE_POLL_SECONDS
from chatlog_grader.errors import JobCancelledError
from chatlog_grader.models.enums import RunState

logger = logging.getLogger("chatlog_grader.orchestration.control")


class RunController:
    """Three-state gate (Running, Paused, Cancelled) read by the orchestrator.

    Transitions may be requested from any thread. State is published under
    a lock; waiters in the orchestrator's event loop are woken through an
    asyncio.Event and additionally re-check at ``poll_interval`` so a
    cancellation is seen within one interval even without a wake-up.

    Cancellation is cooperative: it is observed at wait points and between
    items, never by aborting an in-flight scoring call.
    """

    def __init__(self, poll_interval: float = DEFAULT_PAUSE_POLL_SECONDS):
        """Initialize the controller in the Running state.

        Args:
            poll_interval: Upper bound on how long a waiter sleeps before
                re-checking the state.
        """
        self._poll_interval = poll_interval
        self._lock = threading.Lock()
        self._state = RunState.RUNNING
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._changed: Optional[asyncio.Event] = None

    @property
    def state(self) -> RunState:
        """Current gate state."""
        with self._lock:
            return self._state

    @property
    def poll_interval(self) -> float:
        """Maximum seconds between state re-checks while waiting."""
        return self._poll_interval

    @property
    def is_paused(self) -> bool:
        return self.state == RunState.PAUSED

    @property
    def is_cancelled(self) -> bool:
        return self.state == RunState.CANCELLED

    def pause(self) -> bool:
        """Running -> Paused. Returns False if the transition is not allowed."""
        return self._transition({RunState.RUNNING}, RunState.PAUSED)

    def resume(self) -> bool:
        """Paused -> Running. Returns False if the transition is not allowed."""
        return self._transition({RunState.PAUSED}, RunState.RUNNING)

    def cancel(self) -> bool:
        """Running or Paused -> Cancelled (terminal)."""
        return self._transition({RunState.RUNNING, RunState.PAUSED}, RunState.CANCELLED)

    def _transition(self, allowed: set[RunState], target: RunState) -> bool:
        with self._lock:
            if self._state not in allowed:
                return False
            previous = self._state
            self._state = target

        logger.info(f"Run state {previous.value} -> {target.value}")
        self._notify()
        return True

    def bind(self) -> None:
        """Attach to the running event loop so transitions can wake waiters."""
        loop = asyncio.get_running_loop()
        if self._loop is not loop:
            self._loop = loop
            self._changed = asyncio.Event()

    def _notify(self) -> None:
        loop, event = self._loop, self._changed
        if loop is None or event is None or loop.is_closed():
            return

        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None

        if current is loop:
            event.set()
            return

        try:
            loop.call_soon_threadsafe(event.set)
        except RuntimeError:
            # Loop shut down between the check and the call; no waiter left
            logger.debug("Event loop closed; state change not delivered")

    async def _wait_for_change(self, timeout: float) -> None:
        self.bind()
        try:
            await asyncio.wait_for(self._changed.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass

    def raise_if_cancelled(self) -> None:
        """Raise JobCancelledError if the job has been cancelled."""
        if self.is_cancelled:
            raise JobCancelledError("Evaluation cancelled by user")

    async def wait_while_paused(self) -> RunState:
        """Suspend while Paused.

        Returns:
            The state that ended the wait (Running or Cancelled).
        """
        self.bind()
        while True:
            self._changed.clear()
            state = self.state
            if state != RunState.PAUSED:
                return state
            await self._wait_for_change(self._poll_interval)

    async def checkpoint(self) -> None:
        """Gate before starting work: wait out a pause, raise on cancel."""
        self.raise_if_cancelled()
        if await self.wait_while_paused() == RunState.CANCELLED:
            raise JobCancelledError("Evaluation cancelled during pause")

    async def sleep(self, seconds: float) -> None:
        """Sleep that ends early with JobCancelledError on cancellation.

        Pausing does not stop the clock: a wait imposed by the remote
        service keeps counting down while paused.

        Args:
            seconds: Duration to wait.
        """
        self.bind()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + max(seconds, 0.0)

        while True:
            self._changed.clear()
            self.raise_if_cancelled()
            remaining = deadline - loop.time()
            if remaining <= 0:
                return
            await self._wait_for_change(min(remaining, self._poll_interval))
