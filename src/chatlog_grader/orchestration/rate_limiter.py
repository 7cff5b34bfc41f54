"""Sliding-window rate limiting for scoring calls."""

import asyncio
import logging
import time
from collections import deque
from typing import Awaitable, Callable, Optional

from chatlog_grader.config.defaults import (
    DEFAULT_RATE_BUFFER_SECONDS,
    DEFAULT_RATE_LIMIT,
    DEFAULT_RATE_WINDOW_SECONDS,
)

logger = logging.getLogger("chatlog_grader.orchestration.rate_limiter")

SleepFunc = Callable[[float], Awaitable[None]]


class RateLimiter:
    """Admits at most ``capacity`` calls in any trailing window.

    Keeps a FIFO of admission timestamps. When the window is full, the
    caller is suspended until the oldest admission falls out of the
    window (plus a small buffer). Never rejects, only delays.

    Not safe for concurrent admitters: one orchestrator task owns it.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_RATE_LIMIT,
        window_seconds: float = DEFAULT_RATE_WINDOW_SECONDS,
        buffer_seconds: float = DEFAULT_RATE_BUFFER_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """Initialize the rate limiter.

        Args:
            capacity: Maximum admissions per window.
            window_seconds: Length of the trailing window.
            buffer_seconds: Extra delay added to every computed wait.
            clock: Monotonic clock returning seconds.
            sleep: Coroutine used to suspend the caller.
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")

        self._capacity = capacity
        self._window_seconds = window_seconds
        self._buffer_seconds = buffer_seconds
        self._clock = clock
        self._sleep = sleep
        self._window: deque[float] = deque()

    @property
    def capacity(self) -> int:
        """Maximum admissions per window."""
        return self._capacity

    @property
    def window_seconds(self) -> float:
        """Length of the trailing window in seconds."""
        return self._window_seconds

    def __len__(self) -> int:
        return len(self._window)

    def required_wait(self) -> float:
        """Seconds the next admission would have to wait (0 if none)."""
        if len(self._window) < self._capacity:
            return 0.0
        elapsed = self._clock() - self._window[0]
        if elapsed >= self._window_seconds:
            return 0.0
        return self._window_seconds - elapsed + self._buffer_seconds

    async def admit(
        self,
        sleep: Optional[SleepFunc] = None,
        on_wait: Optional[Callable[[float], None]] = None,
    ) -> float:
        """Wait until a call may be issued, then record it.

        Args:
            sleep: Override for the sleep coroutine (e.g. a cancellable one).
            on_wait: Called with the wait duration before suspending.

        Returns:
            Total seconds spent waiting.
        """
        sleep = sleep or self._sleep
        waited = 0.0

        while len(self._window) >= self._capacity:
            wait = self.required_wait()
            if wait > 0:
                logger.info(f"Rate limit reached. Waiting {wait:.1f} seconds...")
                if on_wait is not None:
                    on_wait(wait)
                await sleep(wait)
                waited += wait
            # The window may have been reset while we slept
            if self._window:
                self._window.popleft()

        self._window.append(self._clock())
        return waited

    def reset(self) -> None:
        """Forget all recorded admissions.

        Called after a server-mandated cool-down: the server's counter has
        reset, so the local window no longer reflects reality.
        """
        if self._window:
            logger.debug(f"Clearing rate window ({len(self._window)} timestamps)")
        self._window.clear()

    def release(self) -> None:
        """Give back the most recent admission when its call was never issued."""
        if self._window:
            self._window.pop()
