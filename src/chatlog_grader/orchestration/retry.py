"""Throttling detection, advised backoff, and failure classification."""

import asyncio
import logging
import re
from typing import Awaitable, Callable, Optional, TypeVar

from pydantic import ValidationError
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_never

from chatlog_grader.config.defaults import (
    DEFAULT_FAILURE_COOLDOWN_SECONDS,
    DEFAULT_THROTTLE_BUFFER_SECONDS,
    DEFAULT_THROTTLE_WAIT_SECONDS,
)
from chatlog_grader.errors import (
    InvalidResponseError,
    RequestRejectedError,
    ScoringError,
    ThrottledError,
    TransportError,
)
from chatlog_grader.models.enums import ErrorKind
from chatlog_grader.models.evaluation import ItemError
from chatlog_grader.orchestration.rate_limiter import RateLimiter, SleepFunc

logger = logging.getLogger("chatlog_grader.orchestration.retry")

T = TypeVar("T")

# Google RetryInfo detail, e.g. "retryDelay": "37s"
RETRY_DELAY_PATTERN = re.compile(r'"retryDelay"\s*:\s*"(\d+(?:\.\d+)?)s"')

TOO_MANY_REQUESTS = 429

ThrottleListener = Callable[[float, BaseException], None]


class RetryCoordinator:
    """Decides how throttled calls are retried and how failures are reported.

    Throttled calls are retried indefinitely for the same item, each time
    after the server-advised wait (or a default) plus a buffer, with the
    rate window cleared before the wait. Any other failure ends the item.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        default_wait_seconds: float = DEFAULT_THROTTLE_WAIT_SECONDS,
        buffer_seconds: float = DEFAULT_THROTTLE_BUFFER_SECONDS,
        failure_cooldown_seconds: float = DEFAULT_FAILURE_COOLDOWN_SECONDS,
    ):
        """Initialize the coordinator.

        Args:
            rate_limiter: Limiter whose window is cleared on throttling.
            default_wait_seconds: Wait used when the service gives no hint.
            buffer_seconds: Added to every throttling wait.
            failure_cooldown_seconds: Pause after a non-throttling failure.
        """
        self._limiter = rate_limiter
        self._default_wait = default_wait_seconds
        self._buffer = buffer_seconds
        self._failure_cooldown = failure_cooldown_seconds
        self.throttle_count = 0

    @staticmethod
    def is_throttling(error: BaseException) -> bool:
        """Whether a failure means "too many requests"."""
        if isinstance(error, ThrottledError):
            return True
        return isinstance(error, ScoringError) and error.status == TOO_MANY_REQUESTS

    def advised_wait(self, error: BaseException) -> float:
        """Server-advised wait in seconds, or the default.

        Prefers an explicit ``retry_after`` on the error, then a
        ``"retryDelay": "Ns"`` value embedded in its message or payload.
        """
        retry_after = getattr(error, "retry_after", None)
        if retry_after is not None and retry_after >= 0:
            return float(retry_after)

        texts = [str(error), getattr(error, "raw_response", None) or ""]
        for text in texts:
            match = RETRY_DELAY_PATTERN.search(text)
            if match:
                return float(match.group(1))

        return self._default_wait

    def backoff_seconds(self, error: BaseException) -> float:
        """Total wait before re-attempting a throttled item."""
        return self.advised_wait(error) + self._buffer

    def _wait_for(self, retry_state: RetryCallState) -> float:
        return self.backoff_seconds(retry_state.outcome.exception())

    def _make_before_sleep(
        self,
        on_throttle: Optional[ThrottleListener],
    ) -> Callable[[RetryCallState], None]:
        def before_sleep(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception()
            wait = retry_state.next_action.sleep if retry_state.next_action else self.backoff_seconds(error)
            self.throttle_count += 1
            self._limiter.reset()
            logger.warning(
                f"API quota exceeded. Waiting {wait:.0f} seconds before retrying "
                f"(attempt {retry_state.attempt_number})"
            )
            if on_throttle is not None:
                on_throttle(wait, error)

        return before_sleep

    async def call(
        self,
        fn: Callable[[], Awaitable[T]],
        sleep: SleepFunc = asyncio.sleep,
        on_throttle: Optional[ThrottleListener] = None,
    ) -> T:
        """Run ``fn``, re-running it after every throttling failure.

        Args:
            fn: Zero-argument coroutine function making one attempt.
            sleep: Coroutine used for the backoff wait.
            on_throttle: Called with (wait_seconds, error) before each wait.

        Returns:
            Result of the first non-throttled attempt.

        Raises:
            Exception: Whatever non-throttling error ``fn`` raised.
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception(self.is_throttling),
            wait=self._wait_for,
            stop=stop_never,
            sleep=sleep,
            before_sleep=self._make_before_sleep(on_throttle),
            reraise=True,
        )
        return await retrying(fn)

    async def cool_down(self, sleep: SleepFunc = asyncio.sleep) -> None:
        """Short pause after a terminal failure before the next item."""
        if self._failure_cooldown > 0:
            await sleep(self._failure_cooldown)

    @staticmethod
    def classify(error: BaseException) -> ItemError:
        """Turn a terminal per-item failure into an ItemError."""
        status = getattr(error, "status", None)
        raw_response = getattr(error, "raw_response", None)

        if isinstance(error, InvalidResponseError):
            kind = ErrorKind.INVALID_RESPONSE
        elif isinstance(error, RequestRejectedError):
            kind = ErrorKind.VALIDATION
        elif isinstance(error, TransportError):
            kind = ErrorKind.TRANSPORT
        elif isinstance(error, (ValidationError, ValueError)):
            kind = ErrorKind.INVALID_RESPONSE
        else:
            # Timeouts, OSError and anything unexpected from the transport
            kind = ErrorKind.TRANSPORT

        return ItemError(
            kind=kind,
            message=str(error) or type(error).__name__,
            status=status if isinstance(status, int) else None,
            raw_response=raw_response,
        )
