"""Exception hierarchy for the chatlog grading system."""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from chatlog_grader.models.evaluation import EvaluationJob


class GraderError(Exception):
    """Base class for all chatlog grader errors."""


class ScoringError(GraderError):
    """A single call to the scoring service failed.

    Attributes:
        status: HTTP-style status code, if the service returned one.
        raw_response: Raw diagnostic payload (response body or model text).
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        raw_response: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.raw_response = raw_response


class ThrottledError(ScoringError):
    """The scoring service answered "too many requests"."""

    def __init__(
        self,
        message: str,
        retry_after: Optional[float] = None,
        status: Optional[int] = 429,
        raw_response: Optional[str] = None,
    ):
        super().__init__(message, status=status, raw_response=raw_response)
        self.retry_after = retry_after


class TransportError(ScoringError):
    """Network failure, timeout, or server-side error."""


class InvalidResponseError(ScoringError):
    """The service answered, but not with the four required dimensions."""


class RequestRejectedError(ScoringError):
    """The service rejected the request itself (non-429 client error)."""


class JobError(GraderError):
    """A job-level failure that aborts the whole run."""


class NoInputItemsError(JobError):
    """A job was started with an empty transcript list."""

    def __init__(self, message: str = "No chatlogs to evaluate"):
        super().__init__(message)


class AllItemsFailedError(JobError):
    """Every item in a finished job failed."""

    def __init__(self, job: "EvaluationJob"):
        super().__init__(
            f"No chatlogs were successfully evaluated ({job.failed} failed)"
        )
        self.job = job


class JobCancelledError(GraderError):
    """Raised inside wait points once a job has been cancelled."""


class NoDataError(GraderError):
    """No score records exist for the requested subject."""


class MixedScaleError(GraderError):
    """Resolution values in one record set use different scales."""


class RecordNotFoundError(GraderError):
    """A stored score record does not exist."""
