"""Protocol definition for scoring service clients."""

from typing import Protocol, runtime_checkable

from chatlog_grader.models.evaluation import ScoreSet


@runtime_checkable
class ScoringClient(Protocol):
    """Protocol for clients of the external quality-scoring service.

    A client owns the model identifier, prompt template and rubric, and
    turns one transcript into a ScoreSet. Failures are raised as
    ``ScoringError`` subclasses:

    - ``ThrottledError`` when the service says "too many requests"
    - ``TransportError`` for network failures, timeouts and 5xx
    - ``InvalidResponseError`` when the reply lacks the four dimensions
    - ``RequestRejectedError`` for other client errors

    Each call is bounded by the client's own timeout.
    """

    @property
    def model_name(self) -> str:
        """Return the model identifier being used."""
        ...

    async def score(self, transcript: str) -> ScoreSet:
        """Score one transcript.

        Args:
            transcript: Full text of the conversation.

        Returns:
            The four quality dimensions.
        """
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        ...
