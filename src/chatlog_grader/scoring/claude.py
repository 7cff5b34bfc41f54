"""Claude/Anthropic scoring client."""

import logging
from typing import Optional

from anthropic import (
    APIConnectionError,
    APIStatusError,
    AsyncAnthropic,
    RateLimitError,
)

from chatlog_grader.config.defaults import (
    DEFAULT_CLAUDE_MODEL,
    DEFAULT_PROMPT_TEMPLATE,
    DEFAULT_RUBRIC_TEXT,
    DEFAULT_SCORING_TIMEOUT_SECONDS,
)
from chatlog_grader.errors import (
    InvalidResponseError,
    RequestRejectedError,
    ThrottledError,
    TransportError,
)
from chatlog_grader.models.evaluation import ScoreSet
from chatlog_grader.scoring.prompts import build_scoring_prompt
from chatlog_grader.scoring.response_parser import parse_score_response

logger = logging.getLogger("chatlog_grader.scoring.claude")


def _retry_after_seconds(error: RateLimitError) -> Optional[float]:
    """Read the retry-after header from a 429 response, if present."""
    value = error.response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class ClaudeScoringClient:
    """Scores transcripts with a Claude model.

    The SDK's built-in retries are disabled; throttling is left to the
    orchestrator's retry coordinator.
    """

    def __init__(
        self,
        model: str = DEFAULT_CLAUDE_MODEL,
        api_key: Optional[str] = None,
        prompt_template: str = DEFAULT_PROMPT_TEMPLATE,
        rubric_text: str = DEFAULT_RUBRIC_TEXT,
        timeout: float = DEFAULT_SCORING_TIMEOUT_SECONDS,
        temperature: float = 0.2,
        max_output_tokens: int = 1024,
        client: Optional[AsyncAnthropic] = None,
    ):
        """Initialize the Claude client.

        Args:
            model: Claude model ID to use.
            api_key: Anthropic API key (defaults to ANTHROPIC_API_KEY env var).
            prompt_template: Template with {chatlog_text} and {rubric_text}.
            rubric_text: Scoring rubric.
            timeout: Per-request timeout in seconds.
            temperature: Sampling temperature.
            max_output_tokens: Maximum tokens in the model's reply.
            client: Optional preconfigured SDK client.
        """
        self._client = client or AsyncAnthropic(
            api_key=api_key,
            timeout=timeout,
            max_retries=0,
        )
        self._model = model
        self._prompt_template = prompt_template
        self._rubric_text = rubric_text
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens

    @property
    def model_name(self) -> str:
        """Return the model identifier."""
        return self._model

    async def score(self, transcript: str) -> ScoreSet:
        """Score one transcript.

        Args:
            transcript: Conversation text.

        Returns:
            Parsed ScoreSet.
        """
        prompt = build_scoring_prompt(transcript, self._prompt_template, self._rubric_text)

        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=self._max_output_tokens,
                temperature=self._temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except RateLimitError as e:
            raise ThrottledError(
                f"429 Too Many Requests: {e.message}",
                retry_after=_retry_after_seconds(e),
                raw_response=e.response.text,
            ) from e
        except APIConnectionError as e:
            # Also covers APITimeoutError
            raise TransportError(f"Scoring request failed: {e}") from e
        except APIStatusError as e:
            if e.status_code >= 500:
                raise TransportError(
                    f"Claude server error {e.status_code}",
                    status=e.status_code,
                    raw_response=e.response.text,
                ) from e
            raise RequestRejectedError(
                f"Claude rejected request with status {e.status_code}",
                status=e.status_code,
                raw_response=e.response.text,
            ) from e

        content = ""
        for block in response.content:
            if hasattr(block, "text"):
                content += block.text

        if not content.strip():
            raise InvalidResponseError("Scoring response is empty", raw_response=content)

        return parse_score_response(content)

    async def aclose(self) -> None:
        """Close the underlying SDK client."""
        await self._client.close()
