"""Google Gemini scoring client over the generateContent REST API."""

import logging
import os
from typing import Optional

import httpx

from chatlog_grader.config.defaults import (
    DEFAULT_GEMINI_MODEL,
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

logger = logging.getLogger("chatlog_grader.scoring.gemini")

DEFAULT_GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta"

API_KEY_ENV_VARS = ("GOOGLE_API_KEY", "GEMINI_API_KEY")


class GeminiScoringClient:
    """Scores transcripts with a Gemini model.

    A 429 answer is raised as ThrottledError with the full response body as
    its message, so the ``"retryDelay": "Ns"`` hint Google embeds in
    RetryInfo details stays available to the retry coordinator.
    """

    def __init__(
        self,
        model: str = DEFAULT_GEMINI_MODEL,
        api_key: Optional[str] = None,
        prompt_template: str = DEFAULT_PROMPT_TEMPLATE,
        rubric_text: str = DEFAULT_RUBRIC_TEXT,
        timeout: float = DEFAULT_SCORING_TIMEOUT_SECONDS,
        temperature: float = 0.2,
        max_output_tokens: int = 1024,
        base_url: str = DEFAULT_GEMINI_URL,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the Gemini client.

        Args:
            model: Gemini model ID (with or without the "models/" prefix).
            api_key: API key (defaults to GOOGLE_API_KEY or GEMINI_API_KEY).
            prompt_template: Template with {chatlog_text} and {rubric_text}.
            rubric_text: Scoring rubric.
            timeout: Per-request timeout in seconds.
            temperature: Sampling temperature.
            max_output_tokens: Maximum tokens in the model's reply.
            base_url: API base URL.
            http_client: Optional preconfigured httpx client.

        Raises:
            ValueError: If no API key is available.
        """
        api_key = api_key or next(
            (os.environ[name] for name in API_KEY_ENV_VARS if os.environ.get(name)),
            None,
        )
        if not api_key:
            raise ValueError(
                "Gemini API key is required (set GOOGLE_API_KEY or GEMINI_API_KEY)"
            )

        self._api_key = api_key
        self._model = model.removeprefix("models/")
        self._prompt_template = prompt_template
        self._rubric_text = rubric_text
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        self._base_url = base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

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
            response = await self._client.post(
                f"{self._base_url}/models/{self._model}:generateContent",
                headers={"x-goog-api-key": self._api_key},
                json={
                    "contents": [{"parts": [{"text": prompt}]}],
                    "generationConfig": {
                        "temperature": self._temperature,
                        "maxOutputTokens": self._max_output_tokens,
                    },
                },
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Scoring request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Scoring request failed: {e}") from e

        self._raise_for_status(response)

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponseError(
                f"Scoring response is not JSON: {e}",
                status=response.status_code,
                raw_response=response.text,
            ) from e

        return parse_score_response(self._extract_text(data, response.text))

    def _raise_for_status(self, response: httpx.Response) -> None:
        """Map HTTP error statuses onto the scoring error taxonomy."""
        status = response.status_code
        if status < 400:
            return

        body = response.text
        if status == 429:
            logger.debug(f"Gemini throttled request: {body[:300]}")
            raise ThrottledError(f"429 Too Many Requests: {body}", raw_response=body)
        if status >= 500:
            raise TransportError(f"Gemini server error {status}", status=status, raw_response=body)
        raise RequestRejectedError(
            f"Gemini rejected request with status {status}",
            status=status,
            raw_response=body,
        )

    @staticmethod
    def _extract_text(data: dict, raw: str) -> str:
        """Join the text parts of the first candidate."""
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise InvalidResponseError(
                "Scoring response has no candidate content",
                raw_response=raw,
            ) from e

        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        if not text.strip():
            raise InvalidResponseError("Scoring response is empty", raw_response=raw)
        return text

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
