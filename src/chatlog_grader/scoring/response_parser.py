"""Parse and validate scoring service responses."""

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from chatlog_grader.errors import InvalidResponseError
from chatlog_grader.models.enums import ScoreDimension
from chatlog_grader.models.evaluation import ScoreSet

logger = logging.getLogger("chatlog_grader.scoring.response_parser")


def extract_json_from_response(content: str) -> str:
    """Extract JSON from a model response that may contain markdown.

    Args:
        content: Raw response text.

    Returns:
        Extracted JSON string.
    """
    content = content.strip()

    # Try to find JSON in code blocks
    json_block_pattern = r"```(?:json)?\s*\n?([\s\S]*?)\n?```"
    matches = re.findall(json_block_pattern, content)
    if matches:
        return matches[0].strip()

    # Otherwise take the first balanced {...} object
    start = content.find("{")
    if start == -1:
        return content

    brace_count = 0
    for i in range(start, len(content)):
        char = content[i]
        if char == "{":
            brace_count += 1
        elif char == "}":
            brace_count -= 1
            if brace_count == 0:
                return content[start : i + 1]

    return content[start:]


def _coerce_int(value: Any) -> Any:
    """Convert integer-like values ("4", 4.0) to int; leave others for validation."""
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return value


def parse_score_response(content: str) -> ScoreSet:
    """Parse a model response into the four score dimensions.

    Keys are matched case-insensitively, so both ``"Coherence"`` and
    ``"coherence"`` are accepted.

    Args:
        content: Raw response text from the scoring model.

    Returns:
        Validated ScoreSet.

    Raises:
        InvalidResponseError: If the response cannot be parsed or a
            dimension is missing or out of range.
    """
    json_str = extract_json_from_response(content)

    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        logger.debug(f"Content was: {content[:500]}")
        raise InvalidResponseError(
            f"Invalid JSON in scoring response: {e}",
            raw_response=content,
        ) from e

    if not isinstance(data, dict):
        raise InvalidResponseError(
            "Scoring response is not a JSON object",
            raw_response=content,
        )

    lowered = {str(key).strip().lower(): value for key, value in data.items()}
    missing = [d.value for d in ScoreDimension if d.value not in lowered]
    if missing:
        raise InvalidResponseError(
            f"Scoring response missing dimensions: {', '.join(missing)}",
            raw_response=content,
        )

    try:
        return ScoreSet.model_validate(
            {d.value: _coerce_int(lowered[d.value]) for d in ScoreDimension}
        )
    except ValidationError as e:
        raise InvalidResponseError(
            f"Invalid score values: {e.error_count()} error(s)",
            raw_response=content,
        ) from e
