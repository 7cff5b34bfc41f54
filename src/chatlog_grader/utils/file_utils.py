"""File utilities: reading transcript batches from disk."""

import csv
import io
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import aiofiles

from chatlog_grader.models.evaluation import EvaluationItem

logger = logging.getLogger("chatlog_grader.utils.file_utils")

# Accepted header names, first match wins
TRANSCRIPT_COLUMNS = ("chatlog", "transcript", "conversation")
SCENARIO_COLUMNS = ("scenario",)
SHIFT_COLUMNS = ("shift",)
TIMESTAMP_COLUMNS = ("datetime", "date_time", "timestamp")


async def read_file_async(path: Path, encoding: str = "utf-8") -> str:
    """Read a file asynchronously.

    Args:
        path: Path to the file.
        encoding: File encoding.

    Returns:
        File contents as string.

    Raises:
        FileNotFoundError: If the file doesn't exist.
    """
    async with aiofiles.open(path, "r", encoding=encoding) as f:
        return await f.read()


def _pick(row: dict[str, str], names: tuple[str, ...]) -> Optional[str]:
    for name in names:
        value = row.get(name)
        if value is not None and value.strip():
            return value.strip()
    return None


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        logger.debug(f"Ignoring unparseable timestamp: {value!r}")
        return None


def parse_items_csv(content: str) -> list[EvaluationItem]:
    """Turn CSV text into evaluation items.

    Header names are matched case-insensitively. Rows without a transcript
    are skipped. This is a reader, not a validator.

    Args:
        content: CSV text with a header row.

    Returns:
        Items in file order.
    """
    reader = csv.DictReader(io.StringIO(content))
    items = []

    for line_number, raw_row in enumerate(reader, start=2):
        row = {
            (key or "").strip().lower(): (value or "")
            for key, value in raw_row.items()
            if isinstance(value, str)
        }
        transcript = _pick(row, TRANSCRIPT_COLUMNS)
        if transcript is None:
            logger.debug(f"Skipping CSV line {line_number}: no transcript")
            continue

        items.append(
            EvaluationItem(
                transcript=transcript,
                scenario=_pick(row, SCENARIO_COLUMNS),
                shift=_pick(row, SHIFT_COLUMNS),
                timestamp=_parse_timestamp(_pick(row, TIMESTAMP_COLUMNS)),
            )
        )

    return items


async def load_items_from_csv(path: Path) -> list[EvaluationItem]:
    """Read evaluation items from a CSV file.

    Args:
        path: CSV file path.

    Returns:
        Items in file order.
    """
    content = await read_file_async(path)
    items = parse_items_csv(content)
    logger.info(f"Loaded {len(items)} chatlogs from {path}")
    return items
