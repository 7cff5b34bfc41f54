"""Shared utilities for the chatlog grading system."""

from chatlog_grader.utils.file_utils import (
    load_items_from_csv,
    parse_items_csv,
    read_file_async,
)
from chatlog_grader.utils.logging import get_logger, setup_logging

__all__ = [
    "get_logger",
    "load_items_from_csv",
    "parse_items_csv",
    "read_file_async",
    "setup_logging",
]
