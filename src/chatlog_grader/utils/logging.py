"""Logging setup: Rich console output plus an optional debug log file."""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "chatlog_grader"

# -v count -> level for our own loggers
VERBOSITY_LEVELS = {
    0: logging.WARNING,
    1: logging.INFO,
    2: logging.DEBUG,
    3: logging.DEBUG,
}

# Transport and storage libraries log every request at INFO/DEBUG
CHATTY_LIBRARIES = ("httpx", "httpcore", "anthropic", "aiosqlite", "asyncio")

FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s [%(threadName)s] %(message)s"


def quiet_libraries(level: int = logging.WARNING) -> None:
    """Raise the threshold of third-party loggers."""
    for name in CHATTY_LIBRARIES:
        logging.getLogger(name).setLevel(level)


def setup_logging(
    verbosity: int = 1,
    log_file: Optional[Path] = None,
    console: Optional[Console] = None,
) -> logging.Logger:
    """Configure the ``chatlog_grader`` logger hierarchy.

    Pass the console used for the progress bar so log lines are drawn
    above the bar instead of through it. Throttling waits and per-chatlog
    failures log at WARNING and stay visible at every verbosity.

    Args:
        verbosity: 0=warnings only, 1=job lifecycle, 2=per-chatlog debug,
            3=debug including HTTP and database libraries.
        log_file: Optional file that always receives DEBUG records.
        console: Rich console to render on (stderr if omitted).

    Returns:
        The configured root logger of the package.
    """
    level = VERBOSITY_LEVELS.get(verbosity, logging.INFO)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG if log_file else level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        level=level,
        show_time=verbosity >= 2,
        show_path=verbosity >= 3,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=verbosity >= 3,
    )
    rich_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(rich_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    quiet_libraries(logging.DEBUG if verbosity >= 3 else logging.WARNING)

    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Get a logger inside the package hierarchy.

    Args:
        name: Dotted name; prefixed with ``chatlog_grader.`` when needed.

    Returns:
        Logger instance.
    """
    if name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
