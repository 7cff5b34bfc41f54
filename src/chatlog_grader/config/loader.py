"""Configuration loading and merging logic."""

import json
import os
from pathlib import Path
from typing import Any, Optional

from chatlog_grader.config.defaults import CONFIG_SEARCH_PATHS
from chatlog_grader.config.models import GraderConfig


def find_config_file(explicit_path: Optional[Path] = None) -> Optional[Path]:
    """Find the configuration file.

    Args:
        explicit_path: Explicitly specified config file path (from CLI).

    Returns:
        Path to config file if found, None otherwise.
    """
    if explicit_path is not None:
        if explicit_path.exists():
            return explicit_path
        raise FileNotFoundError(f"Config file not found: {explicit_path}")

    for search_path in CONFIG_SEARCH_PATHS:
        if search_path.exists():
            return search_path

    return None


def load_config_file(path: Path) -> dict[str, Any]:
    """Load configuration from a JSON file."""
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def merge_cli_overrides(
    config: GraderConfig,
    provider: Optional[str] = None,
    model: Optional[str] = None,
    rate_limit: Optional[int] = None,
    store_path: Optional[str] = None,
    verbose: Optional[int] = None,
    show_progress: Optional[bool] = None,
) -> GraderConfig:
    """Merge CLI overrides into the configuration.

    CLI arguments take precedence over config file values.

    Args:
        config: Base configuration from file.
        provider: Scoring provider override.
        model: Scoring model override.
        rate_limit: Requests-per-window override.
        store_path: Score store database override.
        verbose: Verbosity level override.
        show_progress: Progress bar override.

    Returns:
        Configuration with CLI overrides applied.
    """
    data = config.model_dump()

    if provider is not None:
        data["scoring"]["provider"] = provider
    if model is not None:
        data["scoring"]["model"] = model
    if rate_limit is not None:
        data["rate_limit"]["capacity"] = rate_limit
    if store_path is not None:
        data["store_path"] = store_path
    if verbose is not None:
        data["progress"]["verbosity"] = verbose
    if show_progress is not None:
        data["progress"]["show_progress"] = show_progress

    return GraderConfig.model_validate(data)


def load_config(
    config_path: Optional[Path] = None,
    **cli_overrides: Any,
) -> GraderConfig:
    """Load configuration with CLI overrides.

    Configuration is loaded from the following sources (in order of priority):
    1. CLI arguments (highest priority)
    2. Environment variables
    3. Config file (if found)
    4. Default values (lowest priority)

    API keys are never read from the config file; scoring clients pick
    them up from the environment.

    Args:
        config_path: Explicit config file path (from --config CLI option).
        **cli_overrides: CLI argument overrides.

    Returns:
        Merged configuration object.
    """
    config = GraderConfig()

    found_config = find_config_file(config_path)
    if found_config is not None:
        config = GraderConfig.model_validate(load_config_file(found_config))

    if model := os.environ.get("CHATLOG_GRADER_MODEL"):
        if cli_overrides.get("model") is None:
            cli_overrides["model"] = model

    if provider := os.environ.get("CHATLOG_GRADER_PROVIDER"):
        if cli_overrides.get("provider") is None:
            cli_overrides["provider"] = provider

    return merge_cli_overrides(config, **cli_overrides)
