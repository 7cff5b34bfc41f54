"""Configuration management for the chatlog grading system."""

from chatlog_grader.config.loader import load_config
from chatlog_grader.config.models import (
    AggregationConfig,
    GraderConfig,
    ProgressConfig,
    RateLimitConfig,
    RetryConfig,
    RunConfig,
    ScoringConfig,
    ScoringProviderType,
    ScoringWeights,
)

__all__ = [
    "AggregationConfig",
    "GraderConfig",
    "ProgressConfig",
    "RateLimitConfig",
    "RetryConfig",
    "RunConfig",
    "ScoringConfig",
    "ScoringProviderType",
    "ScoringWeights",
    "load_config",
]
