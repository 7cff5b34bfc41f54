"""Pydantic configuration models for the chatlog grading system."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from chatlog_grader.config import defaults


class ScoringProviderType(str, Enum):
    """Supported scoring service backends."""

    GEMINI = "gemini"
    CLAUDE = "claude"


class ScoringConfig(BaseModel):
    """Scoring service configuration."""

    provider: ScoringProviderType = ScoringProviderType.GEMINI
    model: Optional[str] = None  # Provider default when unset
    timeout_seconds: float = Field(default=defaults.DEFAULT_SCORING_TIMEOUT_SECONDS, gt=0.0, le=600.0)
    temperature: float = Field(default=0.2, ge=0.0, le=1.0)
    max_output_tokens: int = Field(default=1024, ge=16, le=8192)
    prompt_template: str = defaults.DEFAULT_PROMPT_TEMPLATE
    rubric_text: str = defaults.DEFAULT_RUBRIC_TEXT

    @property
    def effective_model(self) -> str:
        """Configured model, or the provider's default."""
        if self.model:
            return self.model
        if self.provider == ScoringProviderType.CLAUDE:
            return defaults.DEFAULT_CLAUDE_MODEL
        return defaults.DEFAULT_GEMINI_MODEL


class RateLimitConfig(BaseModel):
    """Sliding-window limit on outbound scoring calls."""

    capacity: int = Field(default=defaults.DEFAULT_RATE_LIMIT, ge=1, le=10000)
    window_seconds: float = Field(default=defaults.DEFAULT_RATE_WINDOW_SECONDS, gt=0.0)
    buffer_seconds: float = Field(default=defaults.DEFAULT_RATE_BUFFER_SECONDS, ge=0.0)


class RetryConfig(BaseModel):
    """Throttling backoff and failure cool-down."""

    default_throttle_wait_seconds: float = Field(
        default=defaults.DEFAULT_THROTTLE_WAIT_SECONDS, ge=0.0
    )
    throttle_buffer_seconds: float = Field(
        default=defaults.DEFAULT_THROTTLE_BUFFER_SECONDS, ge=0.0
    )
    failure_cooldown_seconds: float = Field(
        default=defaults.DEFAULT_FAILURE_COOLDOWN_SECONDS, ge=0.0
    )


class RunConfig(BaseModel):
    """Pause/cancel gate behavior."""

    pause_poll_interval_seconds: float = Field(
        default=defaults.DEFAULT_PAUSE_POLL_SECONDS, gt=0.0, le=5.0
    )


class ProgressConfig(BaseModel):
    """Progress reporting."""

    eta_refresh_seconds: float = Field(default=defaults.DEFAULT_ETA_REFRESH_SECONDS, ge=0.0)
    show_progress: bool = True
    verbosity: int = Field(default=1, ge=0, le=3)


class ScoringWeights(BaseModel):
    """Weights for the single performance number."""

    coherence: float = Field(default=0.25, ge=0.0, le=1.0)
    politeness: float = Field(default=0.20, ge=0.0, le=1.0)
    relevance: float = Field(default=0.25, ge=0.0, le=1.0)
    resolution: float = Field(default=0.30, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_sum(self) -> "ScoringWeights":
        if not self.validate_sum():
            raise ValueError("scoring weights must sum to 1.0")
        return self

    def validate_sum(self) -> bool:
        """Check that weights sum to 1.0 (within floating point tolerance)."""
        total = self.coherence + self.politeness + self.relevance + self.resolution
        return abs(total - 1.0) < 0.001


class AggregationConfig(BaseModel):
    """Performance aggregation."""

    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    strict_resolution_scale: bool = True


class GraderConfig(BaseModel):
    """Root configuration model for the grading system."""

    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    run: RunConfig = Field(default_factory=RunConfig)
    progress: ProgressConfig = Field(default_factory=ProgressConfig)
    aggregation: AggregationConfig = Field(default_factory=AggregationConfig)

    # Score store
    store_path: str = defaults.DEFAULT_STORE_DB

    model_config = ConfigDict(extra="ignore")  # Ignore unknown fields in config file
