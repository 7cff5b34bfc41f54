"""Factory function for creating scoring clients."""

from typing import Optional

from chatlog_grader.config.models import ScoringConfig, ScoringProviderType
from chatlog_grader.scoring.claude import ClaudeScoringClient
from chatlog_grader.scoring.gemini import GeminiScoringClient
from chatlog_grader.scoring.protocol import ScoringClient


def create_scoring_client(
    config: Optional[ScoringConfig] = None,
    provider_type: Optional[ScoringProviderType] = None,
    model: Optional[str] = None,
    api_key: Optional[str] = None,
) -> ScoringClient:
    """Create a scoring client based on configuration.

    Args:
        config: ScoringConfig with provider settings.
        provider_type: Override provider type.
        model: Override model name.
        api_key: Override API key.

    Returns:
        ScoringClient instance.

    Raises:
        ValueError: If provider type is not supported.
    """
    if config is None:
        config = ScoringConfig()

    effective_provider = provider_type or config.provider
    effective_model = model or config.model
    if effective_model is None:
        effective_model = config.model_copy(
            update={"provider": effective_provider}
        ).effective_model

    common = dict(
        model=effective_model,
        api_key=api_key,
        prompt_template=config.prompt_template,
        rubric_text=config.rubric_text,
        timeout=config.timeout_seconds,
        temperature=config.temperature,
        max_output_tokens=config.max_output_tokens,
    )

    if effective_provider == ScoringProviderType.GEMINI:
        return GeminiScoringClient(**common)
    elif effective_provider == ScoringProviderType.CLAUDE:
        return ClaudeScoringClient(**common)
    else:
        raise ValueError(f"Unsupported scoring provider: {effective_provider}")


def get_available_providers() -> list[str]:
    """Get list of available provider types."""
    return [p.value for p in ScoringProviderType]
