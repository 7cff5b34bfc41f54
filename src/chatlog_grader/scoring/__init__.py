"""Clients for the external quality-scoring service."""

from chatlog_grader.scoring.claude import ClaudeScoringClient
from chatlog_grader.scoring.factory import create_scoring_client, get_available_providers
from chatlog_grader.scoring.gemini import GeminiScoringClient
from chatlog_grader.scoring.protocol import ScoringClient

__all__ = [
    "ClaudeScoringClient",
    "GeminiScoringClient",
    "ScoringClient",
    "create_scoring_client",
    "get_available_providers",
]
