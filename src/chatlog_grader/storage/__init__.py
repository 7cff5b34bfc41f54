"""Persistence of scored conversations."""

from chatlog_grader.storage.score_store import ScoreStore

__all__ = ["ScoreStore"]
