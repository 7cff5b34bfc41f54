"""Performance metrics derived from stored scores."""

from chatlog_grader.performance.aggregator import ScoreAggregator

__all__ = ["ScoreAggregator"]
