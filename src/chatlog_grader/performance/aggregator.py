"""Aggregation of stored score records into performance metrics."""

import logging
from typing import Any, Mapping, Optional, Sequence, Union

from chatlog_grader.config.models import ScoringWeights
from chatlog_grader.errors import MixedScaleError, NoDataError
from chatlog_grader.models.enums import ResolutionScale, ScoreDimension
from chatlog_grader.models.performance import PerformanceMetrics, ScoreRecord

logger = logging.getLogger("chatlog_grader.performance.aggregator")

RecordLike = Union[ScoreRecord, Mapping[str, Any]]

# Resolution on the five-point scale is divided by this to reach 0-1
FIVE_POINT_MAX = 5.0


def _value(record: RecordLike, dimension: ScoreDimension) -> float:
    if isinstance(record, Mapping):
        return float(record[dimension.value])
    return float(getattr(record, dimension.value))


class ScoreAggregator:
    """Turns one subject's score records into averaged, weighted metrics.

    The resolution scale (0-1 or 0-5) is inferred once per call from the
    first record. In strict mode a set that the first record declares to
    be 0-1 but that contains a value above 1 raises MixedScaleError
    instead of producing a silently wrong average.
    """

    def __init__(
        self,
        weights: Optional[ScoringWeights] = None,
        strict_scale: bool = True,
    ):
        """Initialize the aggregator.

        Args:
            weights: Per-dimension weights (0.25/0.20/0.25/0.30 by default).
            strict_scale: Reject mixed-scale resolution values.
        """
        self._weights = weights or ScoringWeights()
        self._strict_scale = strict_scale

    def detect_scale(self, records: Sequence[RecordLike]) -> ResolutionScale:
        """Infer the resolution scale from the first record.

        Args:
            records: Non-empty record sequence.

        Returns:
            The scale the whole set is treated as.

        Raises:
            MixedScaleError: In strict mode, if later records contradict
                a 0-1 first sample.
        """
        first = _value(records[0], ScoreDimension.RESOLUTION)
        if first > 1:
            return ResolutionScale.FIVE_POINT

        if self._strict_scale:
            offending = [
                i for i, r in enumerate(records)
                if _value(r, ScoreDimension.RESOLUTION) > 1
            ]
            if offending:
                raise MixedScaleError(
                    f"Resolution values mix 0-1 and 0-5 scales "
                    f"(first record is {first}, records {offending[:5]} exceed 1)"
                )

        return ResolutionScale.UNIT

    def aggregate(self, records: Sequence[RecordLike]) -> PerformanceMetrics:
        """Compute per-dimension averages and the weighted average score.

        Args:
            records: Score records of one subject, oldest first.

        Returns:
            PerformanceMetrics with values rounded to two decimals.

        Raises:
            NoDataError: If ``records`` is empty.
            MixedScaleError: In strict mode, on mixed resolution scales.
        """
        if not records:
            raise NoDataError("No evaluations found for this subject")

        total = len(records)
        scale = self.detect_scale(records)

        averages = {
            dimension: sum(_value(r, dimension) for r in records) / total
            for dimension in ScoreDimension
        }

        resolution = averages[ScoreDimension.RESOLUTION]
        if scale == ResolutionScale.FIVE_POINT:
            resolution = resolution / FIVE_POINT_MAX

        w = self._weights
        average_score = (
            averages[ScoreDimension.COHERENCE] * w.coherence
            + averages[ScoreDimension.POLITENESS] * w.politeness
            + averages[ScoreDimension.RELEVANCE] * w.relevance
            + resolution * FIVE_POINT_MAX * w.resolution
        )

        logger.debug(
            f"Aggregated {total} records (resolution scale {scale.value}): "
            f"average {average_score:.2f}"
        )

        return PerformanceMetrics(
            coherence=round(averages[ScoreDimension.COHERENCE], 2),
            politeness=round(averages[ScoreDimension.POLITENESS], 2),
            relevance=round(averages[ScoreDimension.RELEVANCE], 2),
            resolution=round(resolution, 2),
            average_score=round(average_score, 2),
            total_evaluations=total,
            resolution_scale=scale,
        )
