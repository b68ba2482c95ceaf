"""Running score aggregation helpers."""
from __future__ import annotations

from typing import Dict, Mapping

from .models import (
    DIMENSIONS,
    SCORE_MAX,
    SCORE_MIN,
    DimensionTally,
    ScoreAggregate,
    TurnScores,
    round_half_up,
)


def clamp_score(value: int) -> int:
    return max(SCORE_MIN, min(SCORE_MAX, int(value)))


def apply_scores(aggregate: ScoreAggregate, scores: TurnScores) -> ScoreAggregate:
    """Fold one scored turn into the aggregate and return the new aggregate.

    Every dimension's count moves by exactly one so counts always equal the
    number of scored answers.
    """

    raw = scores.as_dict()
    updated: Dict[str, DimensionTally] = {}
    for name in DIMENSIONS:
        tally = aggregate.dimensions.get(name, DimensionTally())
        updated[name] = DimensionTally(count=tally.count + 1, sum=tally.sum + clamp_score(raw[name]))
    return ScoreAggregate(dimensions=updated)


def overall_score(means: Mapping[str, int]) -> int:
    """Half-up mean of the per-dimension means; 0 when nothing was scored."""

    values = [int(means.get(name, 0)) for name in DIMENSIONS]
    if not any(values):
        return 0
    return round_half_up(sum(values), len(values))


__all__ = ["apply_scores", "clamp_score", "overall_score", "round_half_up"]
