"""Explainable per-change importance scoring."""

from __future__ import annotations

import math
from collections.abc import Sequence

from diff_sense.config import ScoringConfig
from diff_sense.models import ClassifiedChange, ScoredChange, ScoreFactor

SCORE_MIN = 0.0
SCORE_MAX = 10.0
BREAKING_VALUE = 3.0
NON_VERSIONING_WEIGHT_FACTOR = 0.2

FACTOR_NAMES = (
    "lines_of_code",
    "semantic_importance",
    "breaking_penalty_bonus",
    "dependency_fanout",
)


class ScoringSystem:
    """Weighted sum over four factors, clamped to [0, 10].

    Every factor is recorded even when its value is zero, so that
    ``total_from_factors(scored.score_factors)`` always reproduces
    ``scored.score``. Non-versioning files are scored with every weight
    scaled down, and the scaled weight is what gets recorded.
    """

    def __init__(self, weights: ScoringConfig | None = None) -> None:
        self._weights = weights or ScoringConfig()

    def score(self, changes: Sequence[ClassifiedChange]) -> list[ScoredChange]:
        return [self.score_one(change) for change in changes]

    def score_one(self, change: ClassifiedChange) -> ScoredChange:
        factors = self.factors(change)
        return ScoredChange(
            classified=change,
            score=total_from_factors(factors),
            score_factors=factors,
        )

    def factors(self, change: ClassifiedChange) -> tuple[ScoreFactor, ...]:
        metadata = change.metadata
        values = {
            "lines_of_code": math.log2(1 + metadata.lines_added + metadata.lines_removed),
            "semantic_importance": float(
                sum(1 for delta in change.semantic_changes if delta.severity == "high")
            ),
            "breaking_penalty_bonus": BREAKING_VALUE if change.breaking else 0.0,
            "dependency_fanout": float(len(change.dependencies)),
        }
        scale = NON_VERSIONING_WEIGHT_FACTOR if change.non_versioning else 1.0
        weights = self._weights.to_dict()
        return tuple(
            ScoreFactor(name=name, value=round(values[name], 6), weight=weights[name] * scale)
            for name in FACTOR_NAMES
        )


def total_from_factors(factors: Sequence[ScoreFactor]) -> float:
    """Sum factor contributions and clamp into the score range."""
    total = sum(factor.contribution for factor in factors)
    return round(_clamp(total), 4)


def _clamp(value: float, lower: float = SCORE_MIN, upper: float = SCORE_MAX) -> float:
    return max(lower, min(upper, value))
