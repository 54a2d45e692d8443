"""
Benchmark engine.

Places a performance score (repetition count or event metric) against
age/gender norms:
1. Age -> age group bucket
2. (test kind, age group, gender) -> tier thresholds, falling back to "any"
3. Piecewise-linear percentile between tier anchors
4. Rating tier and its fixed recommendation list

A score exactly on a tier threshold maps exactly to that tier's anchor
percentile. Lower-is-better norm tables are handled by mirroring the scale.
"""

import logging
from typing import Dict, List, Tuple

from fitassess.errors import BenchmarkUnavailable
from fitassess.models.assessment import RatingTier
from fitassess.schemas.options import NormsTable, NormThresholds
from fitassess.schemas.result import BenchmarkResult

logger = logging.getLogger(__name__)

# Percentile reached exactly at each tier's lower threshold
TIER_PERCENTILES: Dict[RatingTier, float] = {
    RatingTier.POOR: 25.0,
    RatingTier.AVERAGE: 50.0,
    RatingTier.GOOD: 75.0,
    RatingTier.EXCELLENT: 95.0,
}

TIER_RECOMMENDATIONS: Dict[RatingTier, Tuple[str, ...]] = {
    RatingTier.EXCELLENT: (
        "Maintain current training routine",
        "Focus on consistency",
        "Consider advanced training techniques",
    ),
    RatingTier.GOOD: (
        "Continue regular training",
        "Work on specific weaknesses",
        "Increase training intensity gradually",
    ),
    RatingTier.AVERAGE: (
        "Increase training frequency",
        "Focus on technique improvement",
        "Add strength and conditioning",
    ),
    RatingTier.POOR: (
        "Develop structured training plan",
        "Work with coach for technique",
        "Focus on fundamental skills",
    ),
}


def age_group(age: int) -> str:
    """Map an age in years to its norm bucket."""
    if age < 13:
        return "under-13"
    if age <= 15:
        return "13-15"
    if age <= 18:
        return "16-18"
    if age <= 24:
        return "19-24"
    return "25-plus"


def _anchors(thresholds: NormThresholds) -> List[Tuple[float, float]]:
    """(threshold, percentile) pairs on an increasing scale."""
    sign = -1.0 if thresholds.lower_is_better else 1.0
    return [
        (sign * thresholds.poor, TIER_PERCENTILES[RatingTier.POOR]),
        (sign * thresholds.average, TIER_PERCENTILES[RatingTier.AVERAGE]),
        (sign * thresholds.good, TIER_PERCENTILES[RatingTier.GOOD]),
        (sign * thresholds.excellent, TIER_PERCENTILES[RatingTier.EXCELLENT]),
    ]


def percentile_for(score: float, thresholds: NormThresholds) -> float:
    """Piecewise-linear percentile in [0, 100]."""
    value = -score if thresholds.lower_is_better else score
    anchors = _anchors(thresholds)

    (poor, p_poor), (average, _) = anchors[0], anchors[1]
    (good, _), (excellent, p_excellent) = anchors[2], anchors[3]

    if value < poor:
        # Falls to 0 over one poor->average span
        return max(0.0, p_poor * (1.0 - (poor - value) / (average - poor)))
    if value >= excellent:
        # Rises to 100 over one good->excellent span
        return min(100.0, p_excellent + (100.0 - p_excellent) * (value - excellent) / (excellent - good))

    for (lo, p_lo), (hi, p_hi) in zip(anchors, anchors[1:]):
        if lo <= value < hi:
            return p_lo + (p_hi - p_lo) * (value - lo) / (hi - lo)

    raise AssertionError("unreachable: anchors cover [poor, excellent)")


def rating_for(score: float, thresholds: NormThresholds) -> RatingTier:
    """Highest tier whose threshold the score reaches (inclusive)."""
    value = -score if thresholds.lower_is_better else score
    anchors = _anchors(thresholds)
    for tier, (threshold, _) in zip(
        (RatingTier.EXCELLENT, RatingTier.GOOD, RatingTier.AVERAGE),
        reversed(anchors[1:]),
    ):
        if value >= threshold:
            return tier
    return RatingTier.POOR


class BenchmarkEngine:
    """Benchmarks scores against a norms table."""

    def __init__(self, norms: NormsTable):
        self.norms = norms

    def benchmark(self, test_kind: str, score: float, age: int, gender: str) -> BenchmarkResult:
        """
        Raises:
            BenchmarkUnavailable: no thresholds for this test/age/gender
        """
        group = age_group(age)
        thresholds = self.norms.lookup(test_kind, group, gender)
        if thresholds is None:
            raise BenchmarkUnavailable(
                f"No norms for {test_kind} / {group} / {gender}"
            )

        percentile = round(percentile_for(score, thresholds), 2)
        tier = rating_for(score, thresholds)

        logger.info(
            f"Benchmark {test_kind} ({group}, {gender}): score={score}, "
            f"percentile={percentile}, tier={tier.value}"
        )

        return BenchmarkResult(
            age_group=group,
            gender=gender,
            score=score,
            percentile=percentile,
            rating_tier=tier,
            recommendations=TIER_RECOMMENDATIONS[tier],
        )
