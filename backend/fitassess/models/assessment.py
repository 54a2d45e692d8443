"""Status, rating and classification vocabularies for an assessment."""

from enum import Enum
from typing import List


class AnalysisStatus(str, Enum):
    """Overall outcome of one analysis invocation."""
    OK = "Ok"
    DEGRADED = "Degraded"  # A stage produced no usable output; confidence is 0
    FAILED = "Failed"      # Input rejected or nothing usable at all


class RatingTier(str, Enum):
    """Benchmark rating tiers, lowest first."""
    POOR = "Poor"
    AVERAGE = "Average"
    GOOD = "Good"
    EXCELLENT = "Excellent"


class MovementPattern(str, Enum):
    """Shape of the overall motion-magnitude trace."""
    STATIC = "static"
    REPETITIVE = "repetitive"
    BURST = "burst"
    BACK_AND_FORTH = "back-and-forth"
    STEADY = "steady"


class QualityBand:
    """Qualitative bands for the overall quality score (inclusive lower bounds)."""
    EXCELLENT = "excellent"
    GOOD = "good"
    AVERAGE = "average"
    NEEDS_IMPROVEMENT = "needs-improvement"

    THRESHOLDS = (
        (0.90, EXCELLENT),
        (0.75, GOOD),
        (0.50, AVERAGE),
    )

    @classmethod
    def all(cls) -> List[str]:
        return [cls.EXCELLENT, cls.GOOD, cls.AVERAGE, cls.NEEDS_IMPROVEMENT]

    @classmethod
    def for_score(cls, score: float) -> str:
        for lower_bound, band in cls.THRESHOLDS:
            if score >= lower_bound:
                return band
        return cls.NEEDS_IMPROVEMENT


class DegradationReason:
    """
    Explanations attached to Degraded/Failed results.

    Keyed by the error kind raised by the failing stage.
    """
    INPUT_ERROR = "input_error"
    ESTIMATION_GAP = "estimation_gap"
    SEGMENTATION_FAILURE = "segmentation_failure"
    BENCHMARK_UNAVAILABLE = "benchmark_unavailable"
    STAGE_ERROR = "stage_error"

    @classmethod
    def get_description(cls, reason: str) -> str:
        """Get human-readable description of a degradation reason."""
        descriptions = {
            cls.INPUT_ERROR: "The input could not be analysed",
            cls.ESTIMATION_GAP: "Not enough usable pose data to estimate performance",
            cls.SEGMENTATION_FAILURE: "No movement phases could be identified",
            cls.BENCHMARK_UNAVAILABLE: "No benchmark norms are available for this profile",
            cls.STAGE_ERROR: "An analysis stage failed unexpectedly",
        }
        return descriptions.get(reason, reason)
