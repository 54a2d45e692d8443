"""
Movement quality assessment.

Four sub-scores, each in [0, 1]:
- POSTURE: how far the test's posture angle strays outside its ideal range
- CONSISTENCY: regularity of repetition-cycle durations
- RANGE OF MOTION: how deep the movement went relative to the target angle
- TIMING: total duration relative to the expected duration for the test

`overall` is the weighted mean using the test profile's weights.
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from fitassess.cv.body_angles import signal_series
from fitassess.cv.phase_segmenter import SegmentationResult
from fitassess.models.assessment import QualityBand
from fitassess.models.test_kind import SignalKind, TestProfile
from fitassess.schemas.frame import FrameSignal
from fitassess.schemas.result import QualityScore, RepetitionOutcome

logger = logging.getLogger(__name__)

# Total duration within [TIMING_LOW, TIMING_HIGH] x expected scores 1.0
TIMING_LOW = 0.5
TIMING_HIGH = 2.0


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return float(min(high, max(low, value)))


class QualityAssessor:
    """Scores movement quality for one test profile."""

    def __init__(self, profile: TestProfile, min_keypoint_confidence: float = 0.3):
        self.profile = profile
        self.min_keypoint_confidence = min_keypoint_confidence

    def assess(
        self,
        frames: Sequence[FrameSignal],
        segmentation: SegmentationResult,
        outcome: RepetitionOutcome,
    ) -> Tuple[QualityScore, List[str]]:
        """
        Score a segmented performance.

        Returns:
            Tuple of (quality score, warnings)
        """
        warnings: List[str] = []

        posture = self.posture_score(self._series(frames, segmentation, self.profile.posture.signal))
        if posture is None:
            warnings.append(f"{self.profile.posture.signal.value} never visible; posture not scored")
            posture = 1.0

        consistency = self.consistency_score(outcome)

        rom_values = self._series(frames, segmentation, self.profile.range_of_motion.signal)
        range_of_motion = self.range_of_motion_score(rom_values, segmentation, outcome)
        if range_of_motion is None:
            warnings.append(f"{self.profile.range_of_motion.signal.value} never visible; range of motion is 0")
            range_of_motion = 0.0

        total_ms = frames[-1].timestamp_ms - frames[0].timestamp_ms + segmentation.frame_interval_ms
        timing = self.timing_score(total_ms)

        weights = self.profile.weights
        weighted = (
            posture * weights.posture
            + consistency * weights.consistency
            + range_of_motion * weights.range_of_motion
            + timing * weights.timing
        )
        total_weight = weights.posture + weights.consistency + weights.range_of_motion + weights.timing
        overall = round(_clamp(weighted / total_weight), 4)

        logger.info(
            f"Quality {self.profile.kind.value}: posture={posture:.2f}, "
            f"consistency={consistency:.2f}, rom={range_of_motion:.2f}, "
            f"timing={timing:.2f}, overall={overall:.2f}"
        )

        score = QualityScore(
            posture=round(posture, 4),
            consistency=round(consistency, 4),
            range_of_motion=round(range_of_motion, 4),
            timing=round(timing, 4),
            overall=overall,
            band=QualityBand.for_score(overall),
        )
        return score, warnings

    def posture_score(self, values: Sequence[Optional[float]]) -> Optional[float]:
        """Mean per-frame posture score over frames where the angle is defined."""
        reference = self.profile.posture
        scores = []
        for angle in values:
            if angle is None:
                continue
            if reference.ideal_min <= angle <= reference.ideal_max:
                scores.append(1.0)
                continue
            deviation = reference.ideal_min - angle if angle < reference.ideal_min else angle - reference.ideal_max
            scores.append(_clamp(1.0 - deviation / reference.tolerance))

        if not scores:
            return None
        return float(np.mean(scores))

    def consistency_score(self, outcome: RepetitionOutcome) -> float:
        """1 - var(cycle durations) / mean^2."""
        if outcome.kind != "count" or len(outcome.events) < 2:
            return 1.0

        durations = np.array([e.duration_ms for e in outcome.events], dtype=float)
        mean = durations.mean()
        if mean <= 0:
            return 0.0
        return _clamp(1.0 - durations.var() / mean ** 2)

    def range_of_motion_score(
        self,
        values: Sequence[Optional[float]],
        segmentation: SegmentationResult,
        outcome: RepetitionOutcome,
    ) -> Optional[float]:
        """
        Extremal angle reached vs. the target.

        For cyclic tests the extremal angle is averaged over the counted reps,
        so one deep rep cannot hide shallow ones.
        """
        target = self.profile.range_of_motion
        pick = min if target.flexion else max

        extremes = []
        if outcome.kind == "count" and outcome.events:
            for event in outcome.events:
                start = segmentation.positions[event.active_phase.start_index]
                end = segmentation.positions[event.recovery_phase.end_index]
                defined = [v for v in values[start:end + 1] if v is not None]
                if defined:
                    extremes.append(pick(defined))
        else:
            defined = [v for v in values if v is not None]
            if defined:
                extremes.append(pick(defined))

        if not extremes:
            return None

        extremal = float(np.mean(extremes))
        if target.flexion:
            ratio = (180.0 - extremal) / (180.0 - target.target)
        else:
            ratio = extremal / target.target
        return _clamp(ratio)

    def timing_score(self, total_ms: float) -> float:
        """1 inside the expected band, linear decay outside it."""
        ratio = total_ms / self.profile.expected_duration_ms
        if ratio < TIMING_LOW:
            return _clamp(ratio / TIMING_LOW)
        if ratio > TIMING_HIGH:
            return _clamp(1.0 - (ratio - TIMING_HIGH) / TIMING_HIGH)
        return 1.0

    def _series(
        self,
        frames: Sequence[FrameSignal],
        segmentation: SegmentationResult,
        signal: SignalKind,
    ) -> List[Optional[float]]:
        if signal in segmentation.signals:
            return segmentation.signals[signal]
        return signal_series(frames, signal, self.min_keypoint_confidence)
