"""
Recording integrity analysis.

Runs directly over the raw frame signals, independent of segmentation, and
estimates whether the recording was edited or the test was assisted.

Each check is independent and contributes a fixed weight when triggered:
- brightness_consistency: lighting variance / single-frame outliers
- frame_timing: irregular inter-frame deltas (drops, insertions)
- compression_artifacts: low edge density from heavy re-encoding
- splice: several abrupt brightness jumps
- movement_pattern: motion trace shape differs from the test's expected shape
- multi_person: extra people or disallowed objects in frame
- environment_consistency: colour-variance drift (location change)

score = clamp(sum of triggered weights, 0, 1); suspicious when score > threshold.

CRITICAL: integrity findings are additive signals, never fatal. A check
without enough data, or one that fails, is recorded as not triggered and the
remaining checks still run.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy.signal import find_peaks, peak_widths

from fitassess.cv.frame_source import PresenceDetector
from fitassess.errors import AnalysisCancelled
from fitassess.models.assessment import MovementPattern
from fitassess.models.integrity import CLEAN_RECOMMENDATION, DISALLOWED_OBJECTS, IntegrityCheckKind
from fitassess.schemas.frame import FrameSignal
from fitassess.schemas.result import IntegrityCheckResult, SuspicionAssessment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IntegrityThresholds:
    """Check thresholds, already scaled for the device profile."""
    brightness_variance: float = 0.1
    brightness_deviation: float = 0.3
    splice_jump: float = 0.3
    max_splice_jumps: int = 2
    frame_timing_variance_ms2: float = 50.0
    edge_density_floor: float = 0.05
    environment_drift: float = 0.5
    environment_window_frames: int = 5
    cheat_threshold: float = 0.7


@dataclass
class IntegrityContext:
    """Everything a check may read besides the frames."""
    thresholds: IntegrityThresholds
    expected_pattern: MovementPattern
    presence_detector: Optional[PresenceDetector] = None
    cancel_token: Optional[object] = None  # CancellationToken


class IntegrityCheck:
    """Base class for integrity checks."""

    kind: str = "base_check"

    def check(
        self,
        frames: Sequence[FrameSignal],
        context: IntegrityContext,
    ) -> Tuple[bool, str]:
        """
        Perform the check.

        Returns:
            Tuple of (triggered, detail)
        """
        raise NotImplementedError


class BrightnessConsistencyCheck(IntegrityCheck):
    """Lighting should not vary wildly within one take."""

    kind = IntegrityCheckKind.BRIGHTNESS_CONSISTENCY

    def check(self, frames, context):
        if len(frames) < 2:
            return False, "not enough frames"

        brightness = np.array([f.brightness for f in frames])
        variance = float(brightness.var())
        max_deviation = float(np.abs(brightness - brightness.mean()).max())

        t = context.thresholds
        triggered = variance > t.brightness_variance or max_deviation > t.brightness_deviation
        return triggered, f"variance={variance:.4f}, max_deviation={max_deviation:.3f}"


class FrameTimingCheck(IntegrityCheck):
    """Dropped or inserted frames show up as irregular timestamp deltas."""

    kind = IntegrityCheckKind.FRAME_TIMING

    def check(self, frames, context):
        if len(frames) < 3:
            return False, "not enough frames"

        deltas = np.diff([f.timestamp_ms for f in frames]).astype(float)
        variance = float(deltas.var())
        threshold = context.thresholds.frame_timing_variance_ms2
        return variance > threshold, f"delta_variance={variance:.1f}ms2 (threshold {threshold:.1f})"


class CompressionArtifactCheck(IntegrityCheck):
    """Heavy re-encoding washes out edges."""

    kind = IntegrityCheckKind.COMPRESSION_ARTIFACTS

    def check(self, frames, context):
        if not frames:
            return False, "no frames"

        mean_edges = float(np.mean([f.edge_density for f in frames]))
        floor = context.thresholds.edge_density_floor
        return mean_edges < floor, f"mean_edge_density={mean_edges:.3f} (floor {floor:.3f})"


class SpliceCheck(IntegrityCheck):
    """Cuts between takes produce abrupt brightness jumps."""

    kind = IntegrityCheckKind.SPLICE

    def check(self, frames, context):
        if len(frames) < 2:
            return False, "not enough frames"

        t = context.thresholds
        jumps = np.abs(np.diff([f.brightness for f in frames]))
        discontinuities = int(np.sum(jumps > t.splice_jump))
        return discontinuities > t.max_splice_jumps, f"discontinuities={discontinuities}"


class MovementPatternCheck(IntegrityCheck):
    """The motion trace should have the shape the test implies."""

    kind = IntegrityCheckKind.MOVEMENT_PATTERN

    def check(self, frames, context):
        pattern = classify_motion_pattern([f.motion_magnitude for f in frames])
        if pattern is None:
            return False, "not enough frames"

        expected = context.expected_pattern
        return pattern != expected, f"observed={pattern.value}, expected={expected.value}"


class MultiPersonCheck(IntegrityCheck):
    """Only the test taker may be visible, with no assisting equipment."""

    kind = IntegrityCheckKind.MULTI_PERSON

    def check(self, frames, context):
        detector = context.presence_detector
        if detector is None:
            return False, "no presence detector supplied"

        extra_person_frames = 0
        objects_seen = set()
        for frame in frames:
            if context.cancel_token is not None:
                context.cancel_token.raise_if_cancelled()
            observation = detector.detect(frame)
            if observation.person_count > 1:
                extra_person_frames += 1
            objects_seen.update(o for o in observation.objects if o in DISALLOWED_OBJECTS)

        triggered = extra_person_frames > 0 or bool(objects_seen)
        return triggered, (
            f"multi_person_frames={extra_person_frames}, "
            f"disallowed_objects={sorted(objects_seen)}"
        )


class EnvironmentConsistencyCheck(IntegrityCheck):
    """The scene's colour statistics should not drift (location change)."""

    kind = IntegrityCheckKind.ENVIRONMENT_CONSISTENCY

    def check(self, frames, context):
        t = context.thresholds
        window = max(1, t.environment_window_frames)
        variances = [f.color_variance for f in frames]
        window_means = [
            float(np.mean(variances[i:i + window]))
            for i in range(0, len(variances), window)
        ]
        if len(window_means) < 2:
            return False, "not enough frames"

        overall = float(np.mean(variances))
        if overall <= 0:
            return False, "no colour variance"

        drift = (max(window_means) - min(window_means)) / overall
        return drift > t.environment_drift, f"drift={drift:.3f}"


def classify_motion_pattern(trace: Sequence[float]) -> Optional[MovementPattern]:
    """
    Classify a motion-magnitude trace.

    Checked in order:
    1. STATIC: barely any motion
    2. BURST: one or two spikes well above the mean (a jump)
    3. BACK_AND_FORTH: sustained plateaus separated by deep troughs (turns)
    4. REPETITIVE: at least three regularly spaced peaks
    5. STEADY: anything else
    """
    if len(trace) < 5:
        return None

    values = np.asarray(trace, dtype=float)
    mean = float(values.mean())
    peak = float(values.max())

    if mean < 0.05:
        return MovementPattern.STATIC

    peaks, _ = find_peaks(values, prominence=0.3 * peak)

    if peak > 3.0 * mean and len(peaks) <= 2:
        return MovementPattern.BURST

    troughs, _ = find_peaks(-values, prominence=0.3 * peak)
    if len(peaks) >= 2 and len(troughs) >= 1:
        widths = peak_widths(values, peaks, rel_height=0.5)[0]
        spacing = float(np.median(np.diff(peaks)))
        if spacing > 0 and float(np.mean(widths)) / spacing >= 0.7:
            return MovementPattern.BACK_AND_FORTH

    if len(peaks) >= 3:
        intervals = np.diff(peaks).astype(float)
        if float(intervals.std() / intervals.mean()) < 0.35:
            return MovementPattern.REPETITIVE

    return MovementPattern.STEADY


class IntegrityAnalyzer:
    """
    Runs every integrity check and combines them into a suspicion score.

    Checks never raise on bad data; only cancellation stops the analysis.
    """

    CHECKS: Tuple[IntegrityCheck, ...] = (
        BrightnessConsistencyCheck(),
        FrameTimingCheck(),
        CompressionArtifactCheck(),
        SpliceCheck(),
        MovementPatternCheck(),
        MultiPersonCheck(),
        EnvironmentConsistencyCheck(),
    )

    def __init__(
        self,
        expected_pattern: MovementPattern,
        thresholds: Optional[IntegrityThresholds] = None,
        presence_detector: Optional[PresenceDetector] = None,
        cancel_token=None,
    ):
        self.context = IntegrityContext(
            thresholds=thresholds or IntegrityThresholds(),
            expected_pattern=expected_pattern,
            presence_detector=presence_detector,
            cancel_token=cancel_token,
        )

    def analyze(self, frames: Sequence[FrameSignal]) -> SuspicionAssessment:
        results: List[IntegrityCheckResult] = []
        issues: List[str] = []
        recommendations: List[str] = []
        warnings: List[str] = []

        for check in self.CHECKS:
            if self.context.cancel_token is not None:
                self.context.cancel_token.raise_if_cancelled()

            try:
                triggered, detail = check.check(frames, self.context)
            except AnalysisCancelled:
                raise
            except Exception as e:
                logger.exception(f"Integrity check {check.kind} failed: {e}")
                triggered, detail = False, f"check failed: {type(e).__name__}: {e}"
                warnings.append(f"Integrity check {check.kind} unavailable: {type(e).__name__}")
            weight = IntegrityCheckKind.weight(check.kind)
            results.append(IntegrityCheckResult(
                check_kind=check.kind,
                triggered=triggered,
                weight=weight,
                detail=detail,
            ))

            if triggered:
                issues.append(IntegrityCheckKind.get_issue(check.kind))
                recommendations.append(IntegrityCheckKind.get_recommendation(check.kind))
                logger.warning(f"Integrity check {check.kind} triggered: {detail}")
            else:
                logger.debug(f"Integrity check {check.kind} passed: {detail}")

        raw_score = sum(r.weight for r in results if r.triggered)
        score = round(min(1.0, max(0.0, raw_score)), 4)
        is_suspicious = score > self.context.thresholds.cheat_threshold

        if not recommendations:
            recommendations.append(CLEAN_RECOMMENDATION)

        logger.info(
            f"Integrity: score={score:.2f}, suspicious={is_suspicious}, "
            f"triggered={[r.check_kind for r in results if r.triggered]}"
        )

        return SuspicionAssessment(
            score=score,
            is_suspicious=is_suspicious,
            issues=tuple(issues),
            recommendations=tuple(recommendations),
            checks=tuple(results),
            warnings=tuple(warnings),
        )
