"""
Repetition / event counter.

CYCLIC tests: every ACTIVE_MOVEMENT phase immediately followed by a RECOVERY
phase is one candidate cycle. Candidates whose combined duration falls
outside the test's [min_cycle_ms, max_cycle_ms] window are rejected (noise or
stalled reps). A trailing ACTIVE_MOVEMENT without its RECOVERY is discarded
and flagged as an incomplete final repetition.

SINGLE-EVENT tests: the first PREPARATION -> ACTIVE_MOVEMENT -> RECOVERY
group is the event; its duration/displacement gives one scalar metric.

CRITICAL: only complete cycles are ever counted. The outcome is either a
count or a metric, never both.
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from fitassess.cv.body_angles import body_height, center_of_mass
from fitassess.cv.phase_segmenter import SegmentationResult
from fitassess.errors import SegmentationFailure
from fitassess.models.test_kind import EventMetric, GenericState, TestProfile
from fitassess.schemas.frame import FrameSignal
from fitassess.schemas.result import MovementPhase, RepetitionEvent, RepetitionOutcome

logger = logging.getLogger(__name__)

GRAVITY_M_S2 = 9.81
DEFAULT_HEIGHT_CM = 170.0

_JUMP_GROUP = (
    GenericState.PREPARATION,
    GenericState.ACTIVE_MOVEMENT,
    GenericState.RECOVERY,
)


class RepCounter:
    """Turns movement phases into a repetition count or an event metric."""

    def __init__(
        self,
        profile: TestProfile,
        height_cm: Optional[float] = None,
        min_keypoint_confidence: float = 0.3,
    ):
        self.profile = profile
        self.height_estimated = not height_cm
        self.height_cm = height_cm or DEFAULT_HEIGHT_CM
        self.min_keypoint_confidence = min_keypoint_confidence

    def count(
        self,
        segmentation: SegmentationResult,
        frames: Sequence[FrameSignal],
    ) -> RepetitionOutcome:
        if self.profile.is_cyclic:
            return self._count_cycles(segmentation.phases)
        return self._measure_event(segmentation, frames)

    # ------------------------------------------------------------------
    # Cyclic
    # ------------------------------------------------------------------

    def _count_cycles(self, phases: Sequence[MovementPhase]) -> RepetitionOutcome:
        events: List[RepetitionEvent] = []
        rejected = 0
        incomplete = False

        for k, phase in enumerate(phases):
            if phase.generic_state != GenericState.ACTIVE_MOVEMENT:
                continue

            following = phases[k + 1] if k + 1 < len(phases) else None
            if following is None or following.generic_state != GenericState.RECOVERY:
                # Only the last active phase can lack its recovery
                incomplete = True
                logger.debug(f"Incomplete final repetition at frame {phase.start_index}")
                continue

            duration = phase.duration_ms + following.duration_ms
            if not (self.profile.min_cycle_ms <= duration <= self.profile.max_cycle_ms):
                rejected += 1
                logger.debug(
                    f"Rejected cycle at frame {phase.start_index}: {duration}ms outside "
                    f"[{self.profile.min_cycle_ms:.0f}, {self.profile.max_cycle_ms:.0f}]"
                )
                continue

            events.append(RepetitionEvent(
                active_phase=phase,
                recovery_phase=following,
                duration_ms=duration,
            ))

        logger.info(
            f"{self.profile.kind.value}: {len(events)} reps "
            f"({rejected} rejected, incomplete_final={incomplete})"
        )

        return RepetitionOutcome(
            kind="count",
            repetition_count=len(events),
            incomplete_final_repetition=incomplete,
            rejected_cycles=rejected,
            events=tuple(events),
        )

    # ------------------------------------------------------------------
    # Single event
    # ------------------------------------------------------------------

    def _measure_event(
        self,
        segmentation: SegmentationResult,
        frames: Sequence[FrameSignal],
    ) -> RepetitionOutcome:
        groups = self._find_event_groups(segmentation.phases)
        if not groups:
            raise SegmentationFailure(
                f"No complete {' -> '.join(self.profile.phase_name(s) for s in _JUMP_GROUP)} "
                f"sequence found"
            )
        if len(groups) > 1:
            logger.warning(f"{len(groups)} jump attempts found; scoring the first")

        preparation, active, recovery = groups[0]

        warnings = []
        if self.profile.metric == EventMetric.JUMP_HEIGHT_CM:
            value = self._flight_height_cm(active)
        elif self.profile.metric == EventMetric.JUMP_DISTANCE_CM:
            value = self._jump_distance_cm(segmentation, frames, active, recovery)
            if self.height_estimated:
                warnings.append(
                    f"Body height not supplied; distance scaled to a default {DEFAULT_HEIGHT_CM:.0f} cm"
                )
                logger.warning(warnings[-1])
        else:
            raise ValueError(f"Unsupported event metric: {self.profile.metric}")

        logger.info(f"{self.profile.kind.value}: {self.profile.metric.value}={value:.1f}")

        return RepetitionOutcome(
            kind="metric",
            metric_name=self.profile.metric.value,
            metric_value=round(value, 2),
            metric_unit="cm",
            events=(RepetitionEvent(
                active_phase=active,
                recovery_phase=recovery,
                duration_ms=active.duration_ms + recovery.duration_ms,
            ),),
            warnings=tuple(warnings),
        )

    @staticmethod
    def _find_event_groups(
        phases: Sequence[MovementPhase],
    ) -> List[Tuple[MovementPhase, MovementPhase, MovementPhase]]:
        groups = []
        for k in range(len(phases) - 2):
            window = phases[k:k + 3]
            if tuple(p.generic_state for p in window) == _JUMP_GROUP:
                groups.append((window[0], window[1], window[2]))
        return groups

    @staticmethod
    def _flight_height_cm(active: MovementPhase) -> float:
        """Flight-time model: h = g * t^2 / 8."""
        flight_s = active.duration_ms / 1000.0
        return GRAVITY_M_S2 * flight_s ** 2 / 8.0 * 100.0

    def _jump_distance_cm(
        self,
        segmentation: SegmentationResult,
        frames: Sequence[FrameSignal],
        active: MovementPhase,
        recovery: MovementPhase,
    ) -> float:
        """Horizontal COM travel from take-off to landing, scaled by body height."""
        takeoff = segmentation.positions[active.start_index]
        landing = segmentation.positions[recovery.end_index]

        start = self._first_com(frames[takeoff:landing + 1])
        end = self._first_com(list(reversed(frames[takeoff:landing + 1])))
        if start is None or end is None:
            raise SegmentationFailure("Centre of mass not visible during the jump")

        heights = [
            h for h in (body_height(f, self.min_keypoint_confidence) for f in frames)
            if h is not None
        ]
        if not heights:
            raise SegmentationFailure("Body height not measurable; cannot scale jump distance")

        displacement = abs(float(end[0] - start[0]))
        return displacement / float(np.median(heights)) * self.height_cm

    def _first_com(self, frames: Sequence[FrameSignal]) -> Optional[np.ndarray]:
        for frame in frames:
            com = center_of_mass(frame, self.min_keypoint_confidence)
            if com is not None:
                return com
        return None
