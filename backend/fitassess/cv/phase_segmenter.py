"""
Movement phase segmenter.

Splits a frame sequence into contiguous MovementPhase intervals using one
generic state machine driven by the test kind's transition table:

    IDLE -> PREPARATION -> ACTIVE_MOVEMENT -> RECOVERY (-> ...)

A transition fires when its signal crosses the threshold, but is only
COMMITTED once the condition has held for `debounce_frames` consecutive
frames. The phase boundary is placed on the first frame of that run, so
debouncing delays the decision, not the boundary. A frame whose signal is
undefined breaks the run.

Output phases cover every input frame with no gaps, no overlaps and no
zero-length phases.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from fitassess.cv.body_angles import compute_signals, has_usable_keypoints
from fitassess.cv.signal_smoother import SignalSmoother
from fitassess.errors import EstimationGap, SegmentationFailure
from fitassess.models.test_kind import GenericState, PhaseTransition, SignalKind, TestProfile
from fitassess.schemas.frame import FrameSignal
from fitassess.schemas.result import MovementPhase

logger = logging.getLogger(__name__)


@dataclass
class SegmentationResult:
    """Phases plus the per-frame signals they were derived from."""
    phases: List[MovementPhase]
    signals: Dict[SignalKind, List[Optional[float]]] = field(default_factory=dict)
    frame_interval_ms: float = 0.0
    low_confidence: bool = False  # Too few frames to run the state machine
    warnings: List[str] = field(default_factory=list)
    positions: Dict[int, int] = field(default_factory=dict)  # frame index -> sequence position


def nominal_frame_interval(frames: Sequence[FrameSignal]) -> float:
    """Median inter-frame delta in ms (0 for a single frame)."""
    if len(frames) < 2:
        return 0.0
    deltas = np.diff([f.timestamp_ms for f in frames])
    return float(np.median(deltas))


class PhaseSegmenter:
    """
    Debounced state machine over derived body signals.

    One instance is bound to one test profile and one set of thresholds;
    `segment()` keeps no state between calls.
    """

    def __init__(
        self,
        profile: TestProfile,
        debounce_frames: int = 3,
        min_frame_count: int = 10,
        min_keypoint_confidence: float = 0.3,
        max_missing_signal_ratio: float = 0.5,
        smoothing_window: int = 0,
    ):
        self.profile = profile
        self.debounce_frames = max(1, debounce_frames)
        self.min_frame_count = min_frame_count
        self.min_keypoint_confidence = min_keypoint_confidence
        self.max_missing_signal_ratio = max_missing_signal_ratio
        self.smoother = SignalSmoother(smoothing_window)

    def segment(self, frames: Sequence[FrameSignal]) -> SegmentationResult:
        """
        Segment a frame sequence into movement phases.

        Raises:
            EstimationGap: no frame has usable keypoints, or the driving
                signal is missing in too many frames
            SegmentationFailure: the state machine never left its start state
        """
        interval = nominal_frame_interval(frames)

        if len(frames) < self.min_frame_count:
            logger.warning(
                f"Only {len(frames)} frames (< {self.min_frame_count}); "
                f"returning a single unknown phase"
            )
            phase = self._make_phase(frames, 0, len(frames) - 1, GenericState.UNKNOWN, interval)
            return SegmentationResult(
                phases=[phase],
                frame_interval_ms=interval,
                low_confidence=True,
                warnings=[f"Sequence shorter than {self.min_frame_count} frames"],
            )

        if not any(has_usable_keypoints(f, self.min_keypoint_confidence) for f in frames):
            raise EstimationGap("No usable keypoints in any frame", no_usable_keypoints=True)

        signals = compute_signals(
            frames, self.profile.state_machine_signals, self.min_keypoint_confidence
        )
        if self.smoother.enabled:
            signals = {kind: self.smoother.smooth(values) for kind, values in signals.items()}

        driving = signals[self.profile.driving_signal]
        missing = sum(1 for v in driving if v is None)
        missing_ratio = missing / len(frames)
        if missing_ratio > self.max_missing_signal_ratio:
            raise EstimationGap(
                f"{self.profile.driving_signal.value} undefined in {missing}/{len(frames)} frames"
            )

        warnings = []
        if missing:
            warnings.append(f"{self.profile.driving_signal.value} undefined in {missing} frames")

        boundaries = self._run_state_machine(signals, len(frames))
        if len(boundaries) < 2:
            raise SegmentationFailure(
                f"No {self.profile.kind.value} phase transition detected in {len(frames)} frames"
            )

        phases = self._build_phases(frames, boundaries, interval)
        logger.info(
            f"Segmented {len(frames)} frames into {len(phases)} phases: "
            f"{[p.phase_kind for p in phases]}"
        )

        return SegmentationResult(
            phases=phases,
            signals=signals,
            frame_interval_ms=interval,
            warnings=warnings,
            positions={f.index: pos for pos, f in enumerate(frames)},
        )

    def _run_state_machine(
        self,
        signals: Dict[SignalKind, List[Optional[float]]],
        n_frames: int,
    ) -> List[Tuple[int, GenericState]]:
        """
        Return committed (first_position, state) boundaries, starting with IDLE at 0.

        A boundary at the same position as the previous one replaces it, so
        no zero-length phase survives.
        """
        state = GenericState.IDLE
        boundaries: List[Tuple[int, GenericState]] = [(0, state)]

        pending: Optional[PhaseTransition] = None
        run_start = 0
        run_length = 0

        for i in range(n_frames):
            fired = None
            for transition in self.profile.transitions_from(state):
                if transition.holds(signals[transition.signal][i]):
                    fired = transition
                    break

            if fired is None:
                pending = None
                run_length = 0
                continue

            if fired is not pending:
                pending = fired
                run_start = i
                run_length = 0
            run_length += 1

            if run_length >= self.debounce_frames:
                state = fired.target
                if boundaries[-1][0] == run_start:
                    boundaries[-1] = (run_start, state)
                else:
                    boundaries.append((run_start, state))
                logger.debug(
                    f"Frame {i}: {fired.source.value} -> {state.value} "
                    f"(boundary at {run_start})"
                )
                pending = None
                run_length = 0

        return boundaries

    def _build_phases(
        self,
        frames: Sequence[FrameSignal],
        boundaries: List[Tuple[int, GenericState]],
        interval: float,
    ) -> List[MovementPhase]:
        phases = []
        for k, (start, state) in enumerate(boundaries):
            end = boundaries[k + 1][0] - 1 if k + 1 < len(boundaries) else len(frames) - 1
            phases.append(self._make_phase(frames, start, end, state, interval))
        return phases

    def _make_phase(
        self,
        frames: Sequence[FrameSignal],
        start: int,
        end: int,
        state: GenericState,
        interval: float,
    ) -> MovementPhase:
        duration = frames[end].timestamp_ms - frames[start].timestamp_ms + interval
        return MovementPhase(
            phase_kind=self.profile.phase_name(state),
            generic_state=state,
            start_index=frames[start].index,
            end_index=frames[end].index,
            duration_ms=int(round(duration)),
        )
