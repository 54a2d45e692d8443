"""
Analysis pipeline orchestration.

PIPELINE:
1. Input validation (test kind, profile, frame ordering)
2. Bounded frame buffering with adaptive sampling
3. Two parallel read-only branches over the same immutable frame tuple:
   a. Movement: segmentation -> counting -> quality
   b. Integrity: all integrity checks
4. Benchmarking of the count / metric
5. Result compilation

`analyze()` is pure: identical frames and options always give an identical
result. Failures come back as status fields on the result; only
cancellation raises.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, List, Optional, Tuple, Union

from pydantic import ValidationError

from fitassess.cv.benchmark import BenchmarkEngine
from fitassess.cv.frame_source import PresenceDetector
from fitassess.cv.integrity_analyzer import IntegrityAnalyzer, IntegrityThresholds
from fitassess.cv.phase_segmenter import PhaseSegmenter, SegmentationResult
from fitassess.cv.quality_assessor import QualityAssessor
from fitassess.cv.rep_counter import RepCounter
from fitassess.cv.resource_profile import CancellationToken, DeviceProfile, FrameBuffer
from fitassess.cv.result_compiler import ResultCompiler
from fitassess.errors import AnalysisCancelled, AnalysisError, InputError
from fitassess.models.test_kind import TestKind, get_profile
from fitassess.schemas.frame import FrameSignal, UserProfile
from fitassess.schemas.options import AnalysisOptions
from fitassess.schemas.result import AssessmentResult, QualityScore, RepetitionOutcome, SuspicionAssessment

logger = logging.getLogger(__name__)


@dataclass
class MovementBranchResult:
    """Everything the movement branch produced before it stopped."""
    segmentation: Optional[SegmentationResult] = None
    outcome: Optional[RepetitionOutcome] = None
    quality: Optional[QualityScore] = None
    error: Optional[BaseException] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def phases(self):
        return self.segmentation.phases if self.segmentation else []


class AnalysisPipeline:
    """
    One configured analysis for one test kind.

    Holds no per-run state; `run()` may be called repeatedly.
    """

    def __init__(
        self,
        test_kind: Union[TestKind, str],
        options: Optional[AnalysisOptions] = None,
        presence_detector: Optional[PresenceDetector] = None,
        cancel_token: Optional[CancellationToken] = None,
    ):
        try:
            self.profile = get_profile(test_kind)
        except (ValueError, KeyError):
            raise InputError(f"Unknown test kind: {test_kind!r}")

        self.options = options or AnalysisOptions()
        self.presence_detector = presence_detector
        self.cancel_token = cancel_token
        self.device = DeviceProfile.for_name(self.options.device_profile)

        opts = self.options
        debounce = opts.debounce_frames
        timing_variance = opts.frame_timing_variance_ms2
        edge_floor = opts.edge_density_floor
        if self.device is not None:
            debounce = self.device.scale_debounce(debounce)
            timing_variance = self.device.scale_timing_variance(timing_variance)
            edge_floor = self.device.scale_edge_floor(edge_floor)
            logger.info(
                f"Device profile {self.device.name}: debounce={debounce}, "
                f"timing_variance={timing_variance:.1f}, edge_floor={edge_floor:.3f}"
            )

        self.segmenter = PhaseSegmenter(
            self.profile,
            debounce_frames=debounce,
            min_frame_count=opts.min_frame_count,
            min_keypoint_confidence=opts.min_keypoint_confidence,
            max_missing_signal_ratio=opts.max_missing_signal_ratio,
            smoothing_window=opts.smoothing_window,
        )
        self.assessor = QualityAssessor(self.profile, opts.min_keypoint_confidence)
        self.integrity_thresholds = IntegrityThresholds(
            frame_timing_variance_ms2=timing_variance,
            edge_density_floor=edge_floor,
            environment_drift=opts.environment_drift_threshold,
            environment_window_frames=opts.environment_window_frames,
            cheat_threshold=opts.cheat_threshold,
        )
        self.compiler = ResultCompiler(opts.base_confidence)

    @property
    def test_kind(self) -> str:
        return self.profile.kind.value

    def run(self, frame_signals: Iterable[Any], user_profile: Union[UserProfile, dict]) -> AssessmentResult:
        """
        Analyze one recording.

        Raises:
            AnalysisCancelled: the cancel token was set
        """
        try:
            profile = self._coerce_profile(user_profile)
            frames, buffer_warnings = self._load_frames(frame_signals)
        except InputError as e:
            return self.compiler.failed(self.test_kind, e)

        logger.info(f"Analyzing {self.test_kind}: {len(frames)} frames")
        self._check_cancelled()

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="fitassess") as pool:
            integrity_future = pool.submit(self._integrity_branch, frames)
            movement_future = pool.submit(self._movement_branch, frames, profile)
            integrity, integrity_warnings = self._join_integrity(integrity_future)
            movement = movement_future.result()

        self._check_cancelled()

        warnings = buffer_warnings + movement.warnings + integrity_warnings
        benchmark = None
        error = movement.error
        low_confidence = movement.segmentation is not None and movement.segmentation.low_confidence

        if error is None and not low_confidence:
            engine = BenchmarkEngine(self.options.resolved_norms())
            try:
                benchmark = engine.benchmark(
                    self.test_kind,
                    movement.outcome.performance_score,
                    profile.age,
                    profile.gender,
                )
            except AnalysisError as e:
                error = e

        return self.compiler.compile(
            self.test_kind,
            phases=movement.phases,
            outcome=movement.outcome,
            quality=movement.quality,
            integrity=integrity,
            benchmark=benchmark,
            error=error,
            low_confidence=low_confidence,
            low_confidence_reason=(
                f"{len(frames)} frames, at least {self.options.min_frame_count} required"
                if low_confidence else None
            ),
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    def _movement_branch(self, frames: Tuple[FrameSignal, ...], profile: UserProfile) -> MovementBranchResult:
        branch = MovementBranchResult()
        try:
            self._check_cancelled()
            segmentation = self.segmenter.segment(frames)
            branch.segmentation = segmentation
            branch.warnings.extend(segmentation.warnings)
            if segmentation.low_confidence:
                return branch

            self._check_cancelled()
            counter = RepCounter(self.profile, profile.height_cm, self.options.min_keypoint_confidence)
            branch.outcome = counter.count(segmentation, frames)
            branch.warnings.extend(branch.outcome.warnings)

            self._check_cancelled()
            branch.quality, quality_warnings = self.assessor.assess(frames, segmentation, branch.outcome)
            branch.warnings.extend(quality_warnings)
        except AnalysisCancelled:
            raise
        except AnalysisError as e:
            logger.warning(f"Movement analysis stopped: {e.kind}: {e.message}")
            branch.error = e
        except Exception as e:
            logger.exception(f"Movement analysis failed unexpectedly: {e}")
            branch.error = e
        return branch

    def _integrity_branch(self, frames: Tuple[FrameSignal, ...]) -> SuspicionAssessment:
        analyzer = IntegrityAnalyzer(
            expected_pattern=self.profile.expected_pattern,
            thresholds=self.integrity_thresholds,
            presence_detector=self.presence_detector,
            cancel_token=self.cancel_token,
        )
        return analyzer.analyze(frames)

    def _join_integrity(self, future: Future) -> Tuple[Optional[SuspicionAssessment], List[str]]:
        try:
            integrity = future.result()
            return integrity, list(integrity.warnings)
        except AnalysisCancelled:
            if self.cancel_token is not None:
                self.cancel_token.cancel()
            raise
        except Exception as e:
            logger.exception(f"Integrity analysis failed unexpectedly: {e}")
            return None, [f"Integrity analysis unavailable: {type(e).__name__}"]

    # ------------------------------------------------------------------
    # Input handling
    # ------------------------------------------------------------------

    def _load_frames(self, frame_signals: Iterable[Any]) -> Tuple[Tuple[FrameSignal, ...], List[str]]:
        if frame_signals is None or isinstance(frame_signals, (str, bytes)):
            raise InputError("No frame sequence supplied")

        sampling_rate = self.options.sampling_rate
        if sampling_rate is None and self.device is not None:
            sampling_rate = self.device.sampling_rate

        buffer = FrameBuffer(
            max_frames=self.options.max_buffered_frames,
            sampling_rate=sampling_rate,
            cancel_token=self.cancel_token,
        )
        try:
            frames = buffer.fill(_as_frame_signals(frame_signals))
        except TypeError:
            raise InputError(f"Frame sequence is not iterable: {type(frame_signals).__name__}")
        except ValidationError as e:
            raise InputError(f"Invalid frame signal ({e.error_count()} validation errors)")

        if not frames:
            raise InputError("Frame sequence is empty")

        warnings = []
        if buffer.stride > 1:
            warnings.append(f"Frame budget exceeded; kept every {buffer.stride}th frame")
        return frames, warnings

    @staticmethod
    def _coerce_profile(user_profile: Union[UserProfile, dict]) -> UserProfile:
        if isinstance(user_profile, UserProfile):
            return user_profile
        if user_profile is None:
            raise InputError("No user profile supplied")
        try:
            return UserProfile.model_validate(user_profile)
        except ValidationError as e:
            raise InputError(f"Invalid user profile ({e.error_count()} validation errors)")

    def _check_cancelled(self):
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()


def _as_frame_signals(source: Iterable[Any]) -> Iterator[FrameSignal]:
    for item in source:
        yield item if isinstance(item, FrameSignal) else FrameSignal.model_validate(item)


def analyze(
    frame_signals: Iterable[Any],
    test_kind: Union[TestKind, str],
    user_profile: Union[UserProfile, dict],
    options: Optional[Union[AnalysisOptions, dict]] = None,
    *,
    presence_detector: Optional[PresenceDetector] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> AssessmentResult:
    """
    Analyze a fitness-test recording.

    Args:
        frame_signals: Ordered FrameSignal objects (or dicts), or a FrameSignalSource
        test_kind: TestKind member or its string value, e.g. "push-ups"
        user_profile: UserProfile or dict with age, gender and optional heightCm
        options: AnalysisOptions (or dict); defaults when None
        presence_detector: Optional person/object presence capability
        cancel_token: Optional CancellationToken polled by both branches

    Returns:
        AssessmentResult; callers branch on `status`

    Raises:
        AnalysisCancelled: only when the cancel token was set
    """
    kind_label = test_kind.value if isinstance(test_kind, TestKind) else str(test_kind)

    if options is not None and not isinstance(options, AnalysisOptions):
        try:
            options = AnalysisOptions.model_validate(options)
        except ValidationError as e:
            return ResultCompiler().failed(
                kind_label, InputError(f"Invalid options ({e.error_count()} validation errors)")
            )

    try:
        pipeline = AnalysisPipeline(
            test_kind,
            options=options,
            presence_detector=presence_detector,
            cancel_token=cancel_token,
        )
    except InputError as e:
        return ResultCompiler().failed(kind_label, e)

    return pipeline.run(frame_signals, user_profile)
