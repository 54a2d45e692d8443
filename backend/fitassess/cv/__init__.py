"""
Analysis pipeline for fitness-test recordings.

PIPELINE COMPONENTS:
1. FrameSignalSource / PresenceDetector: capability interfaces to the outside world
2. body_angles: joint angles, torso lean and centre-of-mass velocity from keypoints
3. SignalSmoother: optional Savitzky-Golay smoothing of derived signals
4. PhaseSegmenter: debounced per-test state machine -> MovementPhase list
5. RepCounter: complete cycles (cyclic tests) or one event metric (jumps)
6. QualityAssessor: posture, consistency, range of motion and timing scores
7. IntegrityAnalyzer: weighted tamper/assistance checks over raw frame signals
8. BenchmarkEngine: age/gender norms -> percentile and rating tier
9. ResultCompiler: merges everything into an immutable AssessmentResult
10. AnalysisPipeline / analyze: orchestration, parallel branches, cancellation

Usage:
    from fitassess import analyze

    result = analyze(frames, "push-ups", {"age": 17, "gender": "male"})
    if result.is_ok:
        print(result.repetition_or_event.repetition_count)
"""

from fitassess.cv.frame_source import (
    FrameSignalSource,
    PresenceDetector,
    SequenceFrameSource,
    MappingPresenceDetector,
)
from fitassess.cv.signal_smoother import SignalSmoother
from fitassess.cv.phase_segmenter import PhaseSegmenter, SegmentationResult
from fitassess.cv.rep_counter import RepCounter
from fitassess.cv.quality_assessor import QualityAssessor
from fitassess.cv.integrity_analyzer import (
    IntegrityAnalyzer,
    IntegrityThresholds,
    classify_motion_pattern,
)
from fitassess.cv.benchmark import BenchmarkEngine, age_group, percentile_for, rating_for
from fitassess.cv.result_compiler import ResultCompiler
from fitassess.cv.resource_profile import (
    CancellationToken,
    DeviceProfile,
    DEVICE_PROFILES,
    FrameBuffer,
)
from fitassess.cv.pipeline import AnalysisPipeline, analyze

__all__ = [
    # Capability interfaces
    "FrameSignalSource",
    "PresenceDetector",
    "SequenceFrameSource",
    "MappingPresenceDetector",

    # Movement branch
    "SignalSmoother",
    "PhaseSegmenter",
    "SegmentationResult",
    "RepCounter",
    "QualityAssessor",

    # Integrity branch
    "IntegrityAnalyzer",
    "IntegrityThresholds",
    "classify_motion_pattern",

    # Benchmarking
    "BenchmarkEngine",
    "age_group",
    "percentile_for",
    "rating_for",

    # Compilation
    "ResultCompiler",

    # Resource policy
    "CancellationToken",
    "DeviceProfile",
    "DEVICE_PROFILES",
    "FrameBuffer",

    # Main pipeline
    "AnalysisPipeline",
    "analyze",
]
