from fitassess.schemas.frame import (
    JointName,
    Keypoint,
    FrameSignal,
    PresenceObservation,
    UserProfile,
)
from fitassess.schemas.options import (
    AnalysisOptions,
    NormsTable,
    NormThresholds,
    AGE_GROUPS,
)
from fitassess.schemas.result import (
    MovementPhase,
    RepetitionEvent,
    RepetitionOutcome,
    QualityScore,
    IntegrityCheckResult,
    SuspicionAssessment,
    BenchmarkResult,
    AssessmentResult,
)

__all__ = [
    # Input
    "JointName",
    "Keypoint",
    "FrameSignal",
    "PresenceObservation",
    "UserProfile",
    # Options
    "AnalysisOptions",
    "NormsTable",
    "NormThresholds",
    "AGE_GROUPS",
    # Output
    "MovementPhase",
    "RepetitionEvent",
    "RepetitionOutcome",
    "QualityScore",
    "IntegrityCheckResult",
    "SuspicionAssessment",
    "BenchmarkResult",
    "AssessmentResult",
]
