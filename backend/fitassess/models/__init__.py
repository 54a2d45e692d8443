"""Domain vocabularies and per-test-kind tables."""

from fitassess.models.assessment import (
    AnalysisStatus,
    DegradationReason,
    MovementPattern,
    QualityBand,
    RatingTier,
)
from fitassess.models.integrity import IntegrityCheckKind
from fitassess.models.test_kind import (
    GenericState,
    SignalKind,
    TestKind,
    TestMode,
    TestProfile,
    TEST_PROFILES,
    get_profile,
)

__all__ = [
    "AnalysisStatus",
    "DegradationReason",
    "MovementPattern",
    "QualityBand",
    "RatingTier",
    "IntegrityCheckKind",
    "GenericState",
    "SignalKind",
    "TestKind",
    "TestMode",
    "TestProfile",
    "TEST_PROFILES",
    "get_profile",
]
