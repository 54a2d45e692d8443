"""
Output schemas.

Every model is frozen; an AssessmentResult is built once per analysis and
never mutated. Serialized field names are camelCase
(``result.to_dict()``), ready for JSON transport by the caller.
"""

from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from fitassess.models.assessment import AnalysisStatus, RatingTier
from fitassess.models.test_kind import GenericState


class _ResultModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class MovementPhase(_ResultModel):
    """A contiguous frame interval classified as one stage of the movement."""
    phase_kind: str
    generic_state: GenericState
    start_index: int
    end_index: int
    duration_ms: int


class RepetitionEvent(_ResultModel):
    """One complete active + recovery cycle (e.g. down + up)."""
    active_phase: MovementPhase
    recovery_phase: MovementPhase
    duration_ms: int


class RepetitionOutcome(_ResultModel):
    """A repetition count or a single-event metric, never both."""
    kind: str  # "count" or "metric"
    repetition_count: Optional[int] = None
    metric_name: Optional[str] = None
    metric_value: Optional[float] = None
    metric_unit: Optional[str] = None
    incomplete_final_repetition: bool = False
    rejected_cycles: int = 0
    events: Tuple[RepetitionEvent, ...] = ()
    warnings: Tuple[str, ...] = ()

    @property
    def performance_score(self) -> float:
        """Scalar used for benchmarking."""
        if self.kind == "count":
            return float(self.repetition_count or 0)
        return float(self.metric_value or 0.0)


class QualityScore(_ResultModel):
    posture: float = Field(..., ge=0.0, le=1.0)
    consistency: float = Field(..., ge=0.0, le=1.0)
    range_of_motion: float = Field(..., ge=0.0, le=1.0)
    timing: float = Field(..., ge=0.0, le=1.0)
    overall: float = Field(..., ge=0.0, le=1.0)
    band: str


class IntegrityCheckResult(_ResultModel):
    check_kind: str
    triggered: bool
    weight: float
    detail: str


class SuspicionAssessment(_ResultModel):
    score: float = Field(..., ge=0.0, le=1.0)
    is_suspicious: bool
    issues: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()
    checks: Tuple[IntegrityCheckResult, ...] = ()
    warnings: Tuple[str, ...] = ()


class BenchmarkResult(_ResultModel):
    age_group: str
    gender: str
    score: float
    percentile: float = Field(..., ge=0.0, le=100.0)
    rating_tier: RatingTier
    recommendations: Tuple[str, ...] = ()


class AssessmentResult(_ResultModel):
    """
    Complete result of one analysis invocation.

    Callers branch on ``status``: for Degraded/Failed results the stages that
    could not produce output are None, ``confidence`` is 0 and
    ``explanation`` says why.
    """
    test_kind: str
    repetition_or_event: Optional[RepetitionOutcome] = None
    quality: Optional[QualityScore] = None
    integrity: Optional[SuspicionAssessment] = None
    benchmark: Optional[BenchmarkResult] = None
    confidence: float = Field(..., ge=0.0, le=1.0)
    status: AnalysisStatus
    phases: Tuple[MovementPhase, ...] = ()
    explanation: Optional[str] = None
    error_kind: Optional[str] = None
    warnings: Tuple[str, ...] = ()

    @property
    def is_ok(self) -> bool:
        return self.status == AnalysisStatus.OK

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible dict with camelCase field names."""
        return self.model_dump(by_alias=True, mode="json")
