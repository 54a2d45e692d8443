"""
Result compiler.

Sink of both analysis branches. Always returns a well-formed, immutable
AssessmentResult; failures become status fields, never exceptions.

STATUS:
- Ok: every stage produced output
- Degraded: too few frames, an estimation gap, a segmentation failure or
  missing norms; confidence 0
- Failed: rejected input, no usable keypoints at all, or an unexpected
  stage error; confidence 0

CONFIDENCE (Ok only):
    base (0.8) - 0.3 if suspicious or unverified + 0.1 if quality.overall >= 0.8, clamped to [0, 1]
"""

import logging
from typing import Optional, Sequence

from fitassess.errors import AnalysisError, EstimationGap, InputError
from fitassess.models.assessment import AnalysisStatus, DegradationReason
from fitassess.schemas.result import (
    AssessmentResult,
    BenchmarkResult,
    MovementPhase,
    QualityScore,
    RepetitionOutcome,
    SuspicionAssessment,
)

logger = logging.getLogger(__name__)

SUSPICION_PENALTY = 0.3
QUALITY_BONUS = 0.1
QUALITY_BONUS_THRESHOLD = 0.8


class ResultCompiler:
    """Merges branch outputs into an AssessmentResult."""

    def __init__(self, base_confidence: float = 0.8):
        self.base_confidence = base_confidence

    def compute_confidence(
        self,
        integrity: Optional[SuspicionAssessment],
        quality: Optional[QualityScore],
    ) -> float:
        confidence = self.base_confidence
        # An unverified recording is penalised like a suspicious one
        if integrity is None or integrity.is_suspicious:
            confidence -= SUSPICION_PENALTY
        if quality is not None and quality.overall >= QUALITY_BONUS_THRESHOLD:
            confidence += QUALITY_BONUS
        return round(min(1.0, max(0.0, confidence)), 4)

    def compile(
        self,
        test_kind: str,
        *,
        phases: Sequence[MovementPhase] = (),
        outcome: Optional[RepetitionOutcome] = None,
        quality: Optional[QualityScore] = None,
        integrity: Optional[SuspicionAssessment] = None,
        benchmark: Optional[BenchmarkResult] = None,
        error: Optional[BaseException] = None,
        low_confidence: bool = False,
        low_confidence_reason: Optional[str] = None,
        warnings: Sequence[str] = (),
    ) -> AssessmentResult:
        """Build the final result from whatever the stages produced."""
        if error is not None:
            return self._from_error(
                test_kind, error,
                phases=phases, outcome=outcome, quality=quality,
                integrity=integrity, warnings=warnings,
            )

        if low_confidence:
            explanation = DegradationReason.get_description(DegradationReason.ESTIMATION_GAP)
            if low_confidence_reason:
                explanation = f"{explanation}: {low_confidence_reason}"
            logger.warning(f"Degraded result for {test_kind}: {explanation}")
            return AssessmentResult(
                test_kind=test_kind,
                phases=tuple(phases),
                integrity=integrity,
                confidence=0.0,
                status=AnalysisStatus.DEGRADED,
                explanation=explanation,
                error_kind=DegradationReason.ESTIMATION_GAP,
                warnings=tuple(warnings),
            )

        confidence = self.compute_confidence(integrity, quality)
        logger.info(f"Compiled {test_kind} result: confidence={confidence}")
        return AssessmentResult(
            test_kind=test_kind,
            repetition_or_event=outcome,
            quality=quality,
            integrity=integrity,
            benchmark=benchmark,
            confidence=confidence,
            status=AnalysisStatus.OK,
            phases=tuple(phases),
            warnings=tuple(warnings),
        )

    def failed(
        self,
        test_kind: str,
        error: BaseException,
        warnings: Sequence[str] = (),
    ) -> AssessmentResult:
        """Result for input rejected before any processing."""
        return self._from_error(test_kind, error, warnings=warnings)

    def _from_error(
        self,
        test_kind: str,
        error: BaseException,
        *,
        phases: Sequence[MovementPhase] = (),
        outcome: Optional[RepetitionOutcome] = None,
        quality: Optional[QualityScore] = None,
        integrity: Optional[SuspicionAssessment] = None,
        warnings: Sequence[str] = (),
    ) -> AssessmentResult:
        if isinstance(error, AnalysisError):
            kind = error.kind
            message = error.message
        else:
            kind = DegradationReason.STAGE_ERROR
            message = f"{type(error).__name__}: {error}"

        if isinstance(error, InputError) or not isinstance(error, AnalysisError):
            status = AnalysisStatus.FAILED
        elif isinstance(error, EstimationGap) and error.no_usable_keypoints:
            status = AnalysisStatus.FAILED
        else:
            status = AnalysisStatus.DEGRADED

        explanation = f"{DegradationReason.get_description(kind)}: {message}"
        logger.warning(f"{status.value} result for {test_kind}: {explanation}")

        return AssessmentResult(
            test_kind=test_kind,
            repetition_or_event=outcome,
            quality=quality,
            integrity=integrity,
            confidence=0.0,
            status=status,
            phases=tuple(phases),
            explanation=explanation,
            error_kind=kind,
            warnings=tuple(warnings),
        )
