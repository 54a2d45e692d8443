"""Fitness-test recording analysis: counts, quality, integrity and benchmarks."""

from fitassess.cv.pipeline import AnalysisPipeline, analyze
from fitassess.cv.resource_profile import CancellationToken
from fitassess.errors import (
    AnalysisCancelled,
    AnalysisError,
    BenchmarkUnavailable,
    EstimationGap,
    InputError,
    SegmentationFailure,
)
from fitassess.models import AnalysisStatus, RatingTier, TestKind
from fitassess.schemas import AnalysisOptions, AssessmentResult, FrameSignal, NormsTable, UserProfile

__version__ = "0.1.0"

__all__ = [
    "analyze",
    "AnalysisPipeline",
    "CancellationToken",
    "AnalysisCancelled",
    "AnalysisError",
    "BenchmarkUnavailable",
    "EstimationGap",
    "InputError",
    "SegmentationFailure",
    "AnalysisStatus",
    "RatingTier",
    "TestKind",
    "AnalysisOptions",
    "AssessmentResult",
    "FrameSignal",
    "NormsTable",
    "UserProfile",
]
