"""
Error taxonomy for the analysis pipeline.

Stages raise these; the pipeline catches them and the result compiler turns
them into explicit status fields. Only AnalysisCancelled crosses the
``analyze`` boundary.
"""


class AnalysisError(Exception):
    """Base class for analysis failures that degrade the result."""

    kind: str = "analysis_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputError(AnalysisError):
    """Missing/empty frame sequence, bad ordering or unknown test kind."""

    kind = "input_error"


class EstimationGap(AnalysisError):
    """Too few frames, or too many frames without usable keypoints."""

    kind = "estimation_gap"

    def __init__(self, message: str, no_usable_keypoints: bool = False):
        super().__init__(message)
        self.no_usable_keypoints = no_usable_keypoints


class SegmentationFailure(AnalysisError):
    """No movement phases could be identified despite sufficient frames."""

    kind = "segmentation_failure"


class BenchmarkUnavailable(AnalysisError):
    """No norm thresholds exist for the requested test/age/gender."""

    kind = "benchmark_unavailable"


class AnalysisCancelled(Exception):
    """The caller aborted the analysis; no result is produced."""
