"""Integrity check vocabulary: kinds, weights, issues and remediation."""

from typing import Dict, List


class IntegrityCheckKind:
    """
    Independent integrity checks run over the raw frame signals.

    Each check maps to a fixed weight in the suspicion score and to one
    human-readable issue and recommendation.
    """
    BRIGHTNESS_CONSISTENCY = "brightness_consistency"
    FRAME_TIMING = "frame_timing"
    COMPRESSION_ARTIFACTS = "compression_artifacts"
    SPLICE = "splice"
    MOVEMENT_PATTERN = "movement_pattern"
    MULTI_PERSON = "multi_person"
    ENVIRONMENT_CONSISTENCY = "environment_consistency"

    WEIGHTS: Dict[str, float] = {
        BRIGHTNESS_CONSISTENCY: 0.15,
        FRAME_TIMING: 0.10,
        COMPRESSION_ARTIFACTS: 0.20,
        SPLICE: 0.30,
        MOVEMENT_PATTERN: 0.15,
        MULTI_PERSON: 0.25,
        ENVIRONMENT_CONSISTENCY: 0.10,
    }

    @classmethod
    def all(cls) -> List[str]:
        return [
            cls.BRIGHTNESS_CONSISTENCY,
            cls.FRAME_TIMING,
            cls.COMPRESSION_ARTIFACTS,
            cls.SPLICE,
            cls.MOVEMENT_PATTERN,
            cls.MULTI_PERSON,
            cls.ENVIRONMENT_CONSISTENCY,
        ]

    @classmethod
    def weight(cls, kind: str) -> float:
        return cls.WEIGHTS[kind]

    @classmethod
    def get_issue(cls, kind: str) -> str:
        """Get the issue reported when a check triggers."""
        issues = {
            cls.BRIGHTNESS_CONSISTENCY: "Inconsistent lighting detected",
            cls.FRAME_TIMING: "Frame rate inconsistencies detected",
            cls.COMPRESSION_ARTIFACTS: "Video compression artifacts detected",
            cls.SPLICE: "Video splicing detected",
            cls.MOVEMENT_PATTERN: "Movement pattern inconsistencies",
            cls.MULTI_PERSON: "Multiple people or disallowed objects detected in video",
            cls.ENVIRONMENT_CONSISTENCY: "Environment inconsistencies detected",
        }
        return issues.get(kind, kind)

    @classmethod
    def get_recommendation(cls, kind: str) -> str:
        """Get the remediation advice for a triggered check."""
        recommendations = {
            cls.BRIGHTNESS_CONSISTENCY: "Ensure consistent lighting throughout the recording",
            cls.FRAME_TIMING: "Record in a single continuous take",
            cls.COMPRESSION_ARTIFACTS: "Avoid editing or re-compressing the video",
            cls.SPLICE: "Record the entire test in one continuous take",
            cls.MOVEMENT_PATTERN: "Follow the test instructions carefully",
            cls.MULTI_PERSON: "Ensure only the test taker is visible",
            cls.ENVIRONMENT_CONSISTENCY: "Record in a single location",
        }
        return recommendations.get(kind, "Please try recording again")


# Shown when no check triggers.
CLEAN_RECOMMENDATION = "Video analysis completed successfully"

# Objects whose presence suggests external assistance.
DISALLOWED_OBJECTS = frozenset({
    "chair",
    "bench",
    "resistance_band",
    "rope",
    "trampoline",
    "springboard",
})
