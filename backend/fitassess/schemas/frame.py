"""Input schemas: per-frame signals, presence observations and user profile."""

from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class JointName(str, Enum):
    """COCO / MoveNet body landmarks."""
    NOSE = "nose"
    LEFT_EYE = "left_eye"
    RIGHT_EYE = "right_eye"
    LEFT_EAR = "left_ear"
    RIGHT_EAR = "right_ear"
    LEFT_SHOULDER = "left_shoulder"
    RIGHT_SHOULDER = "right_shoulder"
    LEFT_ELBOW = "left_elbow"
    RIGHT_ELBOW = "right_elbow"
    LEFT_WRIST = "left_wrist"
    RIGHT_WRIST = "right_wrist"
    LEFT_HIP = "left_hip"
    RIGHT_HIP = "right_hip"
    LEFT_KNEE = "left_knee"
    RIGHT_KNEE = "right_knee"
    LEFT_ANKLE = "left_ankle"
    RIGHT_ANKLE = "right_ankle"


class _FrozenCamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class Keypoint(_FrozenCamelModel):
    """Single landmark in normalized image coordinates (0-1, y grows downward)."""
    x: float
    y: float
    confidence: float = Field(..., ge=0.0, le=1.0)


class FrameSignal(_FrozenCamelModel):
    """
    Everything the analysis knows about one sampled video frame.

    Image statistics are normalized to 0-1 by the frame signal source.
    """
    index: int = Field(..., ge=0)
    timestamp_ms: int = Field(..., ge=0)
    keypoints: Dict[JointName, Keypoint] = Field(default_factory=dict)
    brightness: float = 0.5
    edge_density: float = 0.2
    color_variance: float = 0.2
    motion_magnitude: float = 0.0

    def keypoint(self, joint: JointName) -> Optional[Keypoint]:
        return self.keypoints.get(joint)


class PresenceObservation(_FrozenCamelModel):
    """Output of the person/object presence capability for one frame."""
    person_count: int = Field(1, ge=0)
    objects: Tuple[str, ...] = ()

    @field_validator("objects")
    @classmethod
    def normalize_objects(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(o.strip().lower().replace(" ", "_") for o in v)


class UserProfile(_FrozenCamelModel):
    """Demographic profile used for benchmarking."""
    age: int = Field(..., ge=3, le=120)
    gender: str = "other"
    height_cm: Optional[float] = Field(None, gt=50.0, lt=260.0)

    @field_validator("gender")
    @classmethod
    def validate_gender(cls, v: str) -> str:
        v = v.strip().lower()
        valid = ["male", "female", "other"]
        if v not in valid:
            raise ValueError(f"gender must be one of: {valid}")
        return v
