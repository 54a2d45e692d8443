"""
Shared fixtures: synthetic frame sequences with known joint angles.

All builders place the left and right sides at the same coordinates, so
bilateral angles equal the requested angle. Frames are 100ms apart unless
stated otherwise.
"""

import math
from typing import Dict, List, Optional, Sequence

import pytest

from fitassess.schemas.frame import FrameSignal, JointName, Keypoint, UserProfile

FRAME_MS = 100


def _kp(x: float, y: float, confidence: float = 0.9) -> Keypoint:
    return Keypoint(x=x, y=y, confidence=confidence)


def _both_sides(points: Dict[str, tuple], confidence: float = 0.9) -> Dict[JointName, Keypoint]:
    keypoints = {}
    for name, (x, y) in points.items():
        if name == "nose":
            keypoints[JointName.NOSE] = _kp(x, y, confidence)
            continue
        keypoints[JointName(f"left_{name}")] = _kp(x, y, confidence)
        keypoints[JointName(f"right_{name}")] = _kp(x, y, confidence)
    return keypoints


def make_frame(index: int, keypoints: Dict[JointName, Keypoint], **stats) -> FrameSignal:
    return FrameSignal(
        index=index,
        timestamp_ms=stats.pop("timestamp_ms", index * FRAME_MS),
        keypoints=keypoints,
        **stats,
    )


def standing_keypoints(knee_angle: float, hip_y: float, hip_x: float = 0.5) -> Dict[JointName, Keypoint]:
    """Upright torso over a knee bent to `knee_angle` degrees."""
    theta = math.radians(knee_angle)
    knee = (hip_x, hip_y + 0.2)
    ankle = (knee[0] + 0.2 * math.sin(theta), knee[1] - 0.2 * math.cos(theta))
    return _both_sides({
        "nose": (hip_x, hip_y - 0.4),
        "shoulder": (hip_x, hip_y - 0.3),
        "elbow": (hip_x, hip_y - 0.15),
        "wrist": (hip_x, hip_y),
        "hip": (hip_x, hip_y),
        "knee": knee,
        "ankle": ankle,
    })


def situp_keypoints(hip_angle: float) -> Dict[JointName, Keypoint]:
    """Lying/sitting with knees at 90 degrees and the trunk at `hip_angle`."""
    theta = math.radians(hip_angle)
    hip = (0.5, 0.6)
    direction = (math.cos(theta), -math.sin(theta))
    shoulder = (hip[0] + 0.3 * direction[0], hip[1] + 0.3 * direction[1])
    return _both_sides({
        "nose": (hip[0] + 0.4 * direction[0], hip[1] + 0.4 * direction[1]),
        "shoulder": shoulder,
        "elbow": shoulder,
        "wrist": shoulder,
        "hip": hip,
        "knee": (0.7, 0.6),
        "ankle": (0.7, 0.8),
    })


def pushup_keypoints(elbow_angle: float) -> Dict[JointName, Keypoint]:
    """Straight body line with the elbow bent to `elbow_angle` degrees."""
    theta = math.radians(elbow_angle)
    shoulder = (0.4, 0.5)
    elbow = (0.4, 0.65)
    wrist = (elbow[0] + 0.15 * math.sin(theta), elbow[1] - 0.15 * math.cos(theta))
    return _both_sides({
        "nose": (0.35, 0.5),
        "shoulder": shoulder,
        "elbow": elbow,
        "wrist": wrist,
        "hip": (0.6, 0.5),
        "knee": (0.75, 0.5),
        "ankle": (0.9, 0.5),
    })


# Scenario A jump: (knee angle, hip y) per frame
JUMP_SCRIPT = (
    [(175.0, 0.50)] * 5                           # 0-4 standing
    + [(90.0, 0.60)] * 7                          # 5-11 crouch
    + [(175.0, 0.55), (175.0, 0.50), (175.0, 0.45)]  # 12-14 take-off
    + [(175.0, 0.47), (175.0, 0.50), (175.0, 0.55)]  # 15-17 flight
    + [(120.0, 0.60)] * 5                         # 18-22 land
    + [(175.0, 0.50)] * 7                         # 23-29 standing
)

JUMP_MOTION = [0.02] * 12 + [0.4, 0.9, 1.0, 0.9, 0.6, 0.4, 0.2] + [0.02] * 11


def build_jump_frames(
    extra_standing: int = 0,
    brightness: Optional[Sequence[float]] = None,
    color_variance: Optional[Sequence[float]] = None,
) -> List[FrameSignal]:
    script = JUMP_SCRIPT + [(175.0, 0.50)] * extra_standing
    motion = JUMP_MOTION + [0.02] * extra_standing
    frames = []
    for i, (knee, hip_y) in enumerate(script):
        frames.append(make_frame(
            i,
            standing_keypoints(knee, hip_y),
            brightness=brightness[i] if brightness is not None else 0.5,
            color_variance=color_variance[i] if color_variance is not None else 0.2,
            edge_density=0.2,
            motion_magnitude=motion[i],
        ))
    return frames


def build_cycle_frames(
    keypoint_builder,
    active_angle: float,
    recovery_angle: float,
    cycles: int,
    frames_per_half: int = 4,
    trailing_active: int = 0,
) -> List[FrameSignal]:
    """Cycles that start in the active position, e.g. low/high alternation."""
    angles: List[float] = []
    for _ in range(cycles):
        angles += [active_angle] * frames_per_half + [recovery_angle] * frames_per_half
    angles += [active_angle] * trailing_active

    motion_cycle = [0.1, 0.6, 1.0, 0.6] * 2
    return [
        make_frame(
            i,
            keypoint_builder(angle),
            motion_magnitude=motion_cycle[i % len(motion_cycle)],
        )
        for i, angle in enumerate(angles)
    ]



def build_shuttle_frames(laps: int, frames_per_leg: int = 12) -> List[FrameSignal]:
    """
    Out-and-back laps along x at 0.2 units/s, slowing to a turn between legs.

    Motion is high while running and drops at every turn.
    """
    period = 2 * frames_per_leg
    frames = []
    for i in range(laps * period + 1):
        leg_position = i % period
        offset = leg_position if leg_position <= frames_per_leg else period - leg_position
        frames.append(make_frame(
            i,
            standing_keypoints(165.0, 0.5, hip_x=0.3 + 0.02 * offset),
            motion_magnitude=0.1 if i % frames_per_leg == 0 else 0.8,
        ))
    return frames


def build_stride_frames(steps: int, frames_per_half: int = 4) -> List[FrameSignal]:
    """Running on the spot: the hips bob 0.02 units per frame, one bob per step."""
    period = 2 * frames_per_half
    frames = []
    for i in range(steps * period + 1):
        phase = i % period
        rise = phase if phase <= frames_per_half else period - phase
        frames.append(make_frame(
            i,
            standing_keypoints(165.0, 0.5 - 0.02 * rise),
            motion_magnitude=0.5,
        ))
    return frames

@pytest.fixture
def jump_frames() -> List[FrameSignal]:
    return build_jump_frames()


@pytest.fixture
def situp_frames() -> List[FrameSignal]:
    """40 frames, 5 full sit-up cycles of 800ms (hip 45 deg <-> 150 deg)."""
    return build_cycle_frames(situp_keypoints, 45.0, 150.0, cycles=5)


@pytest.fixture
def pushup_frames() -> List[FrameSignal]:
    """40 frames, 5 full push-ups of 800ms (elbow 50 deg <-> 170 deg)."""
    return build_cycle_frames(pushup_keypoints, 50.0, 170.0, cycles=5)


@pytest.fixture
def athlete() -> UserProfile:
    return UserProfile(age=17, gender="male", height_cm=175.0)
