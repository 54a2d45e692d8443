"""
Derived per-frame body signals.

Turns raw keypoints into the signals the state machines run on:
- Joint angles (knee, hip, elbow, body line) in degrees, 180 = straight
- Torso lean from vertical, in degrees
- Centre-of-mass velocity in normalized image units per second

Any signal whose contributing keypoints fall below the confidence threshold
is undefined (None) for that frame. Nothing is interpolated.
"""

from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from fitassess.models.test_kind import SignalKind
from fitassess.schemas.frame import FrameSignal, JointName, Keypoint

# (first, vertex, last) joint triples per side
_ANGLE_JOINTS: Dict[SignalKind, Tuple[Tuple[JointName, JointName, JointName], ...]] = {
    SignalKind.KNEE_ANGLE: (
        (JointName.LEFT_HIP, JointName.LEFT_KNEE, JointName.LEFT_ANKLE),
        (JointName.RIGHT_HIP, JointName.RIGHT_KNEE, JointName.RIGHT_ANKLE),
    ),
    SignalKind.HIP_ANGLE: (
        (JointName.LEFT_SHOULDER, JointName.LEFT_HIP, JointName.LEFT_KNEE),
        (JointName.RIGHT_SHOULDER, JointName.RIGHT_HIP, JointName.RIGHT_KNEE),
    ),
    SignalKind.ELBOW_ANGLE: (
        (JointName.LEFT_SHOULDER, JointName.LEFT_ELBOW, JointName.LEFT_WRIST),
        (JointName.RIGHT_SHOULDER, JointName.RIGHT_ELBOW, JointName.RIGHT_WRIST),
    ),
    SignalKind.BODY_LINE_ANGLE: (
        (JointName.LEFT_SHOULDER, JointName.LEFT_HIP, JointName.LEFT_ANKLE),
        (JointName.RIGHT_SHOULDER, JointName.RIGHT_HIP, JointName.RIGHT_ANKLE),
    ),
}

_COM_JOINTS = (
    JointName.LEFT_SHOULDER,
    JointName.RIGHT_SHOULDER,
    JointName.LEFT_HIP,
    JointName.RIGHT_HIP,
)


def _visible(kp: Optional[Keypoint], min_confidence: float) -> bool:
    return kp is not None and kp.confidence >= min_confidence


def joint_angle(a: Keypoint, b: Keypoint, c: Keypoint) -> float:
    """Angle at vertex `b` in degrees (180 = fully extended)."""
    v1 = np.array([a.x - b.x, a.y - b.y])
    v2 = np.array([c.x - b.x, c.y - b.y])

    cos_angle = np.dot(v1, v2) / (np.linalg.norm(v1) * np.linalg.norm(v2) + 1e-6)
    angle_rad = np.arccos(np.clip(cos_angle, -1.0, 1.0))

    return float(np.degrees(angle_rad))


def bilateral_angle(
    frame: FrameSignal,
    signal: SignalKind,
    min_confidence: float = 0.3,
) -> Optional[float]:
    """Average of the left/right joint angle over the sides that are visible."""
    angles = []
    for first, vertex, last in _ANGLE_JOINTS[signal]:
        a, b, c = frame.keypoint(first), frame.keypoint(vertex), frame.keypoint(last)
        if not all(_visible(kp, min_confidence) for kp in (a, b, c)):
            continue
        angles.append(joint_angle(a, b, c))

    if not angles:
        return None
    return float(np.mean(angles))


def torso_lean(frame: FrameSignal, min_confidence: float = 0.3) -> Optional[float]:
    """Torso angle from vertical in degrees (0 = upright)."""
    mid_hip = _midpoint(frame, JointName.LEFT_HIP, JointName.RIGHT_HIP, min_confidence)
    mid_shoulder = _midpoint(frame, JointName.LEFT_SHOULDER, JointName.RIGHT_SHOULDER, min_confidence)
    if mid_hip is None or mid_shoulder is None:
        return None

    torso = mid_shoulder - mid_hip
    norm = np.linalg.norm(torso)
    if norm < 1e-6:
        return None

    # Image y grows downward, so "up" is -y
    vertical = np.array([0.0, -1.0])
    cos_angle = np.dot(torso, vertical) / norm
    return float(np.degrees(np.arccos(np.clip(cos_angle, -1.0, 1.0))))


def center_of_mass(frame: FrameSignal, min_confidence: float = 0.3) -> Optional[np.ndarray]:
    """Mean position of the visible shoulders and hips."""
    points = [
        (kp.x, kp.y)
        for kp in (frame.keypoint(j) for j in _COM_JOINTS)
        if _visible(kp, min_confidence)
    ]
    if len(points) < 2:
        return None
    return np.mean(np.array(points), axis=0)


def body_height(frame: FrameSignal, min_confidence: float = 0.3) -> Optional[float]:
    """Nose-to-ankle vertical extent in normalized units."""
    nose = frame.keypoint(JointName.NOSE)
    ankles = [
        kp for kp in (frame.keypoint(JointName.LEFT_ANKLE), frame.keypoint(JointName.RIGHT_ANKLE))
        if _visible(kp, min_confidence)
    ]
    if not _visible(nose, min_confidence) or not ankles:
        return None
    height = float(np.mean([kp.y for kp in ankles])) - nose.y
    return height if height > 0.05 else None


def _midpoint(
    frame: FrameSignal,
    left: JointName,
    right: JointName,
    min_confidence: float,
) -> Optional[np.ndarray]:
    points = [
        np.array([kp.x, kp.y])
        for kp in (frame.keypoint(left), frame.keypoint(right))
        if _visible(kp, min_confidence)
    ]
    if not points:
        return None
    return np.mean(points, axis=0)


def com_velocity_series(
    frames: Sequence[FrameSignal],
    min_confidence: float = 0.3,
) -> Tuple[List[Optional[float]], List[Optional[float]]]:
    """
    Per-frame centre-of-mass velocity (vx, vy) in normalized units/s.

    vy is positive upward. The first frame, and any frame whose COM or whose
    predecessor's COM is undefined, has no velocity.
    """
    vx: List[Optional[float]] = [None] * len(frames)
    vy: List[Optional[float]] = [None] * len(frames)

    prev_com: Optional[np.ndarray] = None
    prev_ts: Optional[int] = None
    for i, frame in enumerate(frames):
        com = center_of_mass(frame, min_confidence)
        if com is not None and prev_com is not None:
            dt = (frame.timestamp_ms - prev_ts) / 1000.0
            if dt > 0:
                vx[i] = float((com[0] - prev_com[0]) / dt)
                vy[i] = float((prev_com[1] - com[1]) / dt)
        prev_com = com
        prev_ts = frame.timestamp_ms

    return vx, vy


def signal_series(
    frames: Sequence[FrameSignal],
    signal: SignalKind,
    min_confidence: float = 0.3,
) -> List[Optional[float]]:
    """Compute one derived signal for every frame."""
    if signal in _ANGLE_JOINTS:
        return [bilateral_angle(f, signal, min_confidence) for f in frames]
    if signal == SignalKind.TORSO_LEAN:
        return [torso_lean(f, min_confidence) for f in frames]

    vx, vy = com_velocity_series(frames, min_confidence)
    if signal == SignalKind.COM_VELOCITY_X:
        return vx
    if signal == SignalKind.COM_VELOCITY_Y:
        return vy
    raise ValueError(f"Unsupported signal: {signal}")


def compute_signals(
    frames: Sequence[FrameSignal],
    signals: Sequence[SignalKind],
    min_confidence: float = 0.3,
) -> Dict[SignalKind, List[Optional[float]]]:
    """Compute several derived signals at once, each exactly once."""
    return {s: signal_series(frames, s, min_confidence) for s in dict.fromkeys(signals)}


def has_usable_keypoints(frame: FrameSignal, min_confidence: float = 0.3) -> bool:
    return any(kp.confidence >= min_confidence for kp in frame.keypoints.values())
