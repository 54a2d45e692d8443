"""
Resource policy: device profiles, bounded frame buffering and cancellation.

DEVICE PROFILES (reference: 30 fps, 720p):
- high:   30 fps, 1280x720, thresholds unchanged
- medium: 24 fps, 640x480
- low:    15 fps, 320x240

Frame-count thresholds shrink with the frame rate so they keep covering the
same wall-clock time; timing variance grows with the square of the frame
interval; the edge-density floor drops with resolution.

FRAME BUFFER:
Frames are pulled from the source into a bounded buffer. When the buffer
exceeds its budget it drops every other frame and doubles its stride
(halving the effective sampling rate) instead of failing.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from fitassess.errors import AnalysisCancelled, InputError
from fitassess.schemas.frame import FrameSignal

logger = logging.getLogger(__name__)

REFERENCE_FPS = 30.0
REFERENCE_HEIGHT_PX = 720


class CancellationToken:
    """Thread-safe cancel flag shared by the caller and both analysis branches."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise AnalysisCancelled("Analysis cancelled by caller")


@dataclass(frozen=True)
class DeviceProfile:
    """Sampling/resolution budget for one class of device."""
    name: str
    sampling_rate: float  # fps
    resolution: Tuple[int, int]  # (width, height)

    @property
    def frame_rate_scale(self) -> float:
        return self.sampling_rate / REFERENCE_FPS

    @property
    def resolution_scale(self) -> float:
        return self.resolution[1] / REFERENCE_HEIGHT_PX

    def scale_debounce(self, frames: int) -> int:
        """Same wall-clock debounce window at a lower frame rate."""
        return max(1, int(round(frames * self.frame_rate_scale)))

    def scale_timing_variance(self, variance_ms2: float) -> float:
        return variance_ms2 / self.frame_rate_scale ** 2

    def scale_edge_floor(self, floor: float) -> float:
        return floor * self.resolution_scale

    @classmethod
    def for_name(cls, name: Optional[str]) -> Optional["DeviceProfile"]:
        """Look up a profile by name ("high", "medium", "low"); None for no scaling."""
        if name is None:
            return None
        return DEVICE_PROFILES[name.strip().lower()]


DEVICE_PROFILES = {
    "high": DeviceProfile("high", sampling_rate=30.0, resolution=(1280, 720)),
    "medium": DeviceProfile("medium", sampling_rate=24.0, resolution=(640, 480)),
    "low": DeviceProfile("low", sampling_rate=15.0, resolution=(320, 240)),
}


class FrameBuffer:
    """
    Bounded frame buffer with adaptive sampling.

    Frames are optionally thinned to `sampling_rate` by timestamp, then kept
    at the current stride. Exceeding `max_frames` halves the buffer and
    doubles the stride.
    """

    def __init__(
        self,
        max_frames: int = 3600,
        sampling_rate: Optional[float] = None,
        cancel_token: Optional[CancellationToken] = None,
    ):
        if max_frames < 2:
            raise ValueError("max_frames must be at least 2")
        self.max_frames = max_frames
        self.sampling_rate = sampling_rate
        self.cancel_token = cancel_token

        self.stride = 1
        self._frames: List[FrameSignal] = []
        self._position = 0  # Frames accepted by the sampling-rate filter
        self._last_raw: Optional[FrameSignal] = None
        self._next_due_ms: Optional[float] = None

    @property
    def effective_sampling_rate(self) -> Optional[float]:
        if self.sampling_rate is None:
            return None
        return self.sampling_rate / self.stride

    def __len__(self) -> int:
        return len(self._frames)

    def fill(self, source: Iterable[FrameSignal]) -> Tuple[FrameSignal, ...]:
        """
        Consume the source and return the buffered frames.

        Raises:
            AnalysisCancelled: the token was cancelled; the buffer is cleared
            InputError: frames out of order
        """
        for frame in source:
            if self.cancel_token is not None and self.cancel_token.cancelled:
                self.clear()
                raise AnalysisCancelled("Analysis cancelled while reading frames")
            self.push(frame)

        logger.info(
            f"Buffered {len(self._frames)} frames (stride={self.stride}, "
            f"sampling_rate={self.effective_sampling_rate})"
        )
        return tuple(self._frames)

    def push(self, frame: FrameSignal):
        """
        Offer one frame to the buffer.

        Ordering is checked against the previous raw frame, before any
        thinning, so a dropped frame can never hide an out-of-order one.

        Raises:
            InputError: index or timestamp not strictly increasing
        """
        previous = self._last_raw
        if previous is not None and (
            frame.index <= previous.index or frame.timestamp_ms <= previous.timestamp_ms
        ):
            raise InputError(
                f"Frames must be strictly increasing in index and timestamp "
                f"(frame {previous.index} -> {frame.index})"
            )
        self._last_raw = frame

        if not self._accept_by_rate(frame):
            return

        position = self._position
        self._position += 1
        if position % self.stride:
            return

        self._frames.append(frame)
        if len(self._frames) > self.max_frames:
            self._frames = self._frames[::2]
            self.stride *= 2
            logger.warning(
                f"Frame buffer over budget ({self.max_frames}); "
                f"halving sampling rate (stride={self.stride})"
            )

    def clear(self):
        self._frames.clear()
        self._position = 0
        self._last_raw = None
        self._next_due_ms = None
        self.stride = 1

    def _accept_by_rate(self, frame: FrameSignal) -> bool:
        if self.sampling_rate is None:
            return True
        interval_ms = 1000.0 / self.sampling_rate
        # Half-millisecond slack for integer timestamps
        if self._next_due_ms is not None and frame.timestamp_ms < self._next_due_ms - 0.5:
            return False
        due = frame.timestamp_ms if self._next_due_ms is None else self._next_due_ms
        while due <= frame.timestamp_ms + 0.5:
            due += interval_ms
        self._next_due_ms = due
        return True
