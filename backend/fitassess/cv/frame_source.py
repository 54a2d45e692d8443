"""
Capability interfaces for the outside world.

Decoding, pose estimation and person/object detection live outside this
package. The pipeline only sees:
- FrameSignalSource: an iterable of FrameSignal, in capture order
- PresenceDetector: per-frame person count and detected objects

In-memory implementations are provided for callers that already hold the
signals (and for tests).
"""

from typing import Dict, Iterable, Iterator, Mapping, Optional, Protocol, runtime_checkable

from fitassess.schemas.frame import FrameSignal, PresenceObservation


@runtime_checkable
class FrameSignalSource(Protocol):
    """Anything that yields FrameSignal objects in capture order."""

    def __iter__(self) -> Iterator[FrameSignal]:
        ...


@runtime_checkable
class PresenceDetector(Protocol):
    """Reports how many people and which objects are visible in a frame."""

    def detect(self, frame: FrameSignal) -> PresenceObservation:
        ...


class SequenceFrameSource:
    """FrameSignalSource over an in-memory sequence."""

    def __init__(self, frames: Iterable[FrameSignal]):
        self._frames = tuple(frames)

    def __iter__(self) -> Iterator[FrameSignal]:
        return iter(self._frames)

    def __len__(self) -> int:
        return len(self._frames)


class MappingPresenceDetector:
    """
    PresenceDetector backed by precomputed observations keyed by frame index.

    Frames without an entry are reported as a single person with no objects.
    """

    def __init__(
        self,
        observations: Mapping[int, PresenceObservation],
        default: Optional[PresenceObservation] = None,
    ):
        self._observations: Dict[int, PresenceObservation] = dict(observations)
        self._default = default or PresenceObservation()

    @classmethod
    def from_person_counts(cls, counts: Mapping[int, int]) -> "MappingPresenceDetector":
        return cls({idx: PresenceObservation(person_count=n) for idx, n in counts.items()})

    def detect(self, frame: FrameSignal) -> PresenceObservation:
        return self._observations.get(frame.index, self._default)
