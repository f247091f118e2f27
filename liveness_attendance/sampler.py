import math
import threading
from typing import Callable, Iterator, List, Optional, Protocol, TypeVar

import numpy as np

from .exceptions import AttemptCancelled, ModelNotReady, TrackingLost
from .logger import setup_logger
from .types import FaceDetection, FrameSample, LandmarkSet

T = TypeVar("T")


class FrameSource(Protocol):
    def read(self) -> np.ndarray: ...


class DescriptorSource(Protocol):
    ready: bool

    def detect(self, frame: np.ndarray) -> Optional[FaceDetection]: ...


class FrameSampler:
    """Pulls frames from one camera session and runs the face engine on each.

    Waiting between ticks goes through ``wait`` (``cancel_event.wait`` by
    default), which returns True once the attempt has been cancelled.
    """

    def __init__(
        self,
        camera: FrameSource,
        source: DescriptorSource,
        cancel_event: Optional[threading.Event] = None,
        wait: Optional[Callable[[float], bool]] = None,
    ):
        if not getattr(source, "ready", False):
            raise ModelNotReady("Face models are not loaded. Call load() first.")

        self.camera = camera
        self.source = source
        self.cancel_event = cancel_event or threading.Event()
        self._wait = wait or self.cancel_event.wait
        self.logger = setup_logger(self.__class__.__name__)

    def sample(self, max_frames: int, interval_ms: int) -> Iterator[FrameSample]:
        for index in range(max_frames):
            if index:
                self.pause(interval_ms)
            self._raise_if_cancelled()

            frame = self.camera.read()
            detection = self.source.detect(frame)
            if detection is None:
                yield FrameSample()
            else:
                yield FrameSample(landmarks=detection.landmarks, descriptor=detection.descriptor)

    def collect(
        self,
        frames: int,
        interval_ms: int,
        extract: Callable[[LandmarkSet], T],
        lost_reason: str,
    ) -> List[T]:
        """Sample ``frames`` ticks, keeping ``extract(landmarks)`` for tracked ones.

        Frames without a face are skipped; at least half of them must be
        tracked or ``TrackingLost`` is raised once the run completes.
        """
        values: List[T] = []
        for index, sample in enumerate(self.sample(frames, interval_ms)):
            if sample.landmarks is None:
                self.logger.debug("Frame %d lost tracking, continuing", index)
                continue
            values.append(extract(sample.landmarks))

        required = math.ceil(frames / 2)
        if len(values) < required:
            raise TrackingLost(lost_reason, valid_frames=len(values), required_frames=required)
        return values

    def pause(self, duration_ms: int) -> None:
        if duration_ms > 0 and self._wait(duration_ms / 1000.0):
            raise AttemptCancelled("Attempt cancelled by operator.")
        self._raise_if_cancelled()

    def _raise_if_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise AttemptCancelled("Attempt cancelled by operator.")
