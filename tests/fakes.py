import random
from typing import Iterable, List, Optional, Sequence

import numpy as np

from liveness_attendance.exceptions import CameraUnavailable
from liveness_attendance.types import ChallengeKind, FaceDetection, LandmarkSet, make_descriptor

EYE_WIDTH = 10.0


def eye_points(ear: float, origin_x: float = 0.0, origin_y: float = 0.0, scale: float = 1.0):
    """Six eye points, in LandmarkSet order, whose EAR equals ``ear``."""
    half = ear * EYE_WIDTH / 2.0
    raw = [
        (0.0, 0.0),
        (EYE_WIDTH, 0.0),
        (3.0, half),
        (7.0, half),
        (3.0, -half),
        (7.0, -half),
    ]
    return tuple(((x + origin_x) * scale, (y + origin_y) * scale) for x, y in raw)


def landmarks(nose_x: float = 100.0, nose_y: float = 120.0, ear: float = 0.3) -> LandmarkSet:
    nose = (
        (nose_x, nose_y - 30.0),
        (nose_x, nose_y - 20.0),
        (nose_x, nose_y - 10.0),
        (nose_x, nose_y),
        (nose_x, nose_y + 5.0),
    )
    return LandmarkSet(
        left_eye=eye_points(ear, origin_x=nose_x - 30.0, origin_y=nose_y - 40.0),
        right_eye=eye_points(ear, origin_x=nose_x + 20.0, origin_y=nose_y - 40.0),
        nose=nose,
    )


def detection(nose_x: float = 100.0, nose_y: float = 120.0, ear: float = 0.3, descriptor=None) -> FaceDetection:
    vector = make_descriptor(descriptor if descriptor is not None else [0.1, 0.2, 0.3, 0.4])
    return FaceDetection(descriptor=vector, landmarks=landmarks(nose_x, nose_y, ear))


def moving_frames(count: int = 8, step: float = 4.0, start: float = 100.0) -> List[FaceDetection]:
    return [detection(nose_x=start + step * i) for i in range(count)]


def turn_frames(start: float, end: float, count: int = 15) -> List[FaceDetection]:
    xs = np.linspace(start, end, count)
    return [detection(nose_x=float(x)) for x in xs]


def blink_frames(ears: Sequence[float]) -> List[FaceDetection]:
    return [detection(ear=value) for value in ears]


class ScriptedSource:
    """Descriptor source replaying a fixed list of detections (None = no face)."""

    def __init__(self, script: Iterable[Optional[FaceDetection]] = (), ready: bool = True):
        self.script = list(script)
        self.ready = ready
        self.calls = 0

    def detect(self, frame):
        self.calls += 1
        if self.script:
            return self.script.pop(0)
        return None


class FakeCamera:
    def __init__(self, fail_after: Optional[int] = None):
        self.fail_after = fail_after
        self.reads = 0
        self.opened = False
        self.closed = False

    def __enter__(self):
        self.opened = True
        return self

    def __exit__(self, exc_type, exc, tb):
        self.closed = True

    def read(self):
        if self.fail_after is not None and self.reads >= self.fail_after:
            raise CameraUnavailable("Failed to read frame from webcam.")
        self.reads += 1
        return np.zeros((4, 4, 3), dtype=np.uint8)


class FixedChallengeRng:
    """Random source that always draws ``kind`` as the challenge."""

    def __init__(self, kind: ChallengeKind, seed: int = 7):
        self.kind = kind
        self._rng = random.Random(seed)

    def choice(self, seq):
        assert self.kind in seq
        return self.kind

    def uniform(self, a: float, b: float) -> float:
        return self._rng.uniform(a, b)


def no_wait(_seconds: float) -> bool:
    return False
