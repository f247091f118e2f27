from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional, Tuple, Union

import numpy as np

Point = Tuple[float, float]

EYE_POINTS = 6
MIN_NOSE_POINTS = 4
NOSE_TIP_INDEX = 3


def make_descriptor(values: Iterable[float]) -> np.ndarray:
    """Return a read-only 1D float32 copy of ``values``."""
    if not isinstance(values, np.ndarray):
        values = list(values)
    vector = np.array(values, dtype=np.float32)
    if vector.ndim != 1 or vector.size == 0:
        raise ValueError("Descriptor must be a non-empty 1D vector.")
    vector.setflags(write=False)
    return vector


@dataclass(frozen=True)
class LandmarkSet:
    """Landmark groups for one frame.

    Eye points are ordered ``p0, p1`` (horizontal corners), ``p2, p3`` (upper
    lid) and ``p4, p5`` (lower lid) so that ``p2/p4`` and ``p3/p5`` are the
    vertical pairs. The nose tip sits at ``NOSE_TIP_INDEX``.
    """

    left_eye: Tuple[Point, ...]
    right_eye: Tuple[Point, ...]
    nose: Tuple[Point, ...]

    def __post_init__(self) -> None:
        if len(self.left_eye) != EYE_POINTS or len(self.right_eye) != EYE_POINTS:
            raise ValueError(f"Each eye needs exactly {EYE_POINTS} landmark points.")
        if len(self.nose) < MIN_NOSE_POINTS:
            raise ValueError(f"Nose needs at least {MIN_NOSE_POINTS} landmark points.")

    @property
    def nose_tip(self) -> Point:
        return self.nose[NOSE_TIP_INDEX]


@dataclass(frozen=True)
class FaceDetection:
    descriptor: np.ndarray
    landmarks: LandmarkSet


@dataclass(frozen=True)
class FrameSample:
    landmarks: Optional[LandmarkSet] = None
    descriptor: Optional[np.ndarray] = None

    @property
    def has_face(self) -> bool:
        return self.landmarks is not None


class ChallengeKind(str, Enum):
    BLINK = "blink"
    TURN_LEFT = "turn_left"
    TURN_RIGHT = "turn_right"


@dataclass(frozen=True)
class LivenessOutcome:
    passed: bool
    score: float
    reason: Optional[str] = None
    challenge: Optional[ChallengeKind] = None


@dataclass(frozen=True)
class MatchCandidate:
    identity_id: str
    display_name: str
    confidence: float
    distance: float


@dataclass(frozen=True)
class NoMatch:
    reason: str = "No match found"


NO_MATCH = NoMatch()

MatchResult = Union[MatchCandidate, NoMatch]


@dataclass(frozen=True)
class AttendanceRecord:
    identity_id: str
    display_name: str
    confidence: float
    distance: float
    liveness_score: float
    confirmed_at: datetime
