"""Numeric helpers shared by the liveness checks and enrollment."""

from typing import List, Sequence, Tuple

import numpy as np

from .exceptions import AttendanceError, DescriptorDimensionMismatch
from .types import LandmarkSet, Point, make_descriptor


def euclidean(a: Point, b: Point) -> float:
    return float(np.hypot(a[0] - b[0], a[1] - b[1]))


def eye_aspect_ratio(eye: Sequence[Point]) -> float:
    """Eye-aspect-ratio from six ordered eye points.

    ``(|p2 - p4| + |p3 - p5|) / (2 * |p1 - p0|)``; drops towards zero as the
    lid closes and is unaffected by uniform scaling of the points.
    """
    p0, p1, p2, p3, p4, p5 = eye
    vertical = euclidean(p2, p4) + euclidean(p3, p5)
    horizontal = euclidean(p1, p0)
    return vertical / (2.0 * max(horizontal, 1e-9))


def average_ear(landmarks: LandmarkSet) -> float:
    left = eye_aspect_ratio(landmarks.left_eye)
    right = eye_aspect_ratio(landmarks.right_eye)
    return (left + right) / 2.0


def mean_displacement(points: Sequence[Point]) -> float:
    """Mean distance travelled between consecutive points."""
    if len(points) < 2:
        return 0.0
    path = np.asarray(points, dtype=np.float64)
    steps = np.linalg.norm(np.diff(path, axis=0), axis=1)
    return float(steps.mean())


def net_displacement(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return float(values[-1] - values[0])


def value_span(values: Sequence[float]) -> Tuple[float, float]:
    """Return ``(minimum, max - min)`` of a non-empty series."""
    series = np.asarray(values, dtype=np.float64)
    low = float(series.min())
    return low, float(series.max()) - low


def average_descriptors(descriptors: List[np.ndarray], normalize: bool = False) -> np.ndarray:
    if not descriptors:
        raise ValueError("At least one descriptor is required.")

    dims = {int(np.asarray(vec).size) for vec in descriptors}
    if len(dims) != 1:
        raise DescriptorDimensionMismatch(
            f"Descriptors have mismatched dimensions: {sorted(dims)}"
        )

    matrix = np.vstack(descriptors).astype(np.float32)
    vector = matrix.mean(axis=0)
    if normalize:
        norm = float(np.linalg.norm(vector))
        if norm == 0.0:
            raise AttendanceError("Unable to normalize average descriptor.")
        vector = vector / norm
    return make_descriptor(vector)
