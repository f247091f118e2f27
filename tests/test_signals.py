import numpy as np
import pytest

from fakes import eye_points, landmarks
from liveness_attendance.exceptions import DescriptorDimensionMismatch
from liveness_attendance.signals import (
    average_descriptors,
    average_ear,
    eye_aspect_ratio,
    mean_displacement,
    net_displacement,
    value_span,
)


def test_eye_aspect_ratio_matches_formula():
    eye = [(0, 0), (10, 0), (3, 2), (7, 1), (3, -2), (7, -1)]
    # (4 + 2) / (2 * 10)
    assert eye_aspect_ratio(eye) == pytest.approx(0.3)


def test_eye_aspect_ratio_is_scale_invariant():
    base = eye_aspect_ratio(eye_points(0.27, origin_x=40.0, origin_y=12.0))
    for scale in (0.5, 2.0, 13.7):
        scaled = eye_aspect_ratio(eye_points(0.27, origin_x=40.0, origin_y=12.0, scale=scale))
        assert scaled == pytest.approx(base)


def test_average_ear_uses_both_eyes():
    lm = landmarks(ear=0.2)
    assert average_ear(lm) == pytest.approx(0.2)


def test_mean_displacement():
    assert mean_displacement([(0, 0), (3, 4), (6, 8)]) == pytest.approx(5.0)
    assert mean_displacement([(1, 1)]) == 0.0


def test_net_displacement_and_span():
    assert net_displacement([100.0, 90.0, 80.0]) == pytest.approx(-20.0)
    low, span = value_span([0.3, 0.1, 0.25])
    assert low == pytest.approx(0.1)
    assert span == pytest.approx(0.2)


def test_average_descriptors_per_dimension_mean():
    result = average_descriptors([np.array([1, 2, 3]), np.array([3, 2, 1]), np.array([2, 2, 2])])
    assert result.tolist() == [2.0, 2.0, 2.0]
    assert not result.flags.writeable


def test_average_descriptors_rejects_mismatched_dimensions():
    with pytest.raises(DescriptorDimensionMismatch):
        average_descriptors([np.ones(128), np.ones(64)])


def test_average_descriptors_optional_normalization():
    result = average_descriptors([np.array([3.0, 0.0]), np.array([3.0, 8.0])], normalize=True)
    assert np.linalg.norm(result) == pytest.approx(1.0)
    assert result.tolist() == pytest.approx([0.6, 0.8])
