import threading

import pytest

from fakes import FakeCamera, ScriptedSource, detection, no_wait
from liveness_attendance.exceptions import AttemptCancelled, CameraUnavailable, ModelNotReady, TrackingLost
from liveness_attendance.sampler import FrameSampler


def test_missing_face_is_yielded_as_empty_sample():
    sampler = FrameSampler(FakeCamera(), ScriptedSource([detection(), None]), wait=no_wait)
    samples = list(sampler.sample(2, 50))
    assert samples[0].has_face
    assert samples[0].descriptor is not None
    assert not samples[1].has_face
    assert samples[1].descriptor is None


def test_sampler_waits_between_ticks_only():
    waits = []

    def record_wait(seconds):
        waits.append(seconds)
        return False

    sampler = FrameSampler(FakeCamera(), ScriptedSource(), wait=record_wait)
    list(sampler.sample(3, 60))
    assert waits == [pytest.approx(0.06), pytest.approx(0.06)]


def test_camera_failure_ends_the_sequence_immediately():
    source = ScriptedSource([detection()] * 5)
    sampler = FrameSampler(FakeCamera(fail_after=2), source, wait=no_wait)
    with pytest.raises(CameraUnavailable):
        list(sampler.sample(5, 10))
    assert source.calls == 2


def test_sampler_requires_loaded_models():
    with pytest.raises(ModelNotReady):
        FrameSampler(FakeCamera(), ScriptedSource(ready=False))


def test_collect_counts_tracked_frames():
    script = [detection(nose_x=float(x)) for x in range(4)] + [None] * 4
    sampler = FrameSampler(FakeCamera(), ScriptedSource(script), wait=no_wait)
    xs = sampler.collect(8, 60, lambda lm: lm.nose_tip[0], "lost tracking")
    assert xs == [0.0, 1.0, 2.0, 3.0]


def test_collect_raises_when_under_half_tracked():
    script = [detection()] * 7 + [None] * 8
    sampler = FrameSampler(FakeCamera(), ScriptedSource(script), wait=no_wait)
    with pytest.raises(TrackingLost) as info:
        sampler.collect(15, 60, lambda lm: lm.nose_tip[0], "lost tracking during head turn")
    assert info.value.reason == "lost tracking during head turn"
    assert info.value.valid_frames == 7
    assert info.value.required_frames == 8


def test_pause_observes_cancellation():
    cancel_event = threading.Event()
    sampler = FrameSampler(FakeCamera(), ScriptedSource(), cancel_event=cancel_event, wait=no_wait)
    sampler.pause(1000)
    cancel_event.set()
    with pytest.raises(AttemptCancelled):
        sampler.pause(1000)
