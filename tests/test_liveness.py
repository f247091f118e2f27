import random
import threading
from collections import Counter

import pytest

from fakes import (
    FakeCamera,
    FixedChallengeRng,
    ScriptedSource,
    blink_frames,
    detection,
    moving_frames,
    no_wait,
    turn_frames,
)
from liveness_attendance.exceptions import AttemptCancelled, ChallengeFailed, MotionCheckFailed
from liveness_attendance.liveness import (
    LivenessVerifier,
    check_blink,
    check_head_turn,
    check_motion,
    choose_challenge,
)
from liveness_attendance.sampler import FrameSampler
from liveness_attendance.types import ChallengeKind


def _sampler(script, cancel_event=None, wait=no_wait):
    return FrameSampler(FakeCamera(), ScriptedSource(script), cancel_event=cancel_event, wait=wait)


def test_blink_with_deep_closure_passes():
    ears = [0.30, 0.28, 0.10, 0.12, 0.29, 0.30]
    assert check_blink(ears) == pytest.approx(0.20)


def test_flat_ear_sequence_is_not_a_blink():
    with pytest.raises(ChallengeFailed) as info:
        check_blink([0.30] * 12)
    assert info.value.reason == "no blink detected"
    assert info.value.kind == "blink"


def test_head_turn_direction():
    xs = [100.0, 95.0, 90.0, 85.0, 80.0]
    assert check_head_turn(xs, ChallengeKind.TURN_LEFT) == pytest.approx(-20.0)
    with pytest.raises(ChallengeFailed):
        check_head_turn(xs, ChallengeKind.TURN_RIGHT)
    assert check_head_turn(list(reversed(xs)), ChallengeKind.TURN_RIGHT) == pytest.approx(20.0)


def test_small_head_turn_reports_measured_displacement():
    with pytest.raises(ChallengeFailed) as info:
        check_head_turn([100.0, 98.0, 95.0], ChallengeKind.TURN_LEFT)
    assert "5.0px" in info.value.reason
    assert info.value.measured == pytest.approx(-5.0)


def test_static_nose_fails_motion_check():
    with pytest.raises(MotionCheckFailed) as info:
        check_motion([(100.0, 120.0)] * 8)
    assert info.value.reason == "static image detected"


def test_moving_nose_passes_motion_check():
    positions = [(100.0 + 4.0 * i, 120.0) for i in range(8)]
    assert check_motion(positions) == pytest.approx(4.0)


def test_challenge_draw_is_uniform():
    rng = random.Random(1234)
    counts = Counter(choose_challenge(rng) for _ in range(3000))
    assert set(counts) == set(ChallengeKind)
    for kind in ChallengeKind:
        assert abs(counts[kind] - 1000) < 120


def test_static_photo_fails_with_motion_score():
    verifier = LivenessVerifier(rng=FixedChallengeRng(ChallengeKind.BLINK))
    outcome = verifier.verify(_sampler([detection()] * 8))
    assert not outcome.passed
    assert outcome.score == pytest.approx(0.2)
    assert outcome.reason == "static image detected"
    assert outcome.challenge is None


def test_tracking_loss_during_motion_check():
    script = moving_frames(3) + [None] * 5
    outcome = LivenessVerifier().verify(_sampler(script))
    assert not outcome.passed
    assert outcome.score == pytest.approx(0.2)
    assert outcome.reason == "lost tracking during motion check"


def test_blink_with_half_frames_tracked_proceeds_to_scoring():
    ears = [0.30, 0.10, 0.30, 0.30, 0.30, 0.30]
    blink = []
    for frame in blink_frames(ears):
        blink.extend([frame, None])
    verifier = LivenessVerifier(rng=FixedChallengeRng(ChallengeKind.BLINK))

    outcome = verifier.verify(_sampler(moving_frames() + blink))
    assert outcome.passed
    assert 0.7 <= outcome.score <= 1.0
    assert outcome.challenge == ChallengeKind.BLINK


def test_blink_with_too_few_frames_tracked_fails():
    ears = [0.30, 0.10, 0.30, 0.30, 0.30]
    blink = []
    for frame in blink_frames(ears):
        blink.extend([frame, None])
    blink.extend([None, None])
    verifier = LivenessVerifier(rng=FixedChallengeRng(ChallengeKind.BLINK))

    outcome = verifier.verify(_sampler(moving_frames() + blink))
    assert not outcome.passed
    assert outcome.score == pytest.approx(0.4)
    assert "lost tracking" in outcome.reason


def test_failed_challenge_scores_point_four():
    verifier = LivenessVerifier(rng=FixedChallengeRng(ChallengeKind.TURN_RIGHT))
    outcome = verifier.verify(_sampler(moving_frames() + turn_frames(100.0, 85.0)))
    assert not outcome.passed
    assert outcome.score == pytest.approx(0.4)
    assert outcome.reason == "insufficient right turn (moved -15.0px)"
    assert outcome.challenge == ChallengeKind.TURN_RIGHT


def test_turn_left_passes():
    verifier = LivenessVerifier(rng=FixedChallengeRng(ChallengeKind.TURN_LEFT))
    outcome = verifier.verify(_sampler(moving_frames() + turn_frames(100.0, 85.0)))
    assert outcome.passed
    assert 0.7 <= outcome.score <= 1.0
    assert outcome.reason is None


def test_margin_scoring_follows_turn_distance():
    verifier = LivenessVerifier(rng=FixedChallengeRng(ChallengeKind.TURN_LEFT), score_from_margin=True)
    strong = verifier.verify(_sampler(moving_frames() + turn_frames(100.0, 76.0)))
    weak = verifier.verify(_sampler(moving_frames() + turn_frames(100.0, 85.0)))
    assert strong.score == pytest.approx(1.0)
    assert weak.score == pytest.approx(0.775)


def test_quick_mode_needs_only_one_face():
    verifier = LivenessVerifier(mode="quick")
    assert verifier.verify(_sampler([detection()])).score == pytest.approx(0.8)

    outcome = verifier.verify(_sampler([None]))
    assert not outcome.passed
    assert outcome.reason == "No face detected"


def test_cancellation_stops_sampling():
    cancel_event = threading.Event()
    source = ScriptedSource(moving_frames())

    def cancel_on_wait(_seconds):
        cancel_event.set()
        return True

    sampler = FrameSampler(FakeCamera(), source, cancel_event=cancel_event, wait=cancel_on_wait)
    with pytest.raises(AttemptCancelled):
        LivenessVerifier().verify(sampler)
    assert source.calls == 1
