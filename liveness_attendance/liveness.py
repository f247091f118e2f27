import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence

from .config import (
    BLINK_EAR_RANGE,
    BLINK_EAR_THRESHOLD,
    BLINK_FRAMES,
    BLINK_INTERVAL_MS,
    CHALLENGE_FAILED_SCORE,
    LIVENESS_MODE,
    LIVENESS_SCORE_FROM_MARGIN,
    MOTION_FAILED_SCORE,
    MOTION_FRAMES,
    MOTION_INTERVAL_MS,
    MOTION_THRESHOLD_PX,
    PASSED_SCORE_MAX,
    PASSED_SCORE_MIN,
    QUICK_CHECK_SCORE,
    QUICK_CHECK_SETTLE_MS,
    TURN_FRAMES,
    TURN_INTERVAL_MS,
    TURN_THRESHOLD_PX,
)
from .exceptions import ChallengeFailed, LivenessCheckError, MotionCheckFailed
from .logger import setup_logger
from .sampler import FrameSampler
from .signals import average_ear, mean_displacement, net_displacement, value_span
from .types import ChallengeKind, LandmarkSet, LivenessOutcome, Point

StatusCallback = Callable[[str], None]


class LivenessState(str, Enum):
    IDLE = "idle"
    MOTION_CHECK = "motion_check"
    CHALLENGE_CHECK = "challenge_check"
    PASSED = "passed"
    FAILED = "failed"


@dataclass
class LivenessSession:
    """Mutable state of one verification attempt."""

    state: LivenessState = LivenessState.IDLE
    challenge: Optional[ChallengeKind] = None
    samples: List[Any] = field(default_factory=list)


def choose_challenge(rng: random.Random) -> ChallengeKind:
    return rng.choice(list(ChallengeKind))


def check_motion(positions: Sequence[Point], threshold: float = MOTION_THRESHOLD_PX) -> float:
    movement = mean_displacement(positions)
    if movement < threshold:
        raise MotionCheckFailed("static image detected")
    return movement


def check_blink(
    ears: Sequence[float],
    ear_threshold: float = BLINK_EAR_THRESHOLD,
    min_range: float = BLINK_EAR_RANGE,
) -> float:
    """Return the EAR range when the series contains a blink."""
    low, span = value_span(ears)
    if low < ear_threshold and span > min_range:
        return span
    raise ChallengeFailed(ChallengeKind.BLINK.value, "no blink detected", measured=span)


def check_head_turn(
    xs: Sequence[float],
    kind: ChallengeKind,
    threshold: float = TURN_THRESHOLD_PX,
) -> float:
    """Return the nose-tip displacement when it matches the requested turn."""
    movement = net_displacement(xs)
    if kind == ChallengeKind.TURN_LEFT and movement < -threshold:
        return movement
    if kind == ChallengeKind.TURN_RIGHT and movement > threshold:
        return movement

    direction = "left" if kind == ChallengeKind.TURN_LEFT else "right"
    raise ChallengeFailed(
        kind.value,
        f"insufficient {direction} turn (moved {movement:.1f}px)",
        measured=movement,
    )


def _nose_tip(landmarks: LandmarkSet) -> Point:
    return landmarks.nose_tip


def _nose_tip_x(landmarks: LandmarkSet) -> float:
    return landmarks.nose_tip[0]


class LivenessVerifier:
    """Motion check followed by one randomly drawn challenge."""

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        mode: str = LIVENESS_MODE,
        score_from_margin: bool = LIVENESS_SCORE_FROM_MARGIN,
    ):
        self.rng = rng or random.SystemRandom()
        self.mode = mode
        self.score_from_margin = score_from_margin
        self.logger = setup_logger(self.__class__.__name__)

    def verify(self, sampler: FrameSampler, status: Optional[StatusCallback] = None) -> LivenessOutcome:
        notify = status or (lambda _message: None)
        session = LivenessSession()
        try:
            if self.mode == "quick":
                return self._quick_check(session, sampler, notify)
            return self._full_check(session, sampler, notify)
        finally:
            session.samples.clear()

    def _full_check(self, session: LivenessSession, sampler: FrameSampler, notify: StatusCallback) -> LivenessOutcome:
        session.state = LivenessState.MOTION_CHECK
        notify("Checking for liveness...")
        try:
            session.samples = sampler.collect(
                MOTION_FRAMES,
                MOTION_INTERVAL_MS,
                _nose_tip,
                "lost tracking during motion check",
            )
            movement = check_motion(session.samples)
        except LivenessCheckError as exc:
            self.logger.info("Motion check failed: %s", exc.reason)
            return self._fail(session, MOTION_FAILED_SCORE, exc.reason)
        self.logger.info("Motion check passed (mean %.2fpx over %d samples)", movement, len(session.samples))

        session.challenge = choose_challenge(self.rng)
        session.state = LivenessState.CHALLENGE_CHECK
        self.logger.info("Running challenge: %s", session.challenge.value)
        try:
            margin = self._run_challenge(session, sampler, notify)
        except LivenessCheckError as exc:
            self.logger.info("Challenge %s failed: %s", session.challenge.value, exc.reason)
            return self._fail(session, CHALLENGE_FAILED_SCORE, exc.reason)

        session.state = LivenessState.PASSED
        score = self._passed_score(margin)
        self.logger.info("Liveness check passed. Score: %.3f", score)
        notify("Liveness passed!")
        return LivenessOutcome(passed=True, score=score, challenge=session.challenge)

    def _run_challenge(self, session: LivenessSession, sampler: FrameSampler, notify: StatusCallback) -> float:
        """Run the drawn challenge and return how far it cleared its threshold."""
        kind = session.challenge
        if kind == ChallengeKind.BLINK:
            notify("Please blink naturally...")
            session.samples = sampler.collect(
                BLINK_FRAMES,
                BLINK_INTERVAL_MS,
                average_ear,
                "lost tracking during blink check",
            )
            span = check_blink(session.samples)
            self.logger.info(
                "Blink detected (min EAR %.3f, range %.3f, %d samples)",
                min(session.samples),
                span,
                len(session.samples),
            )
            return span / BLINK_EAR_RANGE - 1.0

        direction = "left" if kind == ChallengeKind.TURN_LEFT else "right"
        notify(f"Please turn your head {direction}...")
        session.samples = sampler.collect(
            TURN_FRAMES,
            TURN_INTERVAL_MS,
            _nose_tip_x,
            "lost tracking during head turn",
        )
        movement = check_head_turn(session.samples, kind)
        self.logger.info("Head turn %s detected (moved %.1fpx, %d samples)", direction, movement, len(session.samples))
        return abs(movement) / TURN_THRESHOLD_PX - 1.0

    def _quick_check(self, session: LivenessSession, sampler: FrameSampler, notify: StatusCallback) -> LivenessOutcome:
        notify("Quick check (testing mode)...")
        session.state = LivenessState.MOTION_CHECK
        sample = next(iter(sampler.sample(1, 0)))
        if not sample.has_face:
            return self._fail(session, 0.0, "No face detected")
        sampler.pause(QUICK_CHECK_SETTLE_MS)
        session.state = LivenessState.PASSED
        return LivenessOutcome(passed=True, score=QUICK_CHECK_SCORE)

    def _passed_score(self, margin: float) -> float:
        if self.score_from_margin:
            strength = min(max(margin, 0.0), 1.0)
            return PASSED_SCORE_MIN + (PASSED_SCORE_MAX - PASSED_SCORE_MIN) * strength
        return self.rng.uniform(PASSED_SCORE_MIN, PASSED_SCORE_MAX)

    @staticmethod
    def _fail(session: LivenessSession, score: float, reason: str) -> LivenessOutcome:
        session.state = LivenessState.FAILED
        return LivenessOutcome(passed=False, score=score, reason=reason, challenge=session.challenge)
