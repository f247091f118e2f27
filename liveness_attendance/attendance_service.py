from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np

from .camera import CameraLease, CameraStream
from .config import CAMERA_INDEX, CAMERA_WARMUP_MS
from .confirmation import ConfirmationGate, GateState
from .exceptions import AttendanceError, ModelNotReady
from .gateway import MatchGateway
from .liveness import LivenessVerifier, StatusCallback
from .logger import setup_logger
from .sampler import DescriptorSource, FrameSampler
from .types import AttendanceRecord, LivenessOutcome, MatchCandidate, MatchResult, NoMatch


@dataclass(frozen=True)
class AttemptResult:
    outcome: LivenessOutcome
    match: Optional[MatchResult] = None

    @property
    def pending(self) -> bool:
        return isinstance(self.match, MatchCandidate)


class AttendanceService:
    """One attendance attempt: liveness, descriptor capture, match, then hold."""

    def __init__(
        self,
        engine: DescriptorSource,
        gateway: MatchGateway,
        verifier: Optional[LivenessVerifier] = None,
        gate: Optional[ConfirmationGate] = None,
        lease: Optional[CameraLease] = None,
        camera_factory: Callable[[int], CameraStream] = CameraStream,
        camera_index: int = CAMERA_INDEX,
        warmup_ms: int = CAMERA_WARMUP_MS,
        wait: Optional[Callable[[float], bool]] = None,
    ):
        self.engine = engine
        self.gateway = gateway
        self.verifier = verifier or LivenessVerifier()
        self.gate = gate or ConfirmationGate(recorder=gateway.record_attendance)
        self.lease = lease or CameraLease()
        self.camera_factory = camera_factory
        self.camera_index = camera_index
        self.warmup_ms = warmup_ms
        self.wait = wait
        self.logger = setup_logger(self.__class__.__name__)

    def attempt(self, status: Optional[StatusCallback] = None) -> AttemptResult:
        notify = status or (lambda _message: None)
        if not getattr(self.engine, "ready", False):
            raise ModelNotReady("Models still loading, please wait...")
        if self.gate.state == GateState.PENDING:
            raise AttendanceError("Confirm or reject the pending candidate first.")

        # The lease covers the whole attempt, including the match call.
        with self.lease.acquire() as cancel_event:
            notify("Starting liveness check...")
            outcome, descriptor = self._capture(cancel_event, notify)

            if not outcome.passed:
                notify(f"Liveness check failed: {outcome.reason}")
                return AttemptResult(outcome=outcome)

            notify("Matching face...")
            match = self.gateway.match(descriptor, outcome.score)
            if isinstance(match, NoMatch):
                notify(f"Failed: {match.reason}")
                return AttemptResult(outcome=outcome, match=match)

            self.gate.hold(match, outcome)
            notify("Please confirm user identity")
            return AttemptResult(outcome=outcome, match=match)

    def _capture(self, cancel_event, notify: StatusCallback) -> Tuple[LivenessOutcome, Optional[np.ndarray]]:
        # The camera is closed before any network call.
        with self.camera_factory(self.camera_index) as camera:
            sampler = FrameSampler(camera, self.engine, cancel_event=cancel_event, wait=self.wait)
            sampler.pause(self.warmup_ms)

            outcome = self.verifier.verify(sampler, notify)
            if not outcome.passed:
                return outcome, None

            notify("Liveness passed! Capturing face...")
            sample = next(iter(sampler.sample(1, 0)))

        if sample.descriptor is None:
            raise AttendanceError("Failed to detect face. Please try again.")
        return outcome, sample.descriptor

    def cancel(self) -> bool:
        cancelled = self.lease.cancel()
        if cancelled:
            self.logger.info("Attendance attempt cancelled")
        return cancelled

    def confirm(self) -> AttendanceRecord:
        return self.gate.confirm()

    def reject(self) -> None:
        self.gate.reject()
