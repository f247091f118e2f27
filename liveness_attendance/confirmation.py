import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from .exceptions import ConfirmationError
from .logger import setup_logger
from .types import AttendanceRecord, LivenessOutcome, MatchCandidate


class GateState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"


@dataclass(frozen=True)
class PendingAttendance:
    candidate: MatchCandidate
    outcome: LivenessOutcome


class ConfirmationGate:
    """Holds a matched candidate until the operator confirms or rejects it.

    Confirm hands a snapshot of the held candidate and liveness score to
    ``recorder``; the matcher is never queried again.
    """

    def __init__(self, recorder: Callable[[AttendanceRecord], None]):
        self.recorder = recorder
        self.logger = setup_logger(self.__class__.__name__)
        self._lock = threading.Lock()
        self._pending: Optional[PendingAttendance] = None

    @property
    def state(self) -> GateState:
        with self._lock:
            return GateState.PENDING if self._pending is not None else GateState.IDLE

    @property
    def pending(self) -> Optional[PendingAttendance]:
        with self._lock:
            return self._pending

    def hold(self, candidate: MatchCandidate, outcome: LivenessOutcome) -> PendingAttendance:
        if not outcome.passed:
            raise ConfirmationError("Cannot hold a candidate without a passed liveness check.")
        with self._lock:
            if self._pending is not None:
                raise ConfirmationError("Another candidate is already waiting for confirmation.")
            pending = PendingAttendance(candidate=candidate, outcome=outcome)
            self._pending = pending
        self.logger.info(
            "Candidate %s (%s) pending confirmation, confidence %.3f",
            candidate.display_name,
            candidate.identity_id,
            candidate.confidence,
        )
        return pending

    def confirm(self) -> AttendanceRecord:
        with self._lock:
            pending = self._pending
            if pending is None:
                raise ConfirmationError("No candidate is waiting for confirmation.")

            record = AttendanceRecord(
                identity_id=pending.candidate.identity_id,
                display_name=pending.candidate.display_name,
                confidence=pending.candidate.confidence,
                distance=pending.candidate.distance,
                liveness_score=pending.outcome.score,
                confirmed_at=datetime.now(),
            )
            self.recorder(record)
            self._pending = None

        self.logger.info("Attendance confirmed for %s (%s)", record.display_name, record.identity_id)
        return record

    def reject(self) -> None:
        with self._lock:
            pending = self._pending
            if pending is None:
                raise ConfirmationError("No candidate is waiting for confirmation.")
            self._pending = None
        self.logger.info("Candidate %s rejected by operator", pending.candidate.identity_id)
