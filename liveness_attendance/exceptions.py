from typing import Optional


class AttendanceError(Exception):
    """Base exception for the attendance system."""


class CameraUnavailable(AttendanceError):
    """Raised when webcam access fails."""


class ModelNotReady(AttendanceError):
    """Raised when the face engine is used before its models are loaded."""


class FaceEngineError(AttendanceError):
    """Raised when face detection or descriptor generation fails."""


class AttemptCancelled(AttendanceError):
    """Raised when the operator aborts a running attempt."""


class LivenessCheckError(AttendanceError):
    """Base for failures of a single liveness check stage."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class TrackingLost(LivenessCheckError):
    """Raised when too few sampled frames contained a face."""

    def __init__(self, reason: str, valid_frames: int, required_frames: int):
        super().__init__(reason)
        self.valid_frames = valid_frames
        self.required_frames = required_frames


class MotionCheckFailed(LivenessCheckError):
    """Raised when the face did not move enough to be a live subject."""


class ChallengeFailed(LivenessCheckError):
    def __init__(self, kind: str, reason: str, measured: Optional[float] = None):
        super().__init__(reason)
        self.kind = kind
        self.measured = measured


class DescriptorDimensionMismatch(AttendanceError):
    """Raised when descriptors of different lengths are combined."""


class EnrollmentError(AttendanceError):
    """Raised when an enrollment attempt cannot produce a descriptor."""


class ConfirmationError(AttendanceError):
    """Raised on confirm/reject without a pending candidate."""


class GatewayNetworkError(AttendanceError):
    """Raised when the match gateway cannot be reached or answers garbage."""


class GatewayConflict(AttendanceError):
    DUPLICATE_IDENTITY = "duplicate_identity"
    DUPLICATE_FACE = "duplicate_face"
    OTHER = "conflict"

    def __init__(
        self,
        kind: str,
        message: str,
        existing_identity_id: Optional[str] = None,
        existing_display_name: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.existing_identity_id = existing_identity_id
        self.existing_display_name = existing_display_name


class GatewayAuthError(GatewayNetworkError):
    """Raised when the gateway rejects the bearer token (HTTP 401/403)."""
