import os
from pathlib import Path


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        return default


def _choice_env(name: str, default: str, choices: tuple[str, ...]) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    return value if value in choices else default


BASE_DIR = Path(__file__).resolve().parent.parent
LOG_DIR = BASE_DIR / "logs"
LOG_LEVEL = _choice_env("LIVENESS_LOG_LEVEL", "info", ("debug", "info", "warning", "error")).upper()

# Webcam settings
CAMERA_INDEX = _int_env("LIVENESS_CAMERA_INDEX", 0)
FRAME_WIDTH = _int_env("LIVENESS_FRAME_WIDTH", 640)
FRAME_HEIGHT = _int_env("LIVENESS_FRAME_HEIGHT", 480)
FRAME_FPS = _int_env("LIVENESS_FRAME_FPS", 30)
CAMERA_WARMUP_MS = _int_env("LIVENESS_CAMERA_WARMUP_MS", 1000)

# Face engine settings
FACE_DETECTION_THRESHOLD = _float_env("LIVENESS_FACE_DETECTION_THRESHOLD", 0.5)
FACE_TRACKING_THRESHOLD = _float_env("LIVENESS_FACE_TRACKING_THRESHOLD", 0.5)
DEVICE = os.getenv("LIVENESS_DEVICE", "auto")

# Motion check: nose tip must move between frames to rule out a still photo.
MOTION_FRAMES = _int_env("LIVENESS_MOTION_FRAMES", 8)
MOTION_INTERVAL_MS = _int_env("LIVENESS_MOTION_INTERVAL_MS", 60)
MOTION_THRESHOLD_PX = _float_env("LIVENESS_MOTION_THRESHOLD_PX", 3.0)

# Blink challenge
BLINK_FRAMES = _int_env("LIVENESS_BLINK_FRAMES", 12)
BLINK_INTERVAL_MS = _int_env("LIVENESS_BLINK_INTERVAL_MS", 50)
BLINK_EAR_THRESHOLD = _float_env("LIVENESS_BLINK_EAR_THRESHOLD", 0.25)
BLINK_EAR_RANGE = _float_env("LIVENESS_BLINK_EAR_RANGE", 0.12)

# Head-turn challenge
TURN_FRAMES = _int_env("LIVENESS_TURN_FRAMES", 15)
TURN_INTERVAL_MS = _int_env("LIVENESS_TURN_INTERVAL_MS", 60)
TURN_THRESHOLD_PX = _float_env("LIVENESS_TURN_THRESHOLD_PX", 12.0)

# Outcome scoring
MOTION_FAILED_SCORE = 0.2
CHALLENGE_FAILED_SCORE = 0.4
PASSED_SCORE_MIN = 0.7
PASSED_SCORE_MAX = 1.0
QUICK_CHECK_SCORE = 0.8
QUICK_CHECK_SETTLE_MS = _int_env("LIVENESS_QUICK_SETTLE_MS", 500)
LIVENESS_MODE = _choice_env("LIVENESS_MODE", "full", ("full", "quick"))
LIVENESS_SCORE_FROM_MARGIN = _bool_env("LIVENESS_SCORE_FROM_MARGIN", False)

# Enrollment settings
ENROLLMENT_SAMPLES = _int_env("LIVENESS_ENROLLMENT_SAMPLES", 3)
ENROLLMENT_PAUSE_MS = _int_env("LIVENESS_ENROLLMENT_PAUSE_MS", 1000)
ENROLLMENT_NORMALIZE = _bool_env("LIVENESS_ENROLLMENT_NORMALIZE", False)

# Match gateway
GATEWAY_BASE_URL = os.getenv("LIVENESS_GATEWAY_URL", "http://localhost:3001")
GATEWAY_TOKEN = os.getenv("LIVENESS_GATEWAY_TOKEN", "")
GATEWAY_TIMEOUT_SECONDS = _float_env("LIVENESS_GATEWAY_TIMEOUT_SECONDS", 8.0)
GATEWAY_HEALTH_TIMEOUT_SECONDS = _float_env("LIVENESS_GATEWAY_HEALTH_TIMEOUT_SECONDS", 1.2)
