import threading
from contextlib import contextmanager
from typing import Iterator, Optional

import cv2
import numpy as np

from .camera_capture import open_camera_capture
from .config import CAMERA_INDEX, FRAME_FPS, FRAME_HEIGHT, FRAME_WIDTH
from .exceptions import AttendanceError, CameraUnavailable


class CameraStream:
    """Exclusively owned webcam session; released on every ``with`` exit."""

    def __init__(self, camera_index: int = CAMERA_INDEX):
        self.camera_index = camera_index
        self.cap: Optional[cv2.VideoCapture] = None
        self.backend_name: str | None = None

    def __enter__(self) -> "CameraStream":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self.cap is not None

    def open(self) -> None:
        if self.cap is not None:
            raise CameraUnavailable(f"Webcam {self.camera_index} is already in use by this session.")
        self.cap, self.backend_name = open_camera_capture(self.camera_index)

        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, FRAME_WIDTH)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, FRAME_HEIGHT)
        self.cap.set(cv2.CAP_PROP_FPS, FRAME_FPS)

    def read(self) -> np.ndarray:
        if self.cap is None:
            raise CameraUnavailable("Webcam stream is not initialized.")

        success, frame = self.cap.read()
        if not success or frame is None:
            raise CameraUnavailable("Failed to read frame from webcam.")
        return frame

    def close(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None


class CameraLease:
    """Grants one attempt at a time the right to open the camera.

    Each granted attempt gets a fresh cancellation event that ``cancel``
    sets from any thread.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._cancel_event: Optional[threading.Event] = None

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def acquire(self) -> Iterator[threading.Event]:
        if not self._lock.acquire(blocking=False):
            raise AttendanceError("An attempt is already running on this camera.")
        event = threading.Event()
        self._cancel_event = event
        try:
            yield event
        finally:
            self._cancel_event = None
            self._lock.release()

    def cancel(self) -> bool:
        event = self._cancel_event
        if event is None:
            return False
        event.set()
        return True
