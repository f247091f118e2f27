from __future__ import annotations

import os
import time
from typing import List, Tuple

import cv2

from .exceptions import CameraUnavailable

_BACKEND_ALIASES = {
    "auto": "Auto",
    "any": "Auto",
    "dshow": "DirectShow",
    "directshow": "DirectShow",
    "msmf": "Media Foundation",
    "mediafoundation": "Media Foundation",
    "v4l2": "V4L2",
}
_DEFAULT_ORDER = ["Auto", "V4L2", "DirectShow", "Media Foundation"]


def _preferred_backend_order() -> list[str]:
    raw = os.getenv("LIVENESS_CAMERA_BACKEND_ORDER", "").strip()
    if not raw:
        # Windows laptop webcams are generally more stable on DirectShow.
        if os.name == "nt":
            return ["DirectShow", "Media Foundation", "Auto"]
        return list(_DEFAULT_ORDER)

    result: list[str] = []
    for item in raw.split(","):
        name = _BACKEND_ALIASES.get(item.strip().lower())
        if name and name not in result:
            result.append(name)
    return result or list(_DEFAULT_ORDER)


def capture_backends() -> List[Tuple[str, int | None]]:
    backend_map: dict[str, int | None] = {
        "Auto": getattr(cv2, "CAP_ANY", None),
        "V4L2": getattr(cv2, "CAP_V4L2", None),
        "DirectShow": getattr(cv2, "CAP_DSHOW", None),
        "Media Foundation": getattr(cv2, "CAP_MSMF", None),
    }
    candidates: List[Tuple[str, int | None]] = []
    seen: set[int | None] = set()
    for name in _preferred_backend_order():
        backend = backend_map.get(name)
        if backend in seen:
            continue
        seen.add(backend)
        candidates.append((name, backend))
    return candidates


def open_camera_capture(camera_index: int, probe_reads: int = 6) -> tuple[cv2.VideoCapture, str]:
    attempted: List[str] = []

    for backend_name, backend in capture_backends():
        attempted.append(backend_name)
        if backend is None:
            cap = cv2.VideoCapture(camera_index)
        else:
            cap = cv2.VideoCapture(camera_index, backend)

        if cap.isOpened():
            # Some backends report opened=True but never deliver frames.
            for _ in range(probe_reads):
                ok, frame = cap.read()
                if ok and frame is not None:
                    return cap, backend_name
                time.sleep(0.03)
        cap.release()

    tried = ", ".join(attempted) if attempted else "default backend"
    raise CameraUnavailable(
        f"Camera access denied or unavailable (index {camera_index}). Tried backends: {tried}."
    )
