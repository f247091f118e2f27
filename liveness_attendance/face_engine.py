from typing import Optional, Sequence, Tuple

import cv2
import numpy as np
import torch
import torch.nn.functional as f
import torchvision.models as models
from torchvision.models import ResNet18_Weights

from .config import DEVICE, FACE_DETECTION_THRESHOLD, FACE_TRACKING_THRESHOLD
from .exceptions import FaceEngineError, ModelNotReady
from .logger import setup_logger
from .types import FaceDetection, LandmarkSet, Point, make_descriptor

try:
    import mediapipe as mp
except Exception:  # pragma: no cover - runtime dependency guard
    mp = None

# FaceMesh indices in LandmarkSet order: corners, upper lid, lower lid.
LEFT_EYE_INDICES = (33, 133, 160, 158, 144, 153)
RIGHT_EYE_INDICES = (362, 263, 385, 387, 380, 373)
# Bridge down to the tip (index 3 in the group) and the point under it.
NOSE_INDICES = (168, 6, 197, 1, 2)


def resolve_device(name: str = DEVICE) -> str:
    if name == "auto":
        return "cuda" if torch.cuda.is_available() else "cpu"
    return name


def _points(mesh, indices: Sequence[int], width: int, height: int) -> Tuple[Point, ...]:
    return tuple((float(mesh[i].x * width), float(mesh[i].y * height)) for i in indices)


class FaceEngine:
    """Single-face landmarks (MediaPipe FaceMesh) plus a ResNet18 descriptor."""

    def __init__(
        self,
        device: str = DEVICE,
        detection_threshold: float = FACE_DETECTION_THRESHOLD,
        tracking_threshold: float = FACE_TRACKING_THRESHOLD,
    ):
        self.device = torch.device(resolve_device(device))
        self.detection_threshold = detection_threshold
        self.tracking_threshold = tracking_threshold
        self.logger = setup_logger(self.__class__.__name__)

        self.mesh = None
        self.embedder = None
        self.mean = None
        self.std = None
        self.clahe = None

    @property
    def ready(self) -> bool:
        return self.mesh is not None and self.embedder is not None

    def load(self) -> None:
        if self.ready:
            return
        if mp is None:
            raise FaceEngineError("mediapipe is required. Install the package dependencies.")

        if self.device.type == "cuda":
            torch.backends.cudnn.benchmark = True

        try:
            self.mesh = mp.solutions.face_mesh.FaceMesh(
                static_image_mode=False,
                max_num_faces=1,
                refine_landmarks=False,
                min_detection_confidence=self.detection_threshold,
                min_tracking_confidence=self.tracking_threshold,
            )

            backbone = models.resnet18(weights=ResNet18_Weights.DEFAULT)
            backbone.fc = torch.nn.Identity()
            self.embedder = backbone.eval().to(self.device)

            self.mean = torch.tensor([0.485, 0.456, 0.406], dtype=torch.float32).view(1, 3, 1, 1).to(self.device)
            self.std = torch.tensor([0.229, 0.224, 0.225], dtype=torch.float32).view(1, 3, 1, 1).to(self.device)
            self.clahe = cv2.createCLAHE(clipLimit=2.0, tileGridSize=(8, 8))
        except Exception as exc:
            self.mesh = None
            self.embedder = None
            raise FaceEngineError(f"Failed to initialize face models: {exc}") from exc

        self.logger.info("Face models loaded on %s", self.device)

    def detect(self, frame: np.ndarray) -> Optional[FaceDetection]:
        if not self.ready:
            raise ModelNotReady("Models not loaded. Call load() first.")

        try:
            rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            result = self.mesh.process(rgb)
        except Exception as exc:
            raise FaceEngineError(f"Face landmark extraction failed: {exc}") from exc

        if not result.multi_face_landmarks:
            return None

        h, w = frame.shape[:2]
        mesh = result.multi_face_landmarks[0].landmark
        landmarks = LandmarkSet(
            left_eye=_points(mesh, LEFT_EYE_INDICES, w, h),
            right_eye=_points(mesh, RIGHT_EYE_INDICES, w, h),
            nose=_points(mesh, NOSE_INDICES, w, h),
        )

        xs = np.array([p.x for p in mesh], dtype=np.float32) * w
        ys = np.array([p.y for p in mesh], dtype=np.float32) * h
        crop = self._extract_square_crop(rgb, int(xs.min()), int(ys.min()), int(xs.max()), int(ys.max()))
        if crop.size == 0:
            return None

        return FaceDetection(descriptor=self._embed(crop), landmarks=landmarks)

    def close(self) -> None:
        if self.mesh is not None:
            self.mesh.close()
            self.mesh = None

    def _embed(self, crop: np.ndarray) -> np.ndarray:
        try:
            tensor = torch.from_numpy(self._preprocess_crop(crop)).permute(2, 0, 1).float() / 255.0
            batch = (tensor.unsqueeze(0).to(self.device) - self.mean) / self.std
            with torch.inference_mode():
                raw = self.embedder(batch)
                normed = f.normalize(raw, p=2, dim=1)
            return make_descriptor(normed[0].detach().cpu().numpy())
        except Exception as exc:
            raise FaceEngineError(f"Descriptor generation failed: {exc}") from exc

    @staticmethod
    def _extract_square_crop(rgb: np.ndarray, x1: int, y1: int, x2: int, y2: int) -> np.ndarray:
        h, w = rgb.shape[:2]
        side = int(max(x2 - x1, y2 - y1, 1) * 1.05)
        cx = (x1 + x2) // 2
        cy = (y1 + y2) // 2

        sx1 = max(0, cx - side // 2)
        sy1 = max(0, cy - side // 2)
        sx2 = min(w, sx1 + side)
        sy2 = min(h, sy1 + side)
        if sx2 <= sx1 or sy2 <= sy1:
            return np.empty((0, 0, 3), dtype=rgb.dtype)
        return rgb[sy1:sy2, sx1:sx2]

    def _preprocess_crop(self, crop: np.ndarray) -> np.ndarray:
        interpolation = cv2.INTER_CUBIC if min(crop.shape[:2]) < 224 else cv2.INTER_AREA
        resized = cv2.resize(crop, (224, 224), interpolation=interpolation)

        # Equalize luminance only so skin tone is preserved.
        ycrcb = cv2.cvtColor(resized, cv2.COLOR_RGB2YCrCb)
        y_channel, cr_channel, cb_channel = cv2.split(ycrcb)
        y_channel = self.clahe.apply(y_channel)
        return cv2.cvtColor(cv2.merge([y_channel, cr_channel, cb_channel]), cv2.COLOR_YCrCb2RGB)
