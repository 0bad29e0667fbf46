"""ONNX Runtime wrappers for the object and face detectors."""

import logging
import threading
from pathlib import Path

import cv2
import numpy as np

from offline_gallery.config import (
    FACE_MODEL_PATH,
    FACE_MODEL_SIZE,
    OBJECT_MODEL_PATH,
    OBJECT_MODEL_SIZE,
)
from offline_gallery.detection.decoder import RawDetections, from_corner_output, from_yolo_output
from offline_gallery.exceptions import ModelNotLoadedError

logger = logging.getLogger(__name__)


def _providers(device: str) -> list[str]:
    if device == "cuda":
        return ["CUDAExecutionProvider", "CPUExecutionProvider"]
    return ["CPUExecutionProvider"]


def to_blob(image: np.ndarray, size: int) -> np.ndarray:
    """Resize an RGB image to ``size`` x ``size`` and return a (1, 3, size, size) [0, 1] blob."""
    return cv2.dnn.blobFromImage(
        image, scalefactor=1.0 / 255.0, size=(size, size), swapRB=False, crop=False
    )


class _OnnxSession:
    """An ONNX Runtime session guarded by a lock; one inference at a time."""

    def __init__(self, model_path: str | Path, model_size: int, device: str = "cpu") -> None:
        self.model_path = Path(model_path)
        self.model_size = model_size
        self.device = device
        self._session = None
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._session is not None

    def load(self) -> None:
        import onnxruntime as ort

        self._session = ort.InferenceSession(
            str(self.model_path), providers=_providers(self.device)
        )
        logger.info("Loaded ONNX model: %s", self.model_path.name)

    def _run(self, image: np.ndarray) -> dict[str, np.ndarray]:
        if self._session is None:
            raise ModelNotLoadedError(f"{self.model_path.name} is not loaded")
        blob = to_blob(image, self.model_size)
        input_name = self._session.get_inputs()[0].name
        output_names = [o.name for o in self._session.get_outputs()]
        with self._lock:
            outputs = self._session.run(None, {input_name: blob})
        return dict(zip(output_names, outputs))


class OnnxObjectDetector(_OnnxSession):
    """YOLOv8 (COCO 80 classes) exported to ONNX."""

    def __init__(
        self,
        model_path: str | Path = OBJECT_MODEL_PATH,
        model_size: int = OBJECT_MODEL_SIZE,
        device: str = "cpu",
    ) -> None:
        super().__init__(model_path, model_size, device)

    def detect_objects(self, image: np.ndarray) -> RawDetections:
        outputs = self._run(image)
        first = next(iter(outputs.values()))
        return from_yolo_output(first, (self.model_size, self.model_size))


class OnnxFaceDetector(_OnnxSession):
    """BlazeFace-style detector with ``boxes`` and ``scores`` outputs."""

    def __init__(
        self,
        model_path: str | Path = FACE_MODEL_PATH,
        model_size: int = FACE_MODEL_SIZE,
        device: str = "cpu",
    ) -> None:
        super().__init__(model_path, model_size, device)

    def detect_faces(self, image: np.ndarray) -> RawDetections:
        outputs = self._run(image)
        if "boxes" in outputs and "scores" in outputs:
            return from_corner_output(outputs["boxes"], outputs["scores"])
        boxes, scores = list(outputs.values())[:2]
        return from_corner_output(boxes, scores)
