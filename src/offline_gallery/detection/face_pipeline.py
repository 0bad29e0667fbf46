"""Face detection followed by per-face embedding extraction."""

import logging

import numpy as np

from offline_gallery.config import EngineConfig
from offline_gallery.detection.decoder import DecoderThresholds, decode
from offline_gallery.detection.labels import FACE_LABELS
from offline_gallery.detection.providers import EmbeddingProvider, FaceDetectorProvider
from offline_gallery.models import DetectionBox, FaceDetection

logger = logging.getLogger(__name__)


def crop_region(image: np.ndarray, box: DetectionBox) -> np.ndarray:
    """Return the ``box`` region of an (H, W, C) image, clipped to its bounds."""
    height, width = image.shape[:2]
    x1 = min(max(box.x, 0), width)
    y1 = min(max(box.y, 0), height)
    x2 = min(max(box.x + box.width, 0), width)
    y2 = min(max(box.y + box.height, 0), height)
    return image[y1:y2, x1:x2]


class FaceAnnotationPipeline:
    """Detect faces in an image and attach an embedding to each of them."""

    def __init__(
        self,
        face_detector: FaceDetectorProvider,
        embedder: EmbeddingProvider,
        config: EngineConfig | None = None,
    ) -> None:
        self.face_detector = face_detector
        self.embedder = embedder
        self.config = config or EngineConfig()
        self.thresholds = DecoderThresholds(
            confidence=self.config.face_confidence,
            iou=self.config.iou_threshold,
        )

    def annotate(self, image: np.ndarray) -> list[FaceDetection]:
        """Return detected faces, most confident first.

        A face whose embedding cannot be extracted is still returned, with
        ``embedding=None``, so it is reported but never assigned to a person.
        """
        height, width = image.shape[:2]
        raw = self.face_detector.detect_faces(image)
        boxes = decode(
            raw,
            (width, height),
            self.thresholds,
            labels=FACE_LABELS,
            max_detections=self.config.max_faces_per_image,
        )
        boxes = sorted(boxes, key=lambda b: -b.confidence)

        faces: list[FaceDetection] = []
        for box in boxes:
            faces.append(FaceDetection(box=box, embedding=self._embed(image, box)))
        return faces

    def _embed(self, image: np.ndarray, box: DetectionBox) -> np.ndarray | None:
        region = crop_region(image, box)
        if region.size == 0:
            logger.warning("Empty face region at %s", box.corners)
            return None
        try:
            vec = self.embedder.embed(region)
        except Exception:
            logger.exception("Embedding failed for face at %s", box.corners)
            return None
        if vec is None:
            logger.warning("No embedding for face at %s", box.corners)
            return None
        vec = np.asarray(vec, dtype=np.float32).flatten()
        if vec.size == 0:
            return None
        return vec
