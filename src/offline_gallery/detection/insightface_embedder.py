"""InsightFace ArcFace wrapper for face embedding extraction."""

import logging
import threading
from pathlib import Path

import cv2
import numpy as np

from offline_gallery.config import EMBEDDING_IMAGE_SIZE, EMBEDDING_MODEL_PATH
from offline_gallery.exceptions import ModelNotLoadedError, ProviderError

logger = logging.getLogger(__name__)


class InsightFaceEmbedder:
    """Extract ArcFace embeddings from cropped face regions using InsightFace."""

    def __init__(
        self,
        model_path: str | Path = EMBEDDING_MODEL_PATH,
        device: str = "cpu",
    ) -> None:
        self.model_path = Path(model_path)
        self.device = device
        self._model = None
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._model is not None

    def load(self) -> None:
        from insightface.model_zoo import get_model

        providers = (
            ["CUDAExecutionProvider", "CPUExecutionProvider"]
            if self.device == "cuda"
            else ["CPUExecutionProvider"]
        )
        self._model = get_model(str(self.model_path), providers=providers)
        self._model.prepare(ctx_id=0 if self.device == "cuda" else -1)
        logger.info("Loaded face embedder: %s", self.model_path.name)

    def embed(self, region: np.ndarray) -> np.ndarray:
        """Embed an RGB face crop. Returns a 1-D float32 vector.

        Raises:
            ProviderError: the crop is empty or the model returned nothing.
        """
        if self._model is None:
            raise ModelNotLoadedError(f"{self.model_path.name} is not loaded")
        if region.size == 0:
            raise ProviderError("Empty face region")

        bgr = cv2.cvtColor(region, cv2.COLOR_RGB2BGR)
        face = cv2.resize(bgr, (EMBEDDING_IMAGE_SIZE, EMBEDDING_IMAGE_SIZE))
        with self._lock:
            feat = self._model.get_feat(face)
        vec = np.asarray(feat, dtype=np.float32).flatten()
        if vec.size == 0:
            raise ProviderError("Face embedder returned an empty vector")
        return vec
