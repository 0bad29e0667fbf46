"""Interfaces of the inference providers the engine consumes.

Images are ``(H, W, 3)`` uint8 RGB arrays. Providers own a stateful model
handle and must serialize calls against it; everything downstream of them
(decoding, NMS, similarity, search) is pure.
"""

from typing import Protocol

import numpy as np

from offline_gallery.detection.decoder import RawDetections


class ObjectDetectorProvider(Protocol):
    def detect_objects(self, image: np.ndarray) -> RawDetections: ...


class FaceDetectorProvider(Protocol):
    def detect_faces(self, image: np.ndarray) -> RawDetections: ...


class EmbeddingProvider(Protocol):
    def embed(self, region: np.ndarray) -> np.ndarray | None:
        """Return a fixed-length float vector, or None / raise on failure."""
        ...
