"""Shared test fixtures."""

import duckdb
import numpy as np
import pytest

from offline_gallery.detection.decoder import RawDetections, from_corner_output, from_yolo_output
from offline_gallery.manager.repository import insert_image, replace_annotations
from offline_gallery.manager.schema import ensure_schema
from offline_gallery.models import (
    DetectionBox,
    FaceDetection,
    ImageAnnotations,
    ImageRecord,
)


@pytest.fixture
def db_conn():
    """In-memory DuckDB connection with schema initialized."""
    conn = duckdb.connect(":memory:")
    ensure_schema(conn)
    yield conn
    conn.close()


def make_image(name: str, directory: str = "/photos") -> ImageRecord:
    """Helper to create an unprocessed ImageRecord with unique fields."""
    return ImageRecord(
        id=None,
        file_path=f"{directory}/{name}",
        file_name=name,
        directory_path=directory,
        file_size_bytes=50000,
        width=1024,
        height=768,
        description=None,
        contains_people=False,
        face_count=0,
        created_at=None,
        processed_at=None,
    )


def make_tag(label: str, confidence: float = 0.9, x: int = 10, y: int = 10) -> DetectionBox:
    return DetectionBox(x=x, y=y, width=100, height=80, label=label, confidence=confidence)


def make_face(person_id: int | None = None, embedding=None, confidence: float = 0.95) -> FaceDetection:
    return FaceDetection(
        box=DetectionBox(x=50, y=40, width=60, height=60, label="face", confidence=confidence),
        embedding=None if embedding is None else np.asarray(embedding, dtype=np.float32),
        person_id=person_id,
    )


def insert_test_image(
    conn,
    name: str,
    tags: list[DetectionBox] | None = None,
    faces: list[FaceDetection] | None = None,
    description: str | None = None,
) -> int:
    """Insert an image and store its annotations; returns the image ID."""
    image_id = insert_image(conn, make_image(name))
    replace_annotations(
        conn,
        image_id,
        ImageAnnotations(tags=tags or [], faces=faces or [], description=description),
    )
    return image_id


def unit(values) -> np.ndarray:
    vec = np.asarray(values, dtype=np.float32)
    return vec / np.linalg.norm(vec)


def yolo_tensor(rows: list[tuple[float, float, float, float, int, float]], num_classes: int = 80):
    """Build a (1, 4 + C, N) YOLO-style tensor from (cx, cy, w, h, class_id, score) rows."""
    out = np.zeros((1, 4 + num_classes, len(rows)), dtype=np.float32)
    for i, (cx, cy, w, h, class_id, score) in enumerate(rows):
        out[0, :4, i] = (cx, cy, w, h)
        out[0, 4 + class_id, i] = score
    return out


class FakeObjectDetector:
    """Returns a fixed YOLO-style output regardless of the image."""

    def __init__(self, rows=(), model_size=(640, 640), error: Exception | None = None):
        self.rows = list(rows)
        self.model_size = model_size
        self.error = error
        self.calls = 0

    def detect_objects(self, image):
        self.calls += 1
        if self.error is not None:
            raise self.error
        if not self.rows:
            return RawDetections(
                boxes=np.zeros((0, 4)), scores=np.zeros((0, 80)), model_size=self.model_size
            )
        return from_yolo_output(yolo_tensor(self.rows), self.model_size)


class FakeFaceDetector:
    """Returns normalized corner boxes (ymin, xmin, ymax, xmax) with scores."""

    def __init__(self, faces=(), error: Exception | None = None):
        self.faces = list(faces)
        self.error = error
        self.calls = 0

    def detect_faces(self, image):
        self.calls += 1
        if self.error is not None:
            raise self.error
        boxes = np.array([f[:4] for f in self.faces], dtype=np.float32).reshape(-1, 4)
        scores = np.array([f[4] for f in self.faces], dtype=np.float32)
        return from_corner_output(boxes, scores)


class FakeEmbedder:
    """Returns queued embeddings in order; ``None`` entries simulate failures."""

    def __init__(self, embeddings=(), error: Exception | None = None):
        self.embeddings = list(embeddings)
        self.error = error
        self.regions = []

    def embed(self, region):
        self.regions.append(region.shape)
        if self.error is not None:
            raise self.error
        if not self.embeddings:
            return None
        return self.embeddings.pop(0)
