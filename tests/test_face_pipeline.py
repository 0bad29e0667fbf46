"""Tests for the face annotation pipeline."""

import numpy as np
from conftest import FakeEmbedder, FakeFaceDetector

from offline_gallery.config import EngineConfig
from offline_gallery.detection.face_pipeline import FaceAnnotationPipeline, crop_region
from offline_gallery.exceptions import ProviderError
from offline_gallery.models import DetectionBox

IMAGE = np.zeros((128, 256, 3), dtype=np.uint8)


def _faces(*scores):
    # Non-overlapping normalized boxes laid out left to right.
    return [(0.25, 0.1 * i, 0.5, 0.1 * i + 0.05, s) for i, s in enumerate(scores)]


def test_crop_region_clips_to_image():
    box = DetectionBox(x=240, y=-10, width=40, height=30, label="face", confidence=0.9)
    assert crop_region(IMAGE, box).shape == (20, 16, 3)


def test_annotate_attaches_embeddings_most_confident_first():
    embedder = FakeEmbedder([np.ones(4), np.full(4, 2.0)])
    pipeline = FaceAnnotationPipeline(FakeFaceDetector(_faces(0.8, 0.95)), embedder)

    faces = pipeline.annotate(IMAGE)

    assert [round(f.confidence, 2) for f in faces] == [0.95, 0.8]
    np.testing.assert_allclose(faces[0].embedding, np.ones(4))
    np.testing.assert_allclose(faces[1].embedding, np.full(4, 2.0))
    assert all(f.person_id is None for f in faces)


def test_annotate_drops_low_confidence_faces():
    pipeline = FaceAnnotationPipeline(
        FakeFaceDetector(_faces(0.9, 0.5)), FakeEmbedder([np.ones(4)])
    )
    assert len(pipeline.annotate(IMAGE)) == 1


def test_annotate_respects_max_faces():
    config = EngineConfig(max_faces_per_image=2)
    embeddings = [np.ones(4) for _ in range(5)]
    pipeline = FaceAnnotationPipeline(
        FakeFaceDetector(_faces(0.8, 0.9, 0.85, 0.95, 0.76)), FakeEmbedder(embeddings), config
    )
    faces = pipeline.annotate(IMAGE)
    assert [round(f.confidence, 2) for f in faces] == [0.95, 0.9]


def test_annotate_keeps_face_when_embedding_fails():
    pipeline = FaceAnnotationPipeline(
        FakeFaceDetector(_faces(0.9)), FakeEmbedder(error=ProviderError("model crashed"))
    )
    faces = pipeline.annotate(IMAGE)
    assert len(faces) == 1
    assert faces[0].embedding is None
    assert not faces[0].assignable


def test_annotate_handles_missing_embedding():
    pipeline = FaceAnnotationPipeline(FakeFaceDetector(_faces(0.9, 0.8)), FakeEmbedder([np.ones(4)]))
    faces = pipeline.annotate(IMAGE)
    assert faces[0].assignable
    assert faces[1].embedding is None


def test_annotate_no_faces():
    pipeline = FaceAnnotationPipeline(FakeFaceDetector([]), FakeEmbedder())
    assert pipeline.annotate(IMAGE) == []
