"""Tests for engine configuration."""

import pytest

from offline_gallery.config import EngineConfig
from offline_gallery.exceptions import ConfigError


def test_defaults():
    config = EngineConfig()
    assert config.object_confidence == 0.25
    assert config.face_confidence == 0.75
    assert config.iou_threshold == 0.5
    assert config.min_face_confidence == 0.6
    assert config.max_faces_per_image == 20
    assert config.detect_faces_only_with_person is True
    assert config.max_workers >= 1


@pytest.mark.parametrize(
    "kwargs",
    [
        {"object_confidence": 1.5},
        {"iou_threshold": -0.1},
        {"max_faces_per_image": 0},
        {"max_workers": 0},
        {"person_name_template": "Someone"},
    ],
)
def test_invalid_values_rejected(kwargs):
    with pytest.raises(ConfigError):
        EngineConfig(**kwargs)


def test_from_env(monkeypatch):
    monkeypatch.setenv("GALLERY_MIN_FACE_CONFIDENCE", "0.7")
    monkeypatch.setenv("GALLERY_MAX_WORKERS", "3")
    monkeypatch.delenv("GALLERY_OBJECT_CONFIDENCE", raising=False)
    config = EngineConfig.from_env()
    assert config.min_face_confidence == 0.7
    assert config.max_workers == 3
    assert config.object_confidence == 0.25


def test_from_env_rejects_garbage(monkeypatch):
    monkeypatch.setenv("GALLERY_MAX_FACES_PER_IMAGE", "many")
    with pytest.raises(ConfigError):
        EngineConfig.from_env()
