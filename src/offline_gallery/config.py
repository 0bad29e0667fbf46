"""Project-wide configuration."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from offline_gallery.exceptions import ConfigError

PROJECT_ROOT = Path(os.environ.get("GALLERY_PROJECT_ROOT", Path.cwd()))

load_dotenv(PROJECT_ROOT / ".env")

DB_PATH = Path(os.environ.get("GALLERY_DB_PATH", PROJECT_ROOT / "offline_gallery.duckdb"))
MODELS_DIR = Path(os.environ.get("GALLERY_MODELS_DIR", PROJECT_ROOT / "models"))

SUPPORTED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".bmp")

# Object detection – YOLOv8n (COCO 80 classes), output (1, 84, 8400)
OBJECT_MODEL_PATH = MODELS_DIR / "yolov8n.onnx"
OBJECT_MODEL_SIZE = 640

# Face detection – BlazeFace, normalized corner boxes
FACE_MODEL_PATH = MODELS_DIR / "blazeface.onnx"
FACE_MODEL_SIZE = 128

# Face recognition – ArcFace
EMBEDDING_MODEL_PATH = MODELS_DIR / "arcface.onnx"
EMBEDDING_IMAGE_SIZE = 112

# Description / chat – local instruction-tuned model
LANGUAGE_MODEL_NAME = os.environ.get(
    "GALLERY_LANGUAGE_MODEL", "Qwen/Qwen2.5-0.5B-Instruct"
)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _default_workers() -> int:
    return max(1, (os.cpu_count() or 2) - 1)


@dataclass(frozen=True)
class EngineConfig:
    """Settings shared by the annotation and retrieval components.

    Built once at startup and handed to every component that needs it.
    """

    object_confidence: float = 0.25
    face_confidence: float = 0.75
    iou_threshold: float = 0.5
    min_face_confidence: float = 0.6
    max_faces_per_image: int = 20
    detect_faces_only_with_person: bool = True
    person_name_template: str = "Person {id}"
    max_description_length: int = 500
    update_retries: int = 5
    max_workers: int = field(default_factory=_default_workers)

    def __post_init__(self) -> None:
        for name in ("object_confidence", "face_confidence", "iou_threshold", "min_face_confidence"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigError(f"{name} must be within [0, 1], got {value}", {name: value})
        for name in ("max_faces_per_image", "max_description_length", "update_retries", "max_workers"):
            value = getattr(self, name)
            if value < 1:
                raise ConfigError(f"{name} must be positive, got {value}", {name: value})
        if "{id}" not in self.person_name_template:
            raise ConfigError("person_name_template must contain '{id}'")

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build a config from GALLERY_* environment variables (after .env is loaded)."""
        return cls(
            object_confidence=_env_float("GALLERY_OBJECT_CONFIDENCE", 0.25),
            face_confidence=_env_float("GALLERY_FACE_CONFIDENCE", 0.75),
            iou_threshold=_env_float("GALLERY_IOU_THRESHOLD", 0.5),
            min_face_confidence=_env_float("GALLERY_MIN_FACE_CONFIDENCE", 0.6),
            max_faces_per_image=_env_int("GALLERY_MAX_FACES_PER_IMAGE", 20),
            max_workers=_env_int("GALLERY_MAX_WORKERS", _default_workers()),
        )
