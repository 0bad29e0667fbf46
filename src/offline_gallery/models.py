"""Data models for gallery images, annotations and people."""

from dataclasses import dataclass, field
from datetime import datetime

import numpy as np


@dataclass
class ImageRecord:
    """A single image known to the gallery."""

    id: int | None
    file_path: str
    file_name: str
    directory_path: str
    file_size_bytes: int | None
    width: int | None
    height: int | None
    description: str | None
    contains_people: bool
    face_count: int
    created_at: datetime | None
    processed_at: datetime | None


@dataclass(frozen=True)
class DetectionBox:
    """A labeled pixel-space rectangle produced by the detection decoder."""

    x: int
    y: int
    width: int
    height: int
    label: str
    confidence: float

    @property
    def corners(self) -> tuple[int, int, int, int]:
        """(x1, y1, x2, y2)"""
        return self.x, self.y, self.x + self.width, self.y + self.height


@dataclass
class FaceDetection:
    """A detected face region with its (optional) identity embedding."""

    box: DetectionBox
    embedding: np.ndarray | None = None
    person_id: int | None = None

    @property
    def confidence(self) -> float:
        return self.box.confidence

    @property
    def assignable(self) -> bool:
        return self.embedding is not None and self.embedding.size > 0


@dataclass
class Person:
    """A stable identity with a running-average face embedding."""

    id: int
    name: str
    average_embedding: np.ndarray | None
    version: int = 0
    created_at: datetime | None = None

    @property
    def has_embedding(self) -> bool:
        return self.average_embedding is not None and self.average_embedding.size > 0


@dataclass
class ImageAnnotations:
    """Everything the engine derived from one image. Replaced wholesale on reprocessing."""

    tags: list[DetectionBox] = field(default_factory=list)
    faces: list[FaceDetection] = field(default_factory=list)
    description: str | None = None

    @property
    def contains_people(self) -> bool:
        return bool(self.faces) or any(tag.label == "person" for tag in self.tags)


@dataclass
class SearchPredicate:
    """Structured form of a free-text query."""

    people: list[str] = field(default_factory=list)
    require_all: bool = False
    excluded_people: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.people or self.excluded_people or self.tags)


@dataclass
class SearchResult:
    """An image matched by a search, with relevance in [0, 1]."""

    image: ImageRecord
    relevance: float
