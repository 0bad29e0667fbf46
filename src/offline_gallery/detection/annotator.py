"""Annotate image files and persist the results."""

import logging
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path

import duckdb
import numpy as np
from PIL import Image

from offline_gallery.config import EngineConfig
from offline_gallery.detection.decoder import DecoderThresholds, decode
from offline_gallery.detection.describe import LanguageProvider, describe
from offline_gallery.detection.face_pipeline import FaceAnnotationPipeline
from offline_gallery.detection.labels import COCO_LABELS
from offline_gallery.detection.providers import ObjectDetectorProvider
from offline_gallery.manager.repository import (
    get_annotations,
    get_image_by_id,
    get_image_by_path,
    insert_image,
    replace_annotations,
)
from offline_gallery.models import FaceDetection, ImageAnnotations, ImageRecord
from offline_gallery.recognition.resolver import IdentityResolver
from offline_gallery.recognition.similarity import cosine_similarity, embeddings_compatible

logger = logging.getLogger(__name__)


@dataclass
class _Analysis:
    path: Path
    width: int
    height: int
    file_size_bytes: int
    annotations: ImageAnnotations


def load_rgb(path: str | Path) -> np.ndarray:
    """Read an image file as an (H, W, 3) uint8 RGB array."""
    with Image.open(path) as img:
        return np.asarray(img.convert("RGB"))


class ImageAnnotator:
    """Detect objects and faces in images, resolve identities and store everything.

    Model inference may run on worker threads (``process_many``); all writes
    go through ``conn`` on the calling thread.
    """

    def __init__(
        self,
        conn: duckdb.DuckDBPyConnection,
        config: EngineConfig | None,
        object_detector: ObjectDetectorProvider,
        face_pipeline: FaceAnnotationPipeline | None = None,
        resolver: IdentityResolver | None = None,
        language: LanguageProvider | None = None,
    ) -> None:
        self.conn = conn
        self.config = config or EngineConfig()
        self.object_detector = object_detector
        self.face_pipeline = face_pipeline
        self.resolver = resolver or IdentityResolver(conn, self.config)
        self.language = language
        self.object_thresholds = DecoderThresholds(
            confidence=self.config.object_confidence,
            iou=self.config.iou_threshold,
        )

    # -- inference ---------------------------------------------------------

    def analyze(self, image: np.ndarray) -> ImageAnnotations:
        """Run detection on a decoded image. Faces carry no person ids yet."""
        height, width = image.shape[:2]
        raw = self.object_detector.detect_objects(image)
        tags = decode(raw, (width, height), self.object_thresholds, labels=COCO_LABELS)

        faces = []
        wants_faces = self.face_pipeline is not None and (
            not self.config.detect_faces_only_with_person
            or any(tag.label == "person" for tag in tags)
        )
        if wants_faces:
            try:
                faces = self.face_pipeline.annotate(image)
            except Exception:
                logger.exception("Face detection failed; continuing without faces")

        description = describe(
            [tag.label for tag in tags],
            self.language,
            max_length=self.config.max_description_length,
        )
        return ImageAnnotations(tags=tags, faces=faces, description=description)

    def _analyze_path(self, path: Path) -> _Analysis:
        image = load_rgb(path)
        height, width = image.shape[:2]
        return _Analysis(
            path=path,
            width=width,
            height=height,
            file_size_bytes=path.stat().st_size,
            annotations=self.analyze(image),
        )

    # -- persistence -------------------------------------------------------

    def _persist(self, analysis: _Analysis) -> ImageRecord:
        path = analysis.path
        image_id = insert_image(
            self.conn,
            ImageRecord(
                id=None,
                file_path=str(path),
                file_name=path.name,
                directory_path=str(path.parent),
                file_size_bytes=analysis.file_size_bytes,
                width=analysis.width,
                height=analysis.height,
                description=None,
                contains_people=False,
                face_count=0,
                created_at=None,
                processed_at=None,
            ),
        )
        annotations = analysis.annotations
        self._resolve_faces(image_id, annotations.faces)
        replace_annotations(self.conn, image_id, annotations)
        logger.debug(
            "Stored %d tags and %d faces for %s",
            len(annotations.tags), len(annotations.faces), path.name,
        )
        return get_image_by_id(self.conn, image_id)

    def _resolve_faces(self, image_id: int, faces: list[FaceDetection]) -> None:
        """Attribute faces to persons.

        A face matching one already stored for this image keeps that face's
        person and is not folded into the person's average a second time.
        """
        prior = [
            face
            for face in get_annotations(self.conn, image_id).faces
            if face.person_id is not None and face.assignable
        ]
        for face in faces:
            if not face.assignable:
                face.person_id = None
                continue
            index = self._match_prior(face.embedding, prior)
            if index is not None:
                face.person_id = prior.pop(index).person_id
                continue
            person = self.resolver.assign_face(face.embedding)
            face.person_id = person.id if person is not None else None

    def _match_prior(self, embedding: np.ndarray, prior: list[FaceDetection]) -> int | None:
        best_index, best_sim = None, -1.0
        for i, face in enumerate(prior):
            if not embeddings_compatible(embedding, face.embedding):
                continue
            sim = cosine_similarity(embedding, face.embedding)
            if sim > best_sim:
                best_index, best_sim = i, sim
        if best_index is None or best_sim < self.config.min_face_confidence:
            return None
        return best_index

    def _needs_processing(self, path: Path, force: bool) -> ImageRecord | None:
        """Return the stored record when ``path`` is already processed and not forced."""
        if force:
            return None
        existing = get_image_by_path(self.conn, str(path))
        if existing is not None and existing.processed_at is not None:
            return existing
        return None

    # -- public operations -------------------------------------------------

    def process_image(self, path: str | Path, force: bool = False) -> ImageRecord | None:
        """Annotate one image file.

        An already processed image is returned unchanged unless ``force``.
        Returns None when the file cannot be read, analyzed or stored.
        """
        path = Path(path).resolve()
        existing = self._needs_processing(path, force)
        if existing is not None:
            return existing
        try:
            analysis = self._analyze_path(path)
        except Exception:
            logger.exception("Failed to process image %s", path)
            return None
        try:
            return self._persist(analysis)
        except Exception:
            logger.exception("Failed to store annotations for %s", path)
            return None

    def reannotate(self, image_id: int) -> ImageRecord | None:
        """Re-run annotation for a stored image, replacing its annotations."""
        record = get_image_by_id(self.conn, image_id)
        if record is None:
            logger.warning("Image %d not found", image_id)
            return None
        return self.process_image(record.file_path, force=True)

    def process_many(
        self,
        paths: Iterable[str | Path],
        force: bool = False,
        cancel_event: threading.Event | None = None,
        on_done: Callable[[Path, ImageRecord | None], None] | None = None,
    ) -> list[ImageRecord]:
        """Annotate many images, analyzing them on a thread pool.

        Failed images are logged and skipped. Setting ``cancel_event`` stops
        submitting results; images already stored stay stored.
        """
        processed: list[ImageRecord] = []
        todo: list[Path] = []
        for raw_path in paths:
            path = Path(raw_path).resolve()
            existing = self._needs_processing(path, force)
            if existing is not None:
                processed.append(existing)
                if on_done is not None:
                    on_done(path, existing)
            else:
                todo.append(path)

        if not todo:
            return processed

        logger.info("Annotating %d images with %d workers", len(todo), self.config.max_workers)
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
            futures = {pool.submit(self._analyze_path, path): path for path in todo}
            for future in as_completed(futures):
                path = futures[future]
                if cancel_event is not None and cancel_event.is_set():
                    for pending in futures:
                        pending.cancel()
                    logger.info("Annotation cancelled after %d images", len(processed))
                    break
                record = None
                try:
                    record = self._persist(future.result())
                except Exception:
                    logger.exception("Failed to process image %s", path)
                else:
                    processed.append(record)
                if on_done is not None:
                    on_done(path, record)
        return processed
