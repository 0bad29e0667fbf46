"""Resolve face embeddings to persons and answer person -> image set queries."""

import logging
import threading
from collections import defaultdict

import duckdb
import numpy as np
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from offline_gallery.config import EngineConfig
from offline_gallery.exceptions import ConcurrentUpdateError, EmbeddingDimensionError
from offline_gallery.manager.person_repository import (
    create_person,
    get_image_ids_for_person,
    get_person,
    list_persons,
    rename_person,
    update_person_average,
)
from offline_gallery.manager.repository import get_images_with_faces
from offline_gallery.models import Person
from offline_gallery.recognition.similarity import cosine_similarity, running_average

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Find or create the person a face belongs to.

    Every person keeps one running-average embedding, updated pairwise
    (``avg = (avg + new) / 2``) whenever a face is attributed to them.
    Updates to the same person are serialized in-process by a per-person lock
    and across connections by an optimistic version check with retries.

    Safe to share between threads: each thread talks to DuckDB through its
    own cursor.
    """

    def __init__(self, conn: duckdb.DuckDBPyConnection, config: EngineConfig | None = None) -> None:
        self.conn = conn
        self.config = config or EngineConfig()
        self._local = threading.local()
        self._create_lock = threading.Lock()
        self._person_locks: defaultdict[int, threading.Lock] = defaultdict(threading.Lock)
        self._registry_lock = threading.Lock()

    def _db(self) -> duckdb.DuckDBPyConnection:
        cursor = getattr(self._local, "cursor", None)
        if cursor is None:
            cursor = self.conn.cursor()
            self._local.cursor = cursor
        return cursor

    def _lock_for(self, person_id: int) -> threading.Lock:
        with self._registry_lock:
            return self._person_locks[person_id]

    # -- resolution --------------------------------------------------------

    def best_match(self, embedding: np.ndarray) -> tuple[Person | None, float]:
        """Return the most similar person with an embedding, and the similarity.

        Persons are scanned in creation order and only a strictly higher
        similarity replaces the current best, so the first-created person
        wins exact ties.
        """
        best: Person | None = None
        best_sim = 0.0
        for person in list_persons(self._db()):
            if not person.has_embedding:
                continue
            if person.average_embedding.size != embedding.size:
                logger.debug(
                    "Skipping person %d: embedding length %d != %d",
                    person.id, person.average_embedding.size, embedding.size,
                )
                continue
            sim = cosine_similarity(embedding, person.average_embedding)
            if best is None or sim > best_sim:
                best, best_sim = person, sim
        return best, best_sim

    def resolve_or_create(
        self, embedding: np.ndarray, min_confidence: float | None = None
    ) -> Person:
        """Return the best-matching person at or above ``min_confidence``, else a new one.

        A new person starts with ``embedding`` as its average.
        """
        person, _ = self._resolve(embedding, min_confidence)
        return person

    def _resolve(
        self, embedding: np.ndarray, min_confidence: float | None
    ) -> tuple[Person, bool]:
        threshold = self.config.min_face_confidence if min_confidence is None else min_confidence
        vec = np.asarray(embedding, dtype=np.float32).flatten()
        with self._create_lock:
            best, sim = self.best_match(vec)
            if best is not None and sim >= threshold:
                logger.debug("Matched person %d (similarity %.3f)", best.id, sim)
                return best, False
            person = create_person(
                self._db(), embedding=vec, name_template=self.config.person_name_template
            )
        logger.info("Created person %d (%s)", person.id, person.name)
        return person, True

    def assign_face(self, embedding: np.ndarray | None) -> Person | None:
        """Attribute a face to a person, updating that person's average.

        Returns None for a face without an embedding (unassignable).
        """
        if embedding is None or np.asarray(embedding).size == 0:
            return None
        vec = np.asarray(embedding, dtype=np.float32).flatten()
        person, created = self._resolve(vec, None)
        if created:
            return person
        if not self.attach_face(person.id, vec):
            return None
        return get_person(self._db(), person.id)

    # -- running average ---------------------------------------------------

    def attach_face(self, person_id: int, embedding: np.ndarray) -> bool:
        """Fold ``embedding`` into the person's running average.

        Returns False when the person does not exist or the embedding length
        does not match the stored average.
        """
        vec = np.asarray(embedding, dtype=np.float32).flatten()
        attempt = retry(
            stop=stop_after_attempt(self.config.update_retries),
            wait=wait_exponential(multiplier=0.01, max=0.5),
            retry=retry_if_exception_type((ConcurrentUpdateError, duckdb.TransactionException)),
            reraise=True,
        )(self._attach_once)
        with self._lock_for(person_id):
            try:
                return attempt(person_id, vec)
            except EmbeddingDimensionError as exc:
                logger.warning("Cannot attach face to person %d: %s", person_id, exc)
                return False

    def _attach_once(self, person_id: int, vec: np.ndarray) -> bool:
        db = self._db()
        person = get_person(db, person_id)
        if person is None:
            return False
        average = running_average(person.average_embedding, vec)
        update_person_average(db, person_id, average, expected_version=person.version)
        return True

    def rename_person(self, person_id: int, name: str) -> bool:
        return rename_person(self._db(), person_id, name)

    # -- set queries over the person -> image association --------------------

    def images_containing_all(self, person_ids: list[int]) -> set[int]:
        """Images in which every one of ``person_ids`` appears."""
        if not person_ids:
            return set()
        sets = [get_image_ids_for_person(self._db(), pid) for pid in person_ids]
        return set.intersection(*sets)

    def images_containing_any(self, person_ids: list[int]) -> set[int]:
        """Images in which at least one of ``person_ids`` appears."""
        result: set[int] = set()
        for pid in person_ids:
            result |= get_image_ids_for_person(self._db(), pid)
        return result

    def images_excluding(
        self, person_ids: list[int], image_ids: set[int] | None = None
    ) -> set[int]:
        """``image_ids`` (default: all images with faces) minus those showing any of ``person_ids``."""
        base = set(image_ids) if image_ids is not None else get_images_with_faces(self._db())
        return base - self.images_containing_any(person_ids)
