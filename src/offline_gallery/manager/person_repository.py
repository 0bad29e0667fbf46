"""CRUD operations for persons and the person -> image association in DuckDB."""

import duckdb
import numpy as np

from offline_gallery.exceptions import ConcurrentUpdateError
from offline_gallery.models import Person


def create_person(
    conn: duckdb.DuckDBPyConnection,
    embedding: np.ndarray | None = None,
    name: str | None = None,
    name_template: str = "Person {id}",
) -> Person:
    """Create a person. Without ``name`` one is generated from ``name_template``."""
    id_row = conn.execute("SELECT nextval('persons_id_seq')").fetchone()
    person_id = id_row[0]
    person_name = name if name is not None else name_template.format(id=person_id)
    vec = embedding.astype(np.float32).tolist() if embedding is not None else None
    conn.execute(
        "INSERT INTO persons (id, name, average_embedding, version) VALUES (?, ?, ?, 0)",
        [person_id, person_name, vec],
    )
    return get_person(conn, person_id)


def get_person(conn: duckdb.DuckDBPyConnection, person_id: int) -> Person | None:
    """Look up a single person by ID."""
    row = conn.execute(
        "SELECT id, name, average_embedding, version, created_at FROM persons WHERE id = ?",
        [person_id],
    ).fetchone()
    if row is None:
        return None
    return _row_to_person(row)


def list_persons(conn: duckdb.DuckDBPyConnection) -> list[Person]:
    """Return all persons in creation order."""
    rows = conn.execute(
        "SELECT id, name, average_embedding, version, created_at FROM persons ORDER BY id"
    ).fetchall()
    return [_row_to_person(row) for row in rows]


def find_persons_by_name(conn: duckdb.DuckDBPyConnection, fragment: str) -> list[Person]:
    """Return persons whose name contains ``fragment`` (case-insensitive)."""
    needle = fragment.strip().lower()
    if not needle:
        return []
    rows = conn.execute(
        """
        SELECT id, name, average_embedding, version, created_at
        FROM persons
        WHERE contains(lower(name), ?)
        ORDER BY id
        """,
        [needle],
    ).fetchall()
    return [_row_to_person(row) for row in rows]


def update_person_average(
    conn: duckdb.DuckDBPyConnection,
    person_id: int,
    embedding: np.ndarray,
    expected_version: int,
) -> Person:
    """Store a new average embedding if the person is still at ``expected_version``.

    Raises:
        ConcurrentUpdateError: the row was updated by someone else since it was read.
    """
    row = conn.execute(
        """
        UPDATE persons
        SET average_embedding = ?, version = version + 1
        WHERE id = ? AND version = ?
        """,
        [embedding.astype(np.float32).tolist(), person_id, expected_version],
    ).fetchone()
    updated = row[0] if row else 0
    if updated == 0:
        raise ConcurrentUpdateError(
            f"Person {person_id} changed since version {expected_version}",
            {"person_id": person_id, "expected_version": expected_version},
        )
    return get_person(conn, person_id)


def rename_person(conn: duckdb.DuckDBPyConnection, person_id: int, name: str) -> bool:
    """Rename a person. Returns False when the person does not exist."""
    row = conn.execute(
        "UPDATE persons SET name = ? WHERE id = ?", [name, person_id]
    ).fetchone()
    return bool(row and row[0])


def get_image_ids_for_person(conn: duckdb.DuckDBPyConnection, person_id: int) -> set[int]:
    """Return IDs of images with at least one face attributed to the person."""
    rows = conn.execute(
        "SELECT DISTINCT image_id FROM image_faces WHERE person_id = ?",
        [person_id],
    ).fetchall()
    return {row[0] for row in rows}


def assign_face_to_person(
    conn: duckdb.DuckDBPyConnection, face_id: int, person_id: int | None
) -> bool:
    """Point a stored face at a person (or clear it with None)."""
    row = conn.execute(
        "UPDATE image_faces SET person_id = ? WHERE id = ?", [person_id, face_id]
    ).fetchone()
    return bool(row and row[0])


def count_persons(conn: duckdb.DuckDBPyConnection) -> int:
    """Return the number of known persons."""
    row = conn.execute("SELECT COUNT(*) FROM persons").fetchone()
    return row[0] if row else 0


def _row_to_person(row: tuple) -> Person:
    """Convert a (id, name, average_embedding, version, created_at) row to Person."""
    embedding_raw = row[2]
    embedding = np.array(embedding_raw, dtype=np.float32) if embedding_raw is not None else None
    return Person(
        id=row[0],
        name=row[1],
        average_embedding=embedding,
        version=row[3],
        created_at=row[4],
    )
