"""CRUD operations for images and their annotations in DuckDB."""

import duckdb
import numpy as np

from offline_gallery.models import DetectionBox, FaceDetection, ImageAnnotations, ImageRecord


def insert_image(conn: duckdb.DuckDBPyConnection, record: ImageRecord) -> int:
    """Insert a single image record and return its ID. Existing paths are left untouched."""
    row = conn.execute(
        """
        INSERT INTO images (
            file_path, file_name, directory_path, file_size_bytes, width, height
        ) VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT (file_path) DO NOTHING
        RETURNING id
        """,
        [
            record.file_path,
            record.file_name,
            record.directory_path,
            record.file_size_bytes,
            record.width,
            record.height,
        ],
    ).fetchone()
    if row is None:
        row = conn.execute(
            "SELECT id FROM images WHERE file_path = ?", [record.file_path]
        ).fetchone()
    return row[0]


def get_image_by_id(conn: duckdb.DuckDBPyConnection, image_id: int) -> ImageRecord | None:
    """Look up a single image by ID."""
    row = conn.execute("SELECT * FROM images WHERE id = ?", [image_id]).fetchone()
    if row is None:
        return None
    return _row_to_image(row)


def get_image_by_path(conn: duckdb.DuckDBPyConnection, file_path: str) -> ImageRecord | None:
    """Look up a single image by its file path."""
    row = conn.execute("SELECT * FROM images WHERE file_path = ?", [file_path]).fetchone()
    if row is None:
        return None
    return _row_to_image(row)


def get_images_by_ids(
    conn: duckdb.DuckDBPyConnection, image_ids: list[int]
) -> list[ImageRecord]:
    """Return image records in the order of ``image_ids``. Unknown IDs are skipped."""
    if not image_ids:
        return []
    placeholders = ", ".join(["?"] * len(image_ids))
    rows = conn.execute(
        f"SELECT * FROM images WHERE id IN ({placeholders})", list(image_ids)
    ).fetchall()
    by_id = {row[0]: _row_to_image(row) for row in rows}
    return [by_id[image_id] for image_id in image_ids if image_id in by_id]


def list_images(
    conn: duckdb.DuckDBPyConnection,
    directory: str | None = None,
) -> list[ImageRecord]:
    """List images, optionally restricted to one directory."""
    query = "SELECT * FROM images WHERE 1=1"
    params: list = []
    if directory is not None:
        query += " AND directory_path = ?"
        params.append(directory)
    query += " ORDER BY file_path"
    rows = conn.execute(query, params).fetchall()
    return [_row_to_image(row) for row in rows]


def get_unprocessed_images(conn: duckdb.DuckDBPyConnection) -> list[ImageRecord]:
    """Return images that have never been annotated."""
    rows = conn.execute(
        "SELECT * FROM images WHERE processed_at IS NULL ORDER BY id"
    ).fetchall()
    return [_row_to_image(row) for row in rows]


def replace_annotations(
    conn: duckdb.DuckDBPyConnection,
    image_id: int,
    annotations: ImageAnnotations,
) -> None:
    """Replace all tags and faces of an image in a single transaction."""
    conn.begin()
    try:
        conn.execute("DELETE FROM image_tags WHERE image_id = ?", [image_id])
        conn.execute("DELETE FROM image_faces WHERE image_id = ?", [image_id])
        for tag in annotations.tags:
            conn.execute(
                """
                INSERT INTO image_tags
                (image_id, tag_name, confidence, bbox_x, bbox_y, bbox_width, bbox_height)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [image_id, tag.label, tag.confidence, tag.x, tag.y, tag.width, tag.height],
            )
        for face in annotations.faces:
            embedding = face.embedding.tolist() if face.assignable else None
            conn.execute(
                """
                INSERT INTO image_faces
                (image_id, person_id, bbox_x, bbox_y, bbox_width, bbox_height,
                 confidence, embedding)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    image_id,
                    face.person_id,
                    face.box.x,
                    face.box.y,
                    face.box.width,
                    face.box.height,
                    face.confidence,
                    embedding,
                ],
            )
        conn.execute(
            """
            UPDATE images
            SET description = ?, contains_people = ?, face_count = ?,
                processed_at = current_timestamp
            WHERE id = ?
            """,
            [
                annotations.description,
                annotations.contains_people,
                len(annotations.faces),
                image_id,
            ],
        )
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def get_annotations(conn: duckdb.DuckDBPyConnection, image_id: int) -> ImageAnnotations:
    """Load the stored tags, faces and description of an image."""
    tag_rows = conn.execute(
        """
        SELECT tag_name, confidence, bbox_x, bbox_y, bbox_width, bbox_height
        FROM image_tags
        WHERE image_id = ?
        ORDER BY id
        """,
        [image_id],
    ).fetchall()
    face_rows = conn.execute(
        """
        SELECT person_id, bbox_x, bbox_y, bbox_width, bbox_height, confidence, embedding
        FROM image_faces
        WHERE image_id = ?
        ORDER BY id
        """,
        [image_id],
    ).fetchall()
    desc_row = conn.execute(
        "SELECT description FROM images WHERE id = ?", [image_id]
    ).fetchone()

    tags = [
        DetectionBox(x=r[2], y=r[3], width=r[4], height=r[5], label=r[0], confidence=r[1])
        for r in tag_rows
    ]
    faces = [
        FaceDetection(
            box=DetectionBox(x=r[1], y=r[2], width=r[3], height=r[4], label="face", confidence=r[5]),
            embedding=np.array(r[6], dtype=np.float32) if r[6] is not None else None,
            person_id=r[0],
        )
        for r in face_rows
    ]
    return ImageAnnotations(
        tags=tags,
        faces=faces,
        description=desc_row[0] if desc_row else None,
    )


def get_images_by_tag(
    conn: duckdb.DuckDBPyConnection,
    term: str,
) -> list[tuple[ImageRecord, float]]:
    """Return (image, relevance) for images with a tag containing ``term``.

    Matching is case-insensitive containment. Relevance is the confidence of a
    tag named exactly ``term`` (best one if several), or 0.0 when only partial
    matches exist.
    """
    needle = term.strip().lower()
    if not needle:
        return []
    rows = conn.execute(
        """
        WITH matched AS (
            SELECT image_id,
                   MAX(CASE WHEN lower(tag_name) = ? THEN confidence ELSE 0.0 END) AS relevance
            FROM image_tags
            WHERE contains(lower(tag_name), ?)
            GROUP BY image_id
        )
        SELECT i.*, m.relevance
        FROM matched m
        JOIN images i ON i.id = m.image_id
        ORDER BY i.id
        """,
        [needle, needle],
    ).fetchall()
    return [(_row_to_image(row[:-1]), float(row[-1])) for row in rows]


def get_images_with_faces(conn: duckdb.DuckDBPyConnection) -> set[int]:
    """Return IDs of images with at least one detected face."""
    rows = conn.execute("SELECT DISTINCT image_id FROM image_faces").fetchall()
    return {row[0] for row in rows}


def get_gallery_stats(conn: duckdb.DuckDBPyConnection) -> tuple[int, int, int, int]:
    """Return (total_images, processed_images, tags, faces)."""
    total_row = conn.execute("SELECT COUNT(*) FROM images").fetchone()
    total = total_row[0] if total_row else 0

    processed_row = conn.execute(
        "SELECT COUNT(*) FROM images WHERE processed_at IS NOT NULL"
    ).fetchone()
    processed = processed_row[0] if processed_row else 0

    tags_row = conn.execute("SELECT COUNT(*) FROM image_tags").fetchone()
    tags = tags_row[0] if tags_row else 0

    faces_row = conn.execute("SELECT COUNT(*) FROM image_faces").fetchone()
    faces = faces_row[0] if faces_row else 0

    return total, processed, tags, faces


def _row_to_image(row: tuple) -> ImageRecord:
    """Convert a DB row tuple to ImageRecord.

    Column order matches schema.py DDL:
    0:id, 1:file_path, 2:file_name, 3:directory_path, 4:file_size_bytes,
    5:width, 6:height, 7:description, 8:contains_people, 9:face_count,
    10:created_at, 11:processed_at
    """
    return ImageRecord(
        id=row[0],
        file_path=row[1],
        file_name=row[2],
        directory_path=row[3],
        file_size_bytes=row[4],
        width=row[5],
        height=row[6],
        description=row[7],
        contains_people=row[8],
        face_count=row[9],
        created_at=row[10],
        processed_at=row[11],
    )
