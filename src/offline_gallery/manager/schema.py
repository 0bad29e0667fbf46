"""DuckDB schema definition."""

import duckdb


def ensure_schema(conn: duckdb.DuckDBPyConnection) -> None:
    """Create tables and indexes if they do not exist."""
    conn.execute("CREATE SEQUENCE IF NOT EXISTS images_id_seq START 1")
    conn.execute("""
        CREATE TABLE IF NOT EXISTS images (
            id              INTEGER PRIMARY KEY DEFAULT nextval('images_id_seq'),
            file_path       VARCHAR NOT NULL UNIQUE,
            file_name       VARCHAR NOT NULL,
            directory_path  VARCHAR NOT NULL,
            file_size_bytes BIGINT,
            width           INTEGER,
            height          INTEGER,
            description     VARCHAR,
            contains_people BOOLEAN NOT NULL DEFAULT false,
            face_count      INTEGER NOT NULL DEFAULT 0,
            created_at      TIMESTAMP DEFAULT current_timestamp,
            processed_at    TIMESTAMP
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_images_directory ON images(directory_path)")

    # persons: version is bumped on every average update (optimistic locking).
    # No key constraint: list updates are rewritten as delete + insert.
    conn.execute("CREATE SEQUENCE IF NOT EXISTS persons_id_seq START 1")
    conn.execute("""
        CREATE TABLE IF NOT EXISTS persons (
            id                INTEGER NOT NULL,
            name              VARCHAR NOT NULL DEFAULT '',
            average_embedding FLOAT[],
            version           INTEGER NOT NULL DEFAULT 0,
            created_at        TIMESTAMP DEFAULT current_timestamp
        )
    """)

    # image_tags table (1:N relationship with images)
    conn.execute("CREATE SEQUENCE IF NOT EXISTS image_tags_id_seq START 1")
    conn.execute("""
        CREATE TABLE IF NOT EXISTS image_tags (
            id          INTEGER PRIMARY KEY DEFAULT nextval('image_tags_id_seq'),
            image_id    INTEGER NOT NULL,
            tag_name    VARCHAR NOT NULL,
            confidence  FLOAT NOT NULL,
            bbox_x      INTEGER NOT NULL,
            bbox_y      INTEGER NOT NULL,
            bbox_width  INTEGER NOT NULL,
            bbox_height INTEGER NOT NULL
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_tags_image_id ON image_tags(image_id)")

    # image_faces table; person_id is a plain reference, never owned by the face
    conn.execute("CREATE SEQUENCE IF NOT EXISTS image_faces_id_seq START 1")
    conn.execute("""
        CREATE TABLE IF NOT EXISTS image_faces (
            id          INTEGER PRIMARY KEY DEFAULT nextval('image_faces_id_seq'),
            image_id    INTEGER NOT NULL,
            person_id   INTEGER,
            bbox_x      INTEGER NOT NULL,
            bbox_y      INTEGER NOT NULL,
            bbox_width  INTEGER NOT NULL,
            bbox_height INTEGER NOT NULL,
            confidence  FLOAT NOT NULL,
            embedding   FLOAT[]
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_faces_image_id ON image_faces(image_id)")
