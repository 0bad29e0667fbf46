"""Tests for DuckDB schema creation."""

import duckdb

from offline_gallery.manager.schema import ensure_schema

TABLES = {"images", "image_tags", "image_faces", "persons"}


def _table_names(conn) -> set[str]:
    rows = conn.execute(
        "SELECT table_name FROM information_schema.tables WHERE table_schema = 'main'"
    ).fetchall()
    return {row[0] for row in rows}


def test_ensure_schema_creates_tables(db_conn):
    assert TABLES <= _table_names(db_conn)


def test_persons_have_version_column(db_conn):
    columns = db_conn.execute(
        "SELECT column_name FROM information_schema.columns WHERE table_name = 'persons'"
    ).fetchall()
    assert {"id", "name", "average_embedding", "version"} <= {row[0] for row in columns}


def test_ensure_schema_idempotent():
    conn = duckdb.connect(":memory:")
    ensure_schema(conn)
    ensure_schema(conn)  # Should not raise
    assert TABLES <= _table_names(conn)
    conn.close()
