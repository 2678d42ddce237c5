"""Tests for the forward-only migration runner."""

from __future__ import annotations

from reposcope.db.connection import Database
from reposcope.db.migrations import CURRENT_VERSION, MIGRATIONS, run_migrations


def _fresh_conn(tmp_path):
    """Open a new connection without running migrations."""
    return Database(tmp_path / "test.db").connect()


def _table_exists(conn, name: str) -> bool:
    return conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (name,)
    ).fetchone() is not None


# --- Bootstrap ---

def test_run_migrations_creates_schema_version(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert _table_exists(conn, "schema_version")
    conn.close()


def test_run_migrations_records_version(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    version = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()[0]
    assert version == CURRENT_VERSION == MIGRATIONS[-1][0]
    conn.close()


def test_run_migrations_creates_index_tables(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    for table in ("connections", "indexed_files", "code_chunks", "reindex_jobs"):
        assert _table_exists(conn, table), table
    conn.close()


# --- Idempotency ---

def test_run_migrations_idempotent(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    run_migrations(conn)
    count = conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    assert count == len(MIGRATIONS)
    conn.close()


# --- Connection pragmas ---

def test_connect_enables_foreign_keys(tmp_path):
    conn = _fresh_conn(tmp_path)
    assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
    conn.close()


def test_connect_loads_sqlite_vec(tmp_path):
    conn = _fresh_conn(tmp_path)
    version = conn.execute("SELECT vec_version()").fetchone()[0]
    assert version.startswith("v")
    conn.close()


def test_database_context_manager_closes(tmp_path):
    db = Database(tmp_path / "ctx.db")
    with db as conn:
        conn.execute("SELECT 1")
    assert db._conn is None


def test_context_manager_applies_migrations(tmp_path):
    with Database(tmp_path / "ctx.db") as conn:
        assert _table_exists(conn, "reindex_jobs")


def test_connect_creates_parent_directories(tmp_path):
    conn = Database(tmp_path / "nested" / "dir" / "index.db").connect()
    conn.close()
    assert (tmp_path / "nested" / "dir" / "index.db").exists()
