"""SQLite connection layer with the sqlite-vec extension loaded."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec

from reposcope.db.migrations import run_migrations

# The webhook command and the worker may hold the same file open.
_BUSY_TIMEOUT_MS = 5000


class Database:
    """One reposcope index file: chunks, vectors, connections and the job queue.

    Usable as a context manager that closes the connection on exit.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Open the file (creating parent directories) with sqlite-vec loaded.

        Rows come back as ``sqlite3.Row``; foreign keys and WAL are on.
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, timeout=_BUSY_TIMEOUT_MS / 1000)
        conn.row_factory = sqlite3.Row
        conn.enable_load_extension(True)
        try:
            sqlite_vec.load(conn)
        finally:
            conn.enable_load_extension(False)
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute(f"PRAGMA busy_timeout = {_BUSY_TIMEOUT_MS}")
        return conn

    def __enter__(self) -> sqlite3.Connection:
        self._conn = open_db(self.db_path)
        return self._conn

    def __exit__(self, *args: object) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


def open_db(db_path: Path | str) -> sqlite3.Connection:
    """Open (or create) the index at *db_path* and apply pending migrations."""
    conn = Database(db_path).connect()
    run_migrations(conn)
    return conn
