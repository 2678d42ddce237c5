"""reposcope database layer."""

from reposcope.db.connection import Database, open_db
from reposcope.db.migrations import MIGRATIONS, run_migrations
from reposcope.db.queue import SqliteJobQueue
from reposcope.db.repository import IndexRepository
from reposcope.db.vectors import ensure_vec_table, model_to_slug, vec_table_name

__all__ = [
    "Database",
    "open_db",
    "run_migrations",
    "MIGRATIONS",
    "IndexRepository",
    "SqliteJobQueue",
    "ensure_vec_table",
    "model_to_slug",
    "vec_table_name",
]
