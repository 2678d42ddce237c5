"""Per-model sqlite-vec virtual table management.

Each embedding model gets its own vec0 table so vectors of different
dimensionality never share an index. Rows are keyed by the code_chunks rowid,
partitioned by connection and tagged with the file language so KNN queries
can filter on both inside the index.
"""

from __future__ import annotations

import re
import sqlite3


def model_to_slug(model: str) -> str:
    """Convert a provider/model string to a valid table name suffix.

    Examples:
        "openai/text-embedding-3-small" -> "openai_text_embedding_3_small"
        "gemini/text-embedding-004" -> "gemini_text_embedding_004"
    """
    return re.sub(r"[^a-z0-9]", "_", model.lower())


def vec_table_name(model_slug: str) -> str:
    """Return the full vec table name for a model slug."""
    return f"vec_chunks_{model_slug}"


def ensure_vec_table(conn: sqlite3.Connection, model_slug: str, dimensions: int) -> str:
    """Create vec_chunks_{model_slug} if it doesn't already exist and return its name.

    Raises:
        ValueError: If the slug is not sanitized, *dimensions* is not positive,
            or the table already exists with a different dimensionality.
    """
    if not re.fullmatch(r"[a-z0-9_]+", model_slug):
        raise ValueError(
            f"Invalid model_slug '{model_slug}'; use model_to_slug() to sanitize."
        )
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    table = vec_table_name(model_slug)
    existing = conn.execute(
        "SELECT sql FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()

    if existing is None:
        conn.execute(
            f"CREATE VIRTUAL TABLE {table} USING vec0("
            "connection_id text partition key, "
            "language text, "
            f"embedding float[{dimensions}] distance_metric=cosine)"
        )
        conn.commit()
    else:
        found = re.search(r"float\[(\d+)\]", existing[0] or "")
        if found and int(found.group(1)) != dimensions:
            raise ValueError(
                f"Vector table '{table}' stores {found.group(1)}-dimensional vectors, "
                f"but {dimensions} were configured. Re-index with a new model name "
                "or fix embedding.dimensions."
            )

    return table


def list_vec_tables(conn: sqlite3.Connection) -> list[str]:
    """Return the names of every per-model vec table in the database."""
    return [
        r[0]
        for r in conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name LIKE 'vec_chunks_%' "
            "AND sql LIKE 'CREATE VIRTUAL TABLE%'"
        ).fetchall()
    ]
