"""Repository pattern for all reposcope index operations.

Single interface for: tracked connections, indexed files, code chunks and the
per-model vec table. This is the vector store the search and indexing
pipelines talk to; the connection is owned by the caller.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from collections.abc import Sequence

from reposcope.db.models import CodeChunk, IndexedFile, SearchCandidate, TrackedConnection
from reposcope.db.vectors import list_vec_tables

# sqlite-vec rejects KNN queries with k above this.
MAX_KNN_K = 4096


class IndexRepository:
    """Data access layer for connections, files, chunks and embeddings.

    Args:
        conn: An open sqlite3.Connection with sqlite-vec loaded and migrations
            applied (see reposcope.db.connection.open_db).
        vec_table: Name of the vec table for the active embedding model
            (see reposcope.db.vectors.ensure_vec_table). Required for any
            operation that reads or writes vectors.
    """

    def __init__(self, conn: sqlite3.Connection, vec_table: str | None = None) -> None:
        self._conn = conn
        self._vec_table = vec_table

    @property
    def vec_table(self) -> str:
        if self._vec_table is None:
            raise RuntimeError(
                "IndexRepository was opened without a vec table; "
                "call ensure_vec_table() and pass its name."
            )
        return self._vec_table

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def add_connection(
        self,
        full_name: str,
        branch: str,
        root_path: str,
        project_id: str = "",
        connection_id: str | None = None,
    ) -> TrackedConnection:
        """Register a repository for indexing and return the stored row."""
        cid = connection_id or str(uuid.uuid4())
        self._conn.execute(
            """
            INSERT INTO connections (id, project_id, full_name, branch, root_path)
            VALUES (?, ?, ?, ?, ?)
            """,
            (cid, project_id or cid, full_name, branch, root_path),
        )
        self._conn.commit()
        return self.get_connection(cid)  # type: ignore[return-value]

    def get_connection(self, connection_id: str) -> TrackedConnection | None:
        row = self._conn.execute(
            f"SELECT {_CONNECTION_COLS} FROM connections WHERE id = ?", (connection_id,)
        ).fetchone()
        return _row_to_connection(row) if row else None

    def list_connections(self) -> list[TrackedConnection]:
        rows = self._conn.execute(
            f"SELECT {_CONNECTION_COLS} FROM connections ORDER BY created_at"
        ).fetchall()
        return [_row_to_connection(r) for r in rows]

    def resolve_connection(self, full_name: str) -> TrackedConnection | None:
        """Map a repository ``owner/repo`` name to its tracked connection.

        Matching is case-insensitive, as repository hosts treat names that way.
        """
        row = self._conn.execute(
            f"SELECT {_CONNECTION_COLS} FROM connections WHERE lower(full_name) = lower(?)",
            (full_name,),
        ).fetchone()
        return _row_to_connection(row) if row else None

    def update_connection_status(
        self,
        connection_id: str,
        status: str,
        *,
        last_indexed_commit: str | None = None,
        file_count: int | None = None,
    ) -> None:
        """Set the indexing status; optional fields are only written when given."""
        self._conn.execute(
            """
            UPDATE connections SET
                status = ?,
                last_indexed_commit = COALESCE(?, last_indexed_commit),
                file_count = COALESCE(?, file_count)
            WHERE id = ?
            """,
            (status, last_indexed_commit, file_count, connection_id),
        )
        self._conn.commit()

    def delete_connection(self, connection_id: str) -> None:
        """Delete a connection with all its files, chunks and vectors."""
        for f in self.get_indexed_files(connection_id):
            self._delete_vectors_for_file(f.id)
        self._conn.execute("DELETE FROM connections WHERE id = ?", (connection_id,))
        self._conn.commit()

    # ------------------------------------------------------------------
    # Indexed files
    # ------------------------------------------------------------------

    def get_indexed_files(self, connection_id: str) -> list[IndexedFile]:
        rows = self._conn.execute(
            f"SELECT {_FILE_COLS} FROM indexed_files WHERE connection_id = ? ORDER BY file_path",
            (connection_id,),
        ).fetchall()
        return [_row_to_file(r) for r in rows]

    def get_indexed_file(self, connection_id: str, file_path: str) -> IndexedFile | None:
        row = self._conn.execute(
            f"SELECT {_FILE_COLS} FROM indexed_files WHERE connection_id = ? AND file_path = ?",
            (connection_id, file_path),
        ).fetchone()
        return _row_to_file(row) if row else None

    def upsert_indexed_file(
        self,
        connection_id: str,
        file_path: str,
        language: str | None,
        file_hash: str,
    ) -> IndexedFile:
        """Insert or update the file row; an existing row keeps its id."""
        self._conn.execute(
            """
            INSERT INTO indexed_files (id, connection_id, file_path, language, file_hash)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(connection_id, file_path) DO UPDATE SET
                language = excluded.language,
                file_hash = excluded.file_hash,
                indexed_at = datetime('now')
            """,
            (str(uuid.uuid4()), connection_id, file_path, language, file_hash),
        )
        self._conn.commit()
        return self.get_indexed_file(connection_id, file_path)  # type: ignore[return-value]

    def delete_indexed_file(self, file_id: str) -> None:
        """Delete a file row together with its chunks and vectors."""
        self._delete_vectors_for_file(file_id)
        self._conn.execute("DELETE FROM code_chunks WHERE file_id = ?", (file_id,))
        self._conn.execute("DELETE FROM indexed_files WHERE id = ?", (file_id,))
        self._conn.commit()

    # ------------------------------------------------------------------
    # Chunks + vectors
    # ------------------------------------------------------------------

    def replace_chunks(
        self,
        indexed_file: IndexedFile,
        chunks: Sequence[CodeChunk],
        embeddings: Sequence[list[float]],
    ) -> list[int]:
        """Atomically swap the stored chunks of *indexed_file* for *chunks*.

        ``chunks[i]`` is stored with ``embeddings[i]``; the lengths must match.
        Returns the new chunk rowids in input order.
        """
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"Got {len(chunks)} chunks but {len(embeddings)} embeddings for "
                f"{indexed_file.file_path}"
            )
        table = self.vec_table
        rowids: list[int] = []
        with self._conn:
            self._delete_vectors_for_file(indexed_file.id)
            self._conn.execute("DELETE FROM code_chunks WHERE file_id = ?", (indexed_file.id,))
            for chunk, embedding in zip(chunks, embeddings):
                cur = self._conn.execute(
                    """
                    INSERT INTO code_chunks (file_id, chunk_type, name, start_line, end_line, content)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        indexed_file.id,
                        chunk.chunk_type,
                        chunk.name,
                        chunk.start_line,
                        chunk.end_line,
                        chunk.content,
                    ),
                )
                rowid = cur.lastrowid
                self._conn.execute(
                    f"INSERT INTO {table}(rowid, connection_id, language, embedding) "
                    "VALUES (?, ?, ?, ?)",
                    (
                        rowid,
                        indexed_file.connection_id,
                        indexed_file.language or "",
                        json.dumps(embedding),
                    ),
                )
                chunk.rowid = rowid
                chunk.file_id = indexed_file.id
                chunk.file_path = indexed_file.file_path
                rowids.append(rowid)
        return rowids

    def get_chunks_for_file(self, file_id: str) -> list[CodeChunk]:
        rows = self._conn.execute(
            f"""
            SELECT {_CHUNK_COLS} FROM code_chunks c
            JOIN indexed_files f ON f.id = c.file_id
            WHERE c.file_id = ? ORDER BY c.start_line, c.rowid
            """,
            (file_id,),
        ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def count_chunks(self, connection_id: str) -> int:
        return self._conn.execute(
            """
            SELECT COUNT(*) FROM code_chunks c
            JOIN indexed_files f ON f.id = c.file_id
            WHERE f.connection_id = ?
            """,
            (connection_id,),
        ).fetchone()[0]

    def search_by_embedding(
        self,
        connection_id: str,
        embedding: list[float],
        limit: int,
        language: str | None = None,
    ) -> list[SearchCandidate]:
        """Cosine nearest-neighbour search within one connection, best first.

        The language filter is applied inside the vec index, before the top
        *limit* rows are cut. *limit* is capped at ``MAX_KNN_K``. Score is
        ``1 - cosine distance`` clamped to [0, 1].
        """
        if limit < 1:
            return []
        filters = "AND connection_id = ?"
        params: list[object] = [json.dumps(embedding), min(limit, MAX_KNN_K), connection_id]
        if language:
            filters += " AND language = ?"
            params.append(language)

        rows = self._conn.execute(
            f"""
            WITH knn AS (
                SELECT rowid, distance FROM {self.vec_table}
                WHERE embedding MATCH ? AND k = ? {filters}
            )
            SELECT {_CHUNK_COLS}, f.language AS language, knn.distance AS distance
            FROM knn
            JOIN code_chunks c ON c.rowid = knn.rowid
            JOIN indexed_files f ON f.id = c.file_id
            ORDER BY knn.distance
            """,
            params,
        ).fetchall()

        return [
            SearchCandidate(
                file_path=r["file_path"],
                chunk=_row_to_chunk(r),
                score=_distance_to_score(r["distance"]),
                language=r["language"],
            )
            for r in rows
        ]

    def _delete_vectors_for_file(self, file_id: str) -> int:
        """Delete vec rows of *file_id* from every model table; returns rows removed."""
        rowids = [
            r[0]
            for r in self._conn.execute(
                "SELECT rowid FROM code_chunks WHERE file_id = ?", (file_id,)
            ).fetchall()
        ]
        if not rowids:
            return 0
        placeholders = ",".join("?" * len(rowids))
        total = 0
        for table in list_vec_tables(self._conn):
            cur = self._conn.execute(
                f"DELETE FROM [{table}] WHERE rowid IN ({placeholders})",  # noqa: S608
                rowids,
            )
            total += max(cur.rowcount, 0)
        return total


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

_CONNECTION_COLS = (
    "id, project_id, full_name, branch, root_path, status, "
    "last_indexed_commit, file_count, created_at"
)
_FILE_COLS = "id, connection_id, file_path, language, file_hash, indexed_at"
_CHUNK_COLS = (
    "c.rowid AS rowid, c.file_id AS file_id, f.file_path AS file_path, "
    "c.chunk_type AS chunk_type, c.name AS name, c.start_line AS start_line, "
    "c.end_line AS end_line, c.content AS content"
)


def _distance_to_score(distance: float) -> float:
    return min(1.0, max(0.0, 1.0 - float(distance)))


def _row_to_connection(row: sqlite3.Row) -> TrackedConnection:
    return TrackedConnection(
        id=row["id"],
        project_id=row["project_id"],
        full_name=row["full_name"],
        branch=row["branch"],
        root_path=row["root_path"],
        status=row["status"],
        last_indexed_commit=row["last_indexed_commit"],
        file_count=row["file_count"],
        created_at=row["created_at"],
    )


def _row_to_file(row: sqlite3.Row) -> IndexedFile:
    return IndexedFile(
        id=row["id"],
        connection_id=row["connection_id"],
        file_path=row["file_path"],
        language=row["language"],
        file_hash=row["file_hash"],
        indexed_at=row["indexed_at"],
    )


def _row_to_chunk(row: sqlite3.Row) -> CodeChunk:
    return CodeChunk(
        rowid=row["rowid"],
        file_id=row["file_id"],
        file_path=row["file_path"],
        chunk_type=row["chunk_type"],
        name=row["name"],
        start_line=row["start_line"],
        end_line=row["end_line"],
        content=row["content"],
    )
