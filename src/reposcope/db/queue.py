"""SQLite-backed reindex job queue.

The push handler only needs ``enqueue``; the worker side claims jobs one at a
time in FIFO order and records the outcome on the row.
"""

from __future__ import annotations

import json
import sqlite3

from reposcope.db.models import ReindexJob


class SqliteJobQueue:
    """FIFO queue of :class:`ReindexJob` rows in the ``reindex_jobs`` table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def enqueue(self, job: ReindexJob) -> int:
        """Persist *job* as pending and return its queue id."""
        cur = self._conn.execute(
            """
            INSERT INTO reindex_jobs (connection_id, project_id, owner, repo, branch, changed_files)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                job.connection_id,
                job.project_id,
                job.owner,
                job.repo,
                job.branch,
                job.changed_files_json(),
            ),
        )
        self._conn.commit()
        job.id = cur.lastrowid
        job.status = "pending"
        return job.id

    def claim_next(self) -> ReindexJob | None:
        """Mark the oldest pending job as running and return it, or None if idle.

        Several workers may share the file; a job another worker claimed
        between our read and our update is skipped and the next one tried.
        """
        while True:
            row = self._oldest_pending()
            if row is None:
                return None
            if self._mark_running(row["id"]):
                job = _row_to_job(row)
                job.status = "running"
                return job

    def _oldest_pending(self) -> sqlite3.Row | None:
        # fetchall steps the statement to completion so no read snapshot stays open.
        rows = self._conn.execute(
            f"SELECT {_JOB_COLS} FROM reindex_jobs WHERE status = 'pending' "
            "ORDER BY id LIMIT 1"
        ).fetchall()
        return rows[0] if rows else None

    def _mark_running(self, job_id: int) -> bool:
        with self._conn:
            cur = self._conn.execute(
                "UPDATE reindex_jobs SET status = 'running', updated_at = datetime('now') "
                "WHERE id = ? AND status = 'pending'",
                (job_id,),
            )
        return cur.rowcount == 1

    def complete(self, job_id: int) -> None:
        self._set_status(job_id, "done", None)

    def fail(self, job_id: int, error: str) -> None:
        self._set_status(job_id, "failed", error)

    def get(self, job_id: int) -> ReindexJob | None:
        row = self._conn.execute(
            f"SELECT {_JOB_COLS} FROM reindex_jobs WHERE id = ?", (job_id,)
        ).fetchone()
        return _row_to_job(row) if row else None

    def pending_count(self) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM reindex_jobs WHERE status = 'pending'"
        ).fetchone()[0]

    def _set_status(self, job_id: int, status: str, error: str | None) -> None:
        self._conn.execute(
            "UPDATE reindex_jobs SET status = ?, error = ?, updated_at = datetime('now') "
            "WHERE id = ?",
            (status, error, job_id),
        )
        self._conn.commit()


_JOB_COLS = "id, connection_id, project_id, owner, repo, branch, changed_files, status, error"


def _row_to_job(row: sqlite3.Row) -> ReindexJob:
    return ReindexJob(
        id=row["id"],
        connection_id=row["connection_id"],
        project_id=row["project_id"],
        owner=row["owner"],
        repo=row["repo"],
        branch=row["branch"],
        changed_files=json.loads(row["changed_files"]),
        status=row["status"],
        error=row["error"],
    )
