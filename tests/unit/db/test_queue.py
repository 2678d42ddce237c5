"""Tests for the SQLite reindex job queue."""

from __future__ import annotations

from reposcope.db.connection import open_db
from reposcope.db.models import ReindexJob
from reposcope.db.queue import SqliteJobQueue


def _job(files: list[str] | None = None) -> ReindexJob:
    return ReindexJob(
        connection_id="c1",
        project_id="p1",
        owner="acme",
        repo="widgets",
        branch="main",
        changed_files=files or ["a.ts"],
    )


def test_enqueue_assigns_id_and_pending(tmp_db):
    queue = SqliteJobQueue(tmp_db)
    job = _job()
    job_id = queue.enqueue(job)
    assert job.id == job_id
    assert queue.get(job_id).status == "pending"
    assert queue.pending_count() == 1


def test_changed_files_round_trip_in_order(tmp_db):
    queue = SqliteJobQueue(tmp_db)
    job_id = queue.enqueue(_job(["b.ts", "a.ts"]))
    assert queue.get(job_id).changed_files == ["b.ts", "a.ts"]


def test_claim_next_is_fifo_and_marks_running(tmp_db):
    queue = SqliteJobQueue(tmp_db)
    first = queue.enqueue(_job(["1.ts"]))
    queue.enqueue(_job(["2.ts"]))
    claimed = queue.claim_next()
    assert claimed.id == first
    assert claimed.status == "running"
    assert queue.get(first).status == "running"
    assert queue.pending_count() == 1


def test_claim_next_empty_returns_none(tmp_db):
    assert SqliteJobQueue(tmp_db).claim_next() is None


def test_complete_and_fail_record_outcome(tmp_db):
    queue = SqliteJobQueue(tmp_db)
    ok = queue.enqueue(_job())
    bad = queue.enqueue(_job())
    queue.complete(ok)
    queue.fail(bad, "boom")
    assert queue.get(ok).status == "done"
    failed = queue.get(bad)
    assert failed.status == "failed"
    assert failed.error == "boom"


class _SlowReader(SqliteJobQueue):
    """Lets *rival* claim a job between this queue's read and its update."""

    def __init__(self, conn, rival):
        super().__init__(conn)
        self._rival = rival
        self.rival_claims = []

    def _oldest_pending(self):
        row = super()._oldest_pending()
        if not self.rival_claims:
            self.rival_claims.append(self._rival.claim_next())
        return row


def test_two_workers_never_claim_the_same_job(tmp_db, tmp_path):
    other = open_db(tmp_path / ".reposcope.db")
    try:
        first = SqliteJobQueue(tmp_db).enqueue(_job(["1.ts"]))
        second = SqliteJobQueue(tmp_db).enqueue(_job(["2.ts"]))
        queue = _SlowReader(tmp_db, SqliteJobQueue(other))

        claimed = queue.claim_next()

        assert queue.rival_claims[0].id == first
        assert claimed.id == second
        assert queue.claim_next() is None
    finally:
        other.close()


def test_claim_skips_job_already_running(tmp_db):
    queue = SqliteJobQueue(tmp_db)
    job_id = queue.enqueue(_job())
    queue.claim_next()
    assert queue._mark_running(job_id) is False
