"""Reindex worker: drains the job queue through the indexing pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from reposcope.db.models import ReindexJob
from reposcope.db.queue import SqliteJobQueue
from reposcope.errors import OperationCancelled
from reposcope.ingest.pipeline import IndexingPipeline, IndexResult

logger = logging.getLogger(__name__)


@dataclass
class JobOutcome:
    job: ReindexJob
    result: IndexResult | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ReindexWorker:
    """Claim pending jobs one at a time and run a job-scoped reindex for each.

    A job whose run raises is marked failed with the error message stored on
    the row; the worker moves on to the next job. Cancellation marks the job
    failed and propagates.
    """

    def __init__(self, queue: SqliteJobQueue, pipeline: IndexingPipeline) -> None:
        self._queue = queue
        self._pipeline = pipeline

    def run_once(self) -> JobOutcome | None:
        """Process the oldest pending job; None when the queue is empty."""
        job = self._queue.claim_next()
        if job is None:
            return None
        if job.id is None:
            raise ValueError("claimed job has no queue id")

        logger.info(
            "Running reindex job %d for %s/%s (%d files)",
            job.id,
            job.owner,
            job.repo,
            len(job.changed_files),
        )
        try:
            result = self._pipeline.reindex_files(job.connection_id, job.changed_files)
        except OperationCancelled:
            self._queue.fail(job.id, "cancelled")
            raise
        except Exception as exc:  # the failure is recorded on the job row
            logger.exception("Reindex job %d failed", job.id)
            self._queue.fail(job.id, str(exc))
            return JobOutcome(job, error=str(exc))

        if result.failed:
            message = "; ".join(f"{r.file_path}: {r.error}" for r in result.failed)
            self._queue.fail(job.id, message)
            return JobOutcome(job, result, error=message)

        self._queue.complete(job.id)
        return JobOutcome(job, result)

    def run(self, max_jobs: int | None = None) -> list[JobOutcome]:
        """Process jobs until the queue is empty or *max_jobs* have run."""
        outcomes: list[JobOutcome] = []
        while max_jobs is None or len(outcomes) < max_jobs:
            outcome = self.run_once()
            if outcome is None:
                break
            outcomes.append(outcome)
        return outcomes
