"""reposcope worker: run queued reindex jobs."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer

from reposcope.cli.context import (
    build_embedder,
    console,
    load_cli_config,
    open_repository,
    resolve_db_path,
)
from reposcope.db.queue import SqliteJobQueue
from reposcope.ingest.pipeline import IndexingPipeline
from reposcope.webhook.worker import ReindexWorker


def worker_cmd(
    max_jobs: Annotated[
        Optional[int],
        typer.Option("--max-jobs", min=1, help="Stop after this many jobs."),
    ] = None,
    db: Annotated[
        Optional[Path],
        typer.Option("--db", help="Path to .reposcope.db."),
    ] = None,
) -> None:
    """Drain the reindex queue, oldest job first."""
    cfg = load_cli_config()
    conn, repo = open_repository(resolve_db_path(db, cfg), cfg)
    try:
        queue = SqliteJobQueue(conn)
        if queue.pending_count() == 0:
            console.print("[dim]No pending reindex jobs.[/]")
            return
        pipeline = IndexingPipeline.from_config(cfg, repo, build_embedder(cfg))
        outcomes = ReindexWorker(queue, pipeline).run(max_jobs=max_jobs)
    finally:
        conn.close()

    for outcome in outcomes:
        job = outcome.job
        label = f"job {job.id} {job.owner}/{job.repo}@{job.branch}"
        if outcome.ok:
            processed = len(outcome.result.processed) if outcome.result else 0
            console.print(f"  [green]✓[/] {label}: {processed} files reindexed")
        else:
            console.print(f"  [red]✗[/] {label}: {outcome.error}")
    if any(not o.ok for o in outcomes):
        raise typer.Exit(1)
