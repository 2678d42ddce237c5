"""reposcope index: bring a connection's index up to date with its checkout."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.progress import Progress, SpinnerColumn, TextColumn

from reposcope.cli.context import (
    build_embedder,
    console,
    load_cli_config,
    lookup_connection,
    open_repository,
    resolve_db_path,
)
from reposcope.cli.errors import err_checkout_missing
from reposcope.ingest.checkout import DiffResult
from reposcope.ingest.pipeline import IndexingPipeline


def index_cmd(
    connection: Annotated[str, typer.Argument(help="Connection id or owner/repo.")],
    db: Annotated[
        Optional[Path],
        typer.Option("--db", help="Path to .reposcope.db."),
    ] = None,
) -> None:
    """Chunk, embed and store every new or changed file; drop deleted ones."""
    cfg = load_cli_config()
    conn, repo = open_repository(resolve_db_path(db, cfg), cfg)
    try:
        tracked = lookup_connection(repo, connection)
        pipeline = IndexingPipeline.from_config(cfg, repo, build_embedder(cfg))
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console,
        ) as prog:
            prog.add_task(f"Indexing {tracked.full_name}…", total=None)
            try:
                result = pipeline.index(tracked.id)
            except FileNotFoundError:
                console.print(err_checkout_missing(tracked.root_path))
                raise typer.Exit(1)
    finally:
        conn.close()

    diff = result.diff or DiffResult()
    console.print(
        f"[bold]{tracked.full_name}[/]: "
        f"{len(diff.to_add)} added, {len(diff.to_update)} updated, "
        f"{result.deleted} deleted, {diff.unchanged} unchanged"
    )
    chunks = sum(r.chunks_created for r in result.processed)
    console.print(f"  [green]✓[/] {chunks} chunks stored")
    for failed in result.failed:
        console.print(f"  [red]✗[/] {failed.file_path}: {failed.error}")
    if result.failed:
        raise typer.Exit(1)
