"""reposcope status: tracked repositories, index sizes and queue depth."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.panel import Panel
from rich.table import Table

from reposcope.cli.context import console, load_cli_config, open_repository, resolve_db_path
from reposcope.db.queue import SqliteJobQueue

_STATUS_STYLE = {
    "completed": "green",
    "indexing": "cyan",
    "failed": "red",
    "pending": "yellow",
}


def status_cmd(
    db: Annotated[
        Optional[Path],
        typer.Option("--db", help="Path to .reposcope.db."),
    ] = None,
) -> None:
    """Show tracked repositories and pending reindex jobs."""
    cfg = load_cli_config()
    db_path = resolve_db_path(db, cfg)
    if not db_path.exists():
        console.print(
            Panel(
                "[yellow]No database found.[/]\n"
                "  Run:  reposcope connect owner/repo --path <checkout>",
                title="[bold]reposcope[/]",
                expand=False,
            )
        )
        return

    conn, repo = open_repository(db_path, cfg)
    try:
        connections = repo.list_connections()
        rows = [(c, repo.count_chunks(c.id)) for c in connections]
        pending = SqliteJobQueue(conn).pending_count()
    finally:
        conn.close()

    console.print(
        Panel(
            f"Database:         {db_path}\n"
            f"Embedding model:  {cfg.embedding.model} ({cfg.embedding.dimensions} dims)\n"
            f"Pending jobs:     {pending}",
            title="[bold]reposcope[/]",
            expand=False,
        )
    )
    if not rows:
        console.print("[dim]No repositories connected.[/]")
        return

    table = Table(title="Connections")
    table.add_column("Repository")
    table.add_column("Branch")
    table.add_column("Status")
    table.add_column("Files", justify="right")
    table.add_column("Chunks", justify="right")
    table.add_column("Last commit")
    table.add_column("Id", style="dim")
    for c, chunk_count in rows:
        style = _STATUS_STYLE.get(c.status, "white")
        table.add_row(
            c.full_name,
            c.branch,
            f"[{style}]{c.status}[/]",
            str(c.file_count),
            str(chunk_count),
            (c.last_indexed_commit or "-")[:12],
            c.id,
        )
    console.print(table)
