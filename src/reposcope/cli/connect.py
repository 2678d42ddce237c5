"""reposcope connect: start tracking a repository checkout.

Usage:
  reposcope connect acme/widgets --path ./widgets
  reposcope connect acme/widgets --path ./widgets --branch develop
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated, Optional

import typer

from reposcope.cli.context import console, load_cli_config, open_repository, resolve_db_path
from reposcope.cli.errors import err_bad_full_name, err_checkout_missing, err_duplicate_connection


def connect_cmd(
    full_name: Annotated[str, typer.Argument(help="Repository as owner/repo.")],
    path: Annotated[
        Path,
        typer.Option("--path", "-p", help="Local checkout of the repository."),
    ],
    branch: Annotated[
        str,
        typer.Option("--branch", "-b", help="Branch whose pushes trigger reindexing."),
    ] = "main",
    project_id: Annotated[
        Optional[str],
        typer.Option("--project-id", help="Owning project id (defaults to the connection id)."),
    ] = None,
    db: Annotated[
        Optional[Path],
        typer.Option("--db", help="Path to .reposcope.db (created if missing)."),
    ] = None,
) -> None:
    """Track a repository so it can be indexed and searched."""
    owner, _, repo_name = full_name.partition("/")
    if not owner or not repo_name or "/" in repo_name:
        console.print(err_bad_full_name(full_name))
        raise typer.Exit(1)
    if not path.is_dir():
        console.print(err_checkout_missing(str(path)))
        raise typer.Exit(1)

    cfg = load_cli_config()
    conn, repo = open_repository(resolve_db_path(db, cfg), cfg, create=True)
    try:
        try:
            connection = repo.add_connection(
                full_name, branch, str(path.resolve()), project_id=project_id or ""
            )
        except sqlite3.IntegrityError:
            console.print(err_duplicate_connection(full_name))
            raise typer.Exit(1)
    finally:
        conn.close()

    console.print(f"[green]✓[/] Connected [bold]{connection.full_name}[/] ({connection.branch})")
    console.print(f"  id: {connection.id}")
    console.print(f"\nNext:  reposcope index {connection.full_name}")
