"""reposcope webhook: feed a push-event JSON body to the reindex trigger.

Usage:
  reposcope webhook push.json
  cat push.json | reposcope webhook -
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer

from reposcope.cli.context import console, load_cli_config, open_repository, resolve_db_path
from reposcope.cli.errors import err_invalid_payload
from reposcope.db.queue import SqliteJobQueue
from reposcope.errors import InvalidPayloadError
from reposcope.webhook.push import handle_push_event


def webhook_cmd(
    payload: Annotated[str, typer.Argument(help="Push event JSON file, or - for stdin.")],
    db: Annotated[
        Optional[Path],
        typer.Option("--db", help="Path to .reposcope.db."),
    ] = None,
) -> None:
    """Queue a reindex job for a push to a tracked branch."""
    try:
        raw = sys.stdin.read() if payload == "-" else Path(payload).read_text(encoding="utf-8")
        body = json.loads(raw)
    except (OSError, json.JSONDecodeError) as exc:
        console.print(err_invalid_payload(payload, str(exc)))
        raise typer.Exit(1)

    cfg = load_cli_config()
    conn, repo = open_repository(resolve_db_path(db, cfg), cfg)
    try:
        try:
            scheduled = handle_push_event(body, SqliteJobQueue(conn), repo)
        except InvalidPayloadError as exc:
            console.print(err_invalid_payload(payload, str(exc)))
            raise typer.Exit(1)
    finally:
        conn.close()

    if scheduled:
        console.print("[green]✓[/] Reindex job queued.  Run:  reposcope worker")
    else:
        console.print("[dim]Push ignored (untracked repository or branch).[/]")
