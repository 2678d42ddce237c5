"""reposcope search / related: semantic code search over an indexed repository.

Usage:
  reposcope search acme/widgets "parse the webhook payload"
  reposcope search acme/widgets "retry logic" --type function --path "src/**"
  reposcope related acme/widgets --file src/queue.ts --lines 10-40
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.table import Table

from reposcope.cli.context import (
    build_embedder,
    console,
    load_cli_config,
    lookup_connection,
    open_repository,
    resolve_db_path,
)
from reposcope.cli.errors import err_embedding_failed, err_invalid_query
from reposcope.errors import EmbeddingProviderError, InvalidQueryError
from reposcope.search.schemas import SearchResponse
from reposcope.search.similarity import SemanticSearch


def search_cmd(
    connection: Annotated[str, typer.Argument(help="Connection id or owner/repo.")],
    query: Annotated[str, typer.Argument(help="What the code does, in plain words.")],
    limit: Annotated[
        Optional[int],
        typer.Option("--limit", "-n", help="Maximum results (default from config)."),
    ] = None,
    path: Annotated[
        Optional[str],
        typer.Option("--path", help='File path glob, e.g. "src/**/*.ts".'),
    ] = None,
    language: Annotated[
        Optional[str],
        typer.Option("--language", "-l", help='Language tag, e.g. "python".'),
    ] = None,
    symbol_type: Annotated[
        Optional[str],
        typer.Option("--type", "-t", help="function, class, method, import, block, …"),
    ] = None,
    min_score: Annotated[
        Optional[float],
        typer.Option("--min-score", help="Similarity threshold in [0, 1]."),
    ] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the raw JSON response.")] = False,
    db: Annotated[
        Optional[Path],
        typer.Option("--db", help="Path to .reposcope.db."),
    ] = None,
) -> None:
    """Find the chunks most similar to QUERY."""
    cfg = load_cli_config()
    params = {
        "query": query,
        "limit": limit if limit is not None else cfg.search.limit,
        "file_path_pattern": path,
        "language": language,
        "symbol_type": symbol_type,
        "min_score": min_score if min_score is not None else cfg.search.min_score,
    }
    conn, repo = open_repository(resolve_db_path(db, cfg), cfg)
    try:
        tracked = lookup_connection(repo, connection)
        searcher = SemanticSearch.from_config(cfg.search, repo, build_embedder(cfg))
        try:
            response = searcher.search(tracked.id, params)
        except InvalidQueryError as exc:
            console.print(err_invalid_query(str(exc)))
            raise typer.Exit(1)
        except EmbeddingProviderError as exc:
            console.print(err_embedding_failed(str(exc)))
            raise typer.Exit(1)
    finally:
        conn.close()

    _print_response(response, as_json)


def related_cmd(
    connection: Annotated[str, typer.Argument(help="Connection id or owner/repo.")],
    file: Annotated[
        Path,
        typer.Option("--file", "-f", help="File whose content to match."),
    ],
    lines: Annotated[
        Optional[str],
        typer.Option("--lines", help="Line range START-END (1-based, inclusive)."),
    ] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum results.")] = 5,
    as_json: Annotated[bool, typer.Option("--json", help="Print the raw JSON response.")] = False,
    db: Annotated[
        Optional[Path],
        typer.Option("--db", help="Path to .reposcope.db."),
    ] = None,
) -> None:
    """Find indexed code similar to a file or a slice of it."""
    if not file.is_file():
        console.print(err_invalid_query(f"File not found: '{file}'"))
        raise typer.Exit(1)
    content = _read_lines(file, lines)

    cfg = load_cli_config()
    conn, repo = open_repository(resolve_db_path(db, cfg), cfg)
    try:
        tracked = lookup_connection(repo, connection)
        searcher = SemanticSearch.from_config(cfg.search, repo, build_embedder(cfg))
        try:
            response = searcher.find_related(tracked.id, content, limit=limit)
        except InvalidQueryError as exc:
            console.print(err_invalid_query(str(exc)))
            raise typer.Exit(1)
        except EmbeddingProviderError as exc:
            console.print(err_embedding_failed(str(exc)))
            raise typer.Exit(1)
    finally:
        conn.close()

    _print_response(response, as_json)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _read_lines(file: Path, lines: str | None) -> str:
    text = file.read_text(encoding="utf-8", errors="replace")
    if not lines:
        return text
    start_s, _, end_s = lines.partition("-")
    try:
        start, end = int(start_s), int(end_s or start_s)
    except ValueError:
        console.print(err_invalid_query(f"--lines must look like 10-40, got '{lines}'"))
        raise typer.Exit(1)
    if start < 1 or end < start:
        console.print(err_invalid_query(f"Invalid line range '{lines}'"))
        raise typer.Exit(1)
    return "\n".join(text.split("\n")[start - 1 : end])


def _print_response(response: SearchResponse, as_json: bool) -> None:
    if as_json:
        typer.echo(response.model_dump_json(indent=2))
        return
    if not response.results:
        console.print("[yellow]No matching code found.[/]")
        return

    table = Table(title=f"{response.total_results} results for {response.query!r}")
    table.add_column("Score", justify="right")
    table.add_column("Location")
    table.add_column("Symbol")
    table.add_column("Type")
    for item in response.results:
        table.add_row(
            f"{item.score:.3f}",
            f"{item.file_path}:{item.start_line}-{item.end_line}",
            item.symbol_name or "[dim]-[/]",
            item.symbol_type,
        )
    console.print(table)
