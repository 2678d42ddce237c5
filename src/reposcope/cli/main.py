"""reposcope CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from reposcope.cli.connect import connect_cmd
from reposcope.cli.index import index_cmd
from reposcope.cli.init import init_cmd
from reposcope.cli.search import related_cmd, search_cmd
from reposcope.cli.status import status_cmd
from reposcope.cli.webhook import webhook_cmd
from reposcope.cli.worker import worker_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("reposcope")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"reposcope {_installed_version()}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # litellm and httpx are chatty at INFO
    for noisy in ("LiteLLM", "litellm", "httpx"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


app = typer.Typer(
    name="reposcope",
    help=(
        "reposcope: semantic search over code repositories.\n\n"
        "  reposcope connect  Track a repository checkout.\n"
        "  reposcope index    Chunk, embed and store changed files.\n"
        "  reposcope search   Find code by what it does."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log progress at INFO level."),
    ] = False,
) -> None:
    """reposcope: semantic search over code repositories."""
    _configure_logging(verbose)


app.command("init")(init_cmd)
app.command("connect")(connect_cmd)
app.command("index")(index_cmd)
app.command("search")(search_cmd)
app.command("related")(related_cmd)
app.command("webhook")(webhook_cmd)
app.command("worker")(worker_cmd)
app.command("status")(status_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed reposcope version."""
    typer.echo(f"reposcope {_installed_version()}")


if __name__ == "__main__":
    app()
