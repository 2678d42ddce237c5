"""Shared setup for CLI commands: config, database, embedder, connection lookup."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import typer
from rich.console import Console

from reposcope.cli.errors import (
    err_config,
    err_connection_not_found,
    err_dimension_mismatch,
    err_no_api_key,
    err_no_db,
)
from reposcope.config import ReposcopeConfig, load_config
from reposcope.db.connection import open_db
from reposcope.db.models import TrackedConnection
from reposcope.db.repository import IndexRepository
from reposcope.db.vectors import ensure_vec_table, model_to_slug
from reposcope.errors import ConfigError
from reposcope.ingest.embedding_client import EmbeddingClient

console = Console()


def load_cli_config() -> ReposcopeConfig:
    try:
        return load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)


def resolve_db_path(db: Path | None, cfg: ReposcopeConfig) -> Path:
    return db if db is not None else Path(cfg.db_path)


def open_repository(
    db_path: Path, cfg: ReposcopeConfig, *, create: bool = False
) -> tuple[sqlite3.Connection, IndexRepository]:
    """Open the database plus the vec table of the configured model."""
    if not create and not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)
    conn = open_db(db_path)
    try:
        vec_table = ensure_vec_table(
            conn, model_to_slug(cfg.embedding.model), cfg.embedding.dimensions
        )
    except ValueError as exc:
        conn.close()
        console.print(err_dimension_mismatch(str(exc)))
        raise typer.Exit(1)
    return conn, IndexRepository(conn, vec_table)


def build_embedder(cfg: ReposcopeConfig) -> EmbeddingClient:
    try:
        return EmbeddingClient.from_config(cfg.embedding)
    except EnvironmentError:
        console.print(err_no_api_key(cfg.embedding.model))
        raise typer.Exit(1)


def lookup_connection(repo: IndexRepository, ident: str) -> TrackedConnection:
    """Find a connection by id or by ``owner/repo``."""
    connection = repo.get_connection(ident) or repo.resolve_connection(ident)
    if connection is None:
        console.print(err_connection_not_found(ident))
        raise typer.Exit(1)
    return connection
