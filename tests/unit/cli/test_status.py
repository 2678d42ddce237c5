"""Tests for reposcope status and the top-level app."""

from __future__ import annotations

from typer.testing import CliRunner

from reposcope.cli.main import app

runner = CliRunner()


# ---------------------------------------------------------------------------
# reposcope --version
# ---------------------------------------------------------------------------


def test_version_flag_exits_zero() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "reposcope" in result.output.lower()


def test_version_command() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.output.startswith("reposcope ")


def test_help_lists_commands() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for name in ("connect", "index", "search", "related", "webhook", "worker", "status"):
        assert name in result.output


# ---------------------------------------------------------------------------
# reposcope status
# ---------------------------------------------------------------------------


def test_status_without_db(tmp_path, cli_cfg) -> None:
    result = runner.invoke(app, ["status", "--db", str(tmp_path / "missing.db")])
    assert result.exit_code == 0
    assert "No database found." in result.output


def test_status_lists_connections(checkout_dir, db_path) -> None:
    runner.invoke(app, ["connect", "acme/widgets", "--path", str(checkout_dir), "--db", str(db_path)])

    result = runner.invoke(app, ["status", "--db", str(db_path)])

    assert result.exit_code == 0, result.output
    assert "acme/widgets" in result.output
    assert "pending" in result.output
    assert "Pending jobs:     0" in result.output


def test_status_empty_db(db_path) -> None:
    runner.invoke(app, ["init", str(db_path.parent), "--global-config", str(db_path.parent / "g.yaml")])
    result = runner.invoke(app, ["status", "--db", str(db_path)])
    assert result.exit_code == 0
    assert "No repositories connected." in result.output
