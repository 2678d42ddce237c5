"""CLI fixtures: a 4-dim config and the keyword embedder, no network."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

import reposcope.cli.connect as connect_mod
import reposcope.cli.index as index_mod
import reposcope.cli.search as search_mod
import reposcope.cli.status as status_mod
import reposcope.cli.webhook as webhook_mod
import reposcope.cli.worker as worker_mod
from reposcope.config import ReposcopeConfig


@pytest.fixture
def cli_cfg(monkeypatch, tmp_path, embedder) -> ReposcopeConfig:
    monkeypatch.setenv("COLUMNS", "200")
    cfg = ReposcopeConfig(db_path=str(tmp_path / ".reposcope.db"))
    cfg.embedding.model = "test/keyword"
    cfg.embedding.dimensions = 4
    for mod in (connect_mod, index_mod, search_mod, status_mod, webhook_mod, worker_mod):
        monkeypatch.setattr(mod, "load_cli_config", lambda: cfg)
    for mod in (index_mod, search_mod, worker_mod):
        monkeypatch.setattr(mod, "build_embedder", lambda _cfg: embedder)
    return cfg


@pytest.fixture
def db_path(cli_cfg) -> Path:
    return Path(cli_cfg.db_path)


@pytest.fixture
def push_payload(tmp_path):
    """Write a push event for acme/widgets and return its path."""

    def _write(ref="refs/heads/main", full_name="acme/widgets", added=("alpha.py",)):
        path = tmp_path / "push.json"
        body = {
            "ref": ref,
            "repository": {"full_name": full_name},
            "commits": [{"added": list(added), "modified": [], "removed": []}],
        }
        path.write_text(json.dumps(body), encoding="utf-8")
        return path

    return _write
