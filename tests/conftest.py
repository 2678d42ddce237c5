"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from reposcope.db.connection import open_db
from reposcope.db.repository import IndexRepository
from reposcope.db.vectors import ensure_vec_table
from reposcope.ingest.embedding_client import EmbeddingClient

DIMS = 4

# Keyword → unit vector. Texts mentioning none of the keywords embed to the
# last axis, so unrelated text scores 0 against every keyword.
_AXES = {"alpha": 0, "beta": 1, "gamma": 2}


class KeywordProvider:
    """Deterministic 4-d embeddings: one axis per keyword found in the text."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self.vector(t) for t in texts]

    @staticmethod
    def vector(text: str) -> list[float]:
        vec = [0.0] * DIMS
        lowered = text.lower()
        for word, axis in _AXES.items():
            if word in lowered:
                vec[axis] = 1.0
        if not any(vec):
            vec[DIMS - 1] = 1.0
        return vec


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with migrations applied, closed after test."""
    conn = open_db(tmp_path / ".reposcope.db")
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    """IndexRepository over a 4-dimensional test vec table."""
    table = ensure_vec_table(tmp_db, "test_model", DIMS)
    return IndexRepository(tmp_db, table)


@pytest.fixture
def checkout_dir(tmp_path):
    root = tmp_path / "checkout"
    root.mkdir()
    return root


@pytest.fixture
def connection(repo, checkout_dir):
    """A tracked acme/widgets connection on main, rooted at checkout_dir."""
    return repo.add_connection("acme/widgets", "main", str(checkout_dir), project_id="proj-1")


@pytest.fixture
def keyword_provider():
    return KeywordProvider()


@pytest.fixture
def embedder(keyword_provider):
    """EmbeddingClient over KeywordProvider that never sleeps."""
    return EmbeddingClient(keyword_provider, inter_batch_delay=0.0, sleep=lambda _s: None)
