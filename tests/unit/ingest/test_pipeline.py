"""Tests for IndexingPipeline against a real SQLite store."""

from __future__ import annotations

import threading

import pytest

from reposcope.db.models import CodeChunk
from reposcope.errors import ConnectionNotFoundError, OperationCancelled
from reposcope.ingest.code_chunker import CodeChunker
from reposcope.ingest.embedding_client import EmbeddingClient
from reposcope.ingest.parsers import ParserCache
from reposcope.ingest.pipeline import IndexingPipeline, format_chunk_for_embedding

ALPHA_PY = '''def alpha_handler(request):
    """Handle an alpha request."""
    return {"alpha": request, "ok": True}
'''

BETA_TS = """export function betaTotal(items: number[]): number {
  return items.reduce((sum, n) => sum + n, 0);
}
"""

GAMMA_JS = """function gammaFormat(value) {
  return `gamma:${String(value).padStart(8, "0")}`;
}
"""


class ExplodingProvider:
    """Embeds like KeywordProvider but fails on any text containing 'explode'."""

    def __init__(self, inner):
        self.inner = inner

    def embed_batch(self, texts):
        if any("explode" in t for t in texts):
            raise ConnectionError("provider rejected batch")
        return self.inner.embed_batch(texts)


@pytest.fixture
def pipeline(repo, embedder):
    return IndexingPipeline(repo, CodeChunker(parsers=ParserCache()), embedder, workers=2)


def _write(root, rel, text):
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)


# ------------------------------------------------------------------
# format_chunk_for_embedding
# ------------------------------------------------------------------


def test_format_chunk_header():
    chunk = CodeChunk("function", 3, 17, "def main(): ...", name="main")
    text = format_chunk_for_embedding(chunk, "src/app.py")
    assert text == "File: src/app.py | function: main | Lines: 3-17\n\ndef main(): ..."


def test_format_chunk_header_without_name():
    chunk = CodeChunk("block", 1, 80, "x = 1")
    assert format_chunk_for_embedding(chunk, "a.py").startswith("File: a.py | block | Lines: 1-80")


# ------------------------------------------------------------------
# index()
# ------------------------------------------------------------------


def test_index_stores_chunks_and_marks_completed(pipeline, repo, connection, checkout_dir):
    _write(checkout_dir, "src/alpha.py", ALPHA_PY)
    _write(checkout_dir, "src/beta.ts", BETA_TS)

    result = pipeline.index(connection.id)

    assert result.state == "COMPLETE"
    assert sorted(r.file_path for r in result.processed) == ["src/alpha.py", "src/beta.ts"]
    assert result.diff.to_add == ["src/alpha.py", "src/beta.ts"]
    files = {f.file_path: f for f in repo.get_indexed_files(connection.id)}
    assert files["src/alpha.py"].language == "python"
    assert files["src/beta.ts"].language == "typescript"
    chunks = repo.get_chunks_for_file(files["src/alpha.py"].id)
    assert [(c.chunk_type, c.name) for c in chunks] == [("function", "alpha_handler")]

    stored = repo.get_connection(connection.id)
    assert stored.status == "completed"
    assert stored.file_count == 2


def test_second_index_skips_unchanged_files(pipeline, connection, checkout_dir, keyword_provider):
    _write(checkout_dir, "alpha.py", ALPHA_PY)
    pipeline.index(connection.id)
    calls_after_first = len(keyword_provider.calls)

    result = pipeline.index(connection.id)

    assert result.processed == []
    assert result.diff.unchanged == 1
    assert len(keyword_provider.calls) == calls_after_first


def test_index_updates_changed_and_deletes_removed(pipeline, repo, connection, checkout_dir):
    _write(checkout_dir, "alpha.py", ALPHA_PY)
    _write(checkout_dir, "gamma.js", GAMMA_JS)
    pipeline.index(connection.id)

    _write(checkout_dir, "alpha.py", ALPHA_PY.replace("alpha_handler", "alpha_entry"))
    (checkout_dir / "gamma.js").unlink()
    result = pipeline.index(connection.id)

    assert result.diff.to_update == ["alpha.py"]
    assert result.deleted == 1
    files = repo.get_indexed_files(connection.id)
    assert [f.file_path for f in files] == ["alpha.py"]
    assert [c.name for c in repo.get_chunks_for_file(files[0].id)] == ["alpha_entry"]
    assert repo.count_chunks(connection.id) == 1


def test_failed_file_does_not_abort_run(repo, keyword_provider, connection, checkout_dir):
    embedder = EmbeddingClient(
        ExplodingProvider(keyword_provider), max_retries=1, sleep=lambda _s: None
    )
    pipeline = IndexingPipeline(repo, CodeChunker(parsers=ParserCache()), embedder)
    _write(checkout_dir, "alpha.py", ALPHA_PY)
    _write(checkout_dir, "explode.py", ALPHA_PY.replace("alpha_handler", "explode_now"))

    result = pipeline.index(connection.id)

    assert result.state == "FAILED"
    assert [r.file_path for r in result.failed] == ["explode.py"]
    assert "provider rejected batch" in result.failed[0].error
    assert [f.file_path for f in repo.get_indexed_files(connection.id)] == ["alpha.py"]
    assert repo.get_connection(connection.id).status == "failed"


def test_index_unknown_connection(pipeline):
    with pytest.raises(ConnectionNotFoundError):
        pipeline.index("does-not-exist")


def test_cancelled_index_writes_nothing(repo, embedder, connection, checkout_dir):
    cancel = threading.Event()
    cancel.set()
    pipeline = IndexingPipeline(repo, CodeChunker(parsers=ParserCache()), embedder, cancel=cancel)
    _write(checkout_dir, "alpha.py", ALPHA_PY)

    with pytest.raises(OperationCancelled):
        pipeline.index(connection.id)

    assert repo.get_indexed_files(connection.id) == []
    assert repo.get_connection(connection.id).status == "failed"


class CancellingProvider:
    """Fails its first batch and sets *cancel* while the batch is in flight."""

    def __init__(self, cancel):
        self.cancel = cancel
        self.calls = 0

    def embed_batch(self, texts):
        self.calls += 1
        self.cancel.set()
        raise ConnectionError("rate limited")


def test_cancel_during_run_stops_backoff_and_queued_files(repo, connection, checkout_dir):
    cancel = threading.Event()
    provider = CancellingProvider(cancel)
    embedder = EmbeddingClient(provider, inter_batch_delay=0.0, base_retry_delay=30.0)
    pipeline = IndexingPipeline(
        repo, CodeChunker(parsers=ParserCache()), embedder, workers=1, cancel=cancel
    )
    _write(checkout_dir, "alpha.py", ALPHA_PY)
    _write(checkout_dir, "beta.ts", BETA_TS)

    with pytest.raises(OperationCancelled):
        pipeline.index(connection.id)

    assert provider.calls == 1
    assert repo.get_indexed_files(connection.id) == []
    assert repo.get_connection(connection.id).status == "failed"


def test_missing_checkout_marks_failed(pipeline, repo):
    conn = repo.add_connection("acme/gone", "main", "/nonexistent/reposcope/checkout")
    with pytest.raises(FileNotFoundError):
        pipeline.index(conn.id)
    assert repo.get_connection(conn.id).status == "failed"


# ------------------------------------------------------------------
# reindex_files()
# ------------------------------------------------------------------


def test_reindex_files_processes_only_named_paths(pipeline, repo, connection, checkout_dir):
    _write(checkout_dir, "alpha.py", ALPHA_PY)
    _write(checkout_dir, "beta.ts", BETA_TS)

    result = pipeline.reindex_files(connection.id, ["beta.ts", "beta.ts"])

    assert [r.file_path for r in result.processed] == ["beta.ts"]
    assert result.diff is None
    assert [f.file_path for f in repo.get_indexed_files(connection.id)] == ["beta.ts"]


def test_reindex_files_ignores_missing_unknown_and_unchanged(
    pipeline, connection, checkout_dir
):
    _write(checkout_dir, "alpha.py", ALPHA_PY)
    _write(checkout_dir, "notes.md", "# notes")
    pipeline.reindex_files(connection.id, ["alpha.py"])

    result = pipeline.reindex_files(connection.id, ["alpha.py", "notes.md", "deleted.ts"])

    assert result.processed == []
    assert result.state == "COMPLETE"


def test_reindex_files_refreshes_changed_file(pipeline, repo, connection, checkout_dir):
    _write(checkout_dir, "alpha.py", ALPHA_PY)
    pipeline.reindex_files(connection.id, ["alpha.py"])
    _write(checkout_dir, "alpha.py", ALPHA_PY.replace("alpha_handler", "alpha_v2"))

    result = pipeline.reindex_files(connection.id, ["alpha.py"])

    assert [r.state for r in result.processed] == ["COMPLETE"]
    file = repo.get_indexed_file(connection.id, "alpha.py")
    assert [c.name for c in repo.get_chunks_for_file(file.id)] == ["alpha_v2"]
