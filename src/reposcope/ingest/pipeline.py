"""Indexing pipeline: checkout → chunks → embeddings → vector store.

Chunking and embedding of different files run on a bounded thread pool.
All database writes happen on the calling thread, and a file's chunks are
written only once every one of its vectors exists, so a failed or cancelled
file never leaves a partial index behind.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Literal

from reposcope.config import ReposcopeConfig
from reposcope.db.models import CodeChunk, TrackedConnection
from reposcope.db.repository import IndexRepository
from reposcope.errors import ConnectionNotFoundError, OperationCancelled
from reposcope.ingest.checkout import DiffResult, LocalCheckout, compute_diff
from reposcope.ingest.code_chunker import CodeChunker
from reposcope.ingest.embedding_client import EmbeddingClient
from reposcope.ingest.profiles import detect_language

logger = logging.getLogger(__name__)

FileState = Literal["COMPLETE", "FAILED"]


@dataclass
class FileProcessingResult:
    file_path: str
    state: FileState
    chunks_created: int = 0
    error: str | None = None


@dataclass
class IndexResult:
    """Outcome of one indexing run over a connection."""

    connection_id: str
    state: FileState
    commit: str | None = None
    diff: DiffResult | None = None  # None for job-scoped reindexes
    processed: list[FileProcessingResult] = field(default_factory=list)
    deleted: int = 0

    @property
    def failed(self) -> list[FileProcessingResult]:
        return [r for r in self.processed if r.state == "FAILED"]


@dataclass
class _PreparedFile:
    file_path: str
    language: str
    file_hash: str
    chunks: list[CodeChunk]
    vectors: list[list[float]]


def format_chunk_for_embedding(chunk: CodeChunk, file_path: str) -> str:
    """Prefix *chunk* with a one-line locator header.

    Example header: ``File: src/app.ts | function: main | Lines: 3-17``
    """
    label = f"{chunk.chunk_type}: {chunk.name}" if chunk.name else chunk.chunk_type
    header = f"File: {file_path} | {label} | Lines: {chunk.start_line}-{chunk.end_line}"
    return f"{header}\n\n{chunk.content}"


class IndexingPipeline:
    """Keep a connection's stored chunks in step with its checkout.

    Args:
        repo: Vector store, opened with the active model's vec table.
        chunker: Code chunker shared by all worker threads.
        embedder: Embedding client shared by all worker threads.
        workers: Thread pool size for per-file chunking and embedding.
        checkout_factory: Builds a LocalCheckout from a connection's root path.
        cancel: Event that aborts the run with OperationCancelled when set. It
            is also handed to the embedder so in-flight batches stop waiting.
    """

    def __init__(
        self,
        repo: IndexRepository,
        chunker: CodeChunker,
        embedder: EmbeddingClient,
        workers: int = 4,
        checkout_factory: Callable[[str], LocalCheckout] = LocalCheckout,
        cancel: threading.Event | None = None,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self._repo = repo
        self._chunker = chunker
        self._embedder = embedder
        self._workers = workers
        self._checkout_factory = checkout_factory
        self._cancel = cancel
        if cancel is not None:
            embedder.bind_cancel(cancel)

    @classmethod
    def from_config(
        cls,
        cfg: ReposcopeConfig,
        repo: IndexRepository,
        embedder: EmbeddingClient,
        cancel: threading.Event | None = None,
    ) -> IndexingPipeline:
        return cls(
            repo,
            CodeChunker.from_config(cfg.chunking),
            embedder,
            workers=cfg.indexer.workers,
            checkout_factory=lambda root: LocalCheckout.from_config(root, cfg.indexer),
            cancel=cancel,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def index(self, connection_id: str) -> IndexResult:
        """Full sweep: add new files, refresh changed ones, drop deleted ones."""
        connection = self._get_connection(connection_id)
        self._repo.update_connection_status(connection_id, "indexing")
        try:
            checkout = self._checkout_factory(connection.root_path)
            diff = compute_diff(self._repo.get_indexed_files(connection_id), checkout)
            for stale in diff.to_delete:
                self._repo.delete_indexed_file(stale.id)
            processed = self._process(connection, checkout, diff.to_add + diff.to_update)
        except Exception:
            self._repo.update_connection_status(connection_id, "failed")
            raise

        result = IndexResult(
            connection_id=connection_id,
            state="FAILED" if any(r.state == "FAILED" for r in processed) else "COMPLETE",
            commit=checkout.head_commit(),
            diff=diff,
            processed=processed,
            deleted=len(diff.to_delete),
        )
        self._finish(result)
        logger.info(
            "Indexed %s: %d added, %d updated, %d deleted, %d unchanged, %d failed",
            connection.full_name,
            len(diff.to_add),
            len(diff.to_update),
            len(diff.to_delete),
            diff.unchanged,
            len(result.failed),
        )
        return result

    def reindex_files(self, connection_id: str, paths: list[str]) -> IndexResult:
        """Reprocess just *paths*; unknown, skipped and unchanged files are ignored."""
        connection = self._get_connection(connection_id)
        self._repo.update_connection_status(connection_id, "indexing")
        try:
            checkout = self._checkout_factory(connection.root_path)
            todo = self._select_changed(connection_id, checkout, paths)
            processed = self._process(connection, checkout, todo)
        except Exception:
            self._repo.update_connection_status(connection_id, "failed")
            raise

        result = IndexResult(
            connection_id=connection_id,
            state="FAILED" if any(r.state == "FAILED" for r in processed) else "COMPLETE",
            commit=checkout.head_commit(),
            processed=processed,
        )
        self._finish(result)
        logger.info(
            "Reindexed %s: %d of %d paths processed, %d failed",
            connection.full_name,
            len(processed),
            len(paths),
            len(result.failed),
        )
        return result

    # ------------------------------------------------------------------
    # Per-file work
    # ------------------------------------------------------------------

    def _process(
        self,
        connection: TrackedConnection,
        checkout: LocalCheckout,
        paths: list[str],
    ) -> list[FileProcessingResult]:
        if not paths:
            return []
        results: list[FileProcessingResult] = []
        with ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix="reposcope-index") as pool:
            futures: list[tuple[str, Future[_PreparedFile]]] = [
                (path, pool.submit(self._prepare, checkout, path)) for path in paths
            ]
            try:
                for path, future in futures:
                    results.append(self._persist(connection.id, path, future))
            except BaseException:
                pool.shutdown(wait=False, cancel_futures=True)
                raise
        return results

    def _prepare(self, checkout: LocalCheckout, path: str) -> _PreparedFile:
        """Worker-thread half: read, chunk and embed one file. No DB access."""
        self._check_cancelled()
        language = detect_language(path)
        if language is None:
            raise ValueError(f"unsupported file type: {path}")
        content = checkout.read_text(path)
        file_hash = checkout.file_hash(path)
        chunks = self._chunker.parse(content, language)
        self._check_cancelled()
        texts = [format_chunk_for_embedding(c, path) for c in chunks]
        vectors = self._embedder.embed(texts)
        return _PreparedFile(path, language, file_hash, chunks, vectors)

    def _persist(
        self,
        connection_id: str,
        path: str,
        future: Future[_PreparedFile],
    ) -> FileProcessingResult:
        """Calling-thread half: store a prepared file or record its failure."""
        try:
            prepared = future.result()
        except OperationCancelled:
            raise
        except Exception as exc:  # one bad file must not abort the run
            logger.warning("Failed to index %s: %s", path, exc)
            return FileProcessingResult(path, "FAILED", error=str(exc))

        indexed = self._repo.upsert_indexed_file(
            connection_id, prepared.file_path, prepared.language, prepared.file_hash
        )
        self._repo.replace_chunks(indexed, prepared.chunks, prepared.vectors)
        logger.debug("Stored %d chunks for %s", len(prepared.chunks), path)
        return FileProcessingResult(path, "COMPLETE", chunks_created=len(prepared.chunks))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _select_changed(
        self, connection_id: str, checkout: LocalCheckout, paths: list[str]
    ) -> list[str]:
        selected: list[str] = []
        for path in dict.fromkeys(paths):
            if checkout.should_skip(path) or detect_language(path) is None:
                continue
            if not checkout.exists(path):
                logger.debug("Skipping %s: not in checkout", path)
                continue
            stored = self._repo.get_indexed_file(connection_id, path)
            if stored is not None and stored.file_hash == checkout.file_hash(path):
                continue
            selected.append(path)
        return selected

    def _get_connection(self, connection_id: str) -> TrackedConnection:
        connection = self._repo.get_connection(connection_id)
        if connection is None:
            raise ConnectionNotFoundError(f"No tracked connection with id '{connection_id}'")
        return connection

    def _finish(self, result: IndexResult) -> None:
        self._repo.update_connection_status(
            result.connection_id,
            "completed" if result.state == "COMPLETE" else "failed",
            last_indexed_commit=result.commit,
            file_count=len(self._repo.get_indexed_files(result.connection_id)),
        )

    def _check_cancelled(self) -> None:
        if self._cancel is not None and self._cancel.is_set():
            raise OperationCancelled("indexing cancelled")
