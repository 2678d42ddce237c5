"""Semantic code search over the vector store."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from reposcope.config import SearchCfg
from reposcope.db.models import SearchCandidate
from reposcope.db.repository import IndexRepository
from reposcope.errors import InvalidQueryError
from reposcope.ingest.embedding_client import EmbeddingClient
from reposcope.search.glob import glob_to_regex
from reposcope.search.schemas import SearchQuery, SearchResponse, SearchResultItem

logger = logging.getLogger(__name__)

RELATED_QUERY_LABEL = "[related code search]"


class SemanticSearch:
    """Embed a query, fetch nearest chunks, filter and shape the results.

    Args:
        repo: Vector store with the active model's vec table.
        embedder: Client for the same embedding model used at index time.
        overfetch_factor: Candidates fetched per requested result, leaving
            room for the post-retrieval filters.
    """

    def __init__(
        self,
        repo: IndexRepository,
        embedder: EmbeddingClient,
        overfetch_factor: int = 3,
    ) -> None:
        if overfetch_factor < 1:
            raise ValueError("overfetch_factor must be >= 1")
        self._repo = repo
        self._embedder = embedder
        self._overfetch_factor = overfetch_factor

    @classmethod
    def from_config(
        cls, cfg: SearchCfg, repo: IndexRepository, embedder: EmbeddingClient
    ) -> SemanticSearch:
        return cls(repo, embedder, overfetch_factor=cfg.overfetch_factor)

    def search(
        self, connection_id: str, query: SearchQuery | Mapping[str, Any]
    ) -> SearchResponse:
        """Return up to ``query.limit`` chunks, best first.

        Steps:
        1. Validate the query (before any provider call).
        2. Embed the query text.
        3. Fetch ``overfetch_factor * limit`` candidates, language-filtered in the store.
        4. Drop candidates below ``min_score``, outside the path glob, or of
           another symbol type.
        5. Truncate to ``limit``.

        Raises:
            InvalidQueryError: If *query* fails validation.
            EmbeddingProviderError: If the query cannot be embedded.
        """
        parsed = _validate(query)

        vector = self._embedder.embed([parsed.query])[0]
        candidates = self._repo.search_by_embedding(
            connection_id,
            vector,
            parsed.limit * self._overfetch_factor,
            language=parsed.language,
        )

        filtered = [c for c in candidates if c.score >= parsed.min_score]
        if parsed.file_path_pattern:
            regex = glob_to_regex(parsed.file_path_pattern)
            filtered = [c for c in filtered if regex.match(c.file_path)]
        if parsed.symbol_type:
            filtered = [c for c in filtered if c.chunk.chunk_type == parsed.symbol_type]

        results = [_to_item(c) for c in filtered[: parsed.limit]]
        logger.debug(
            "Search %r: %d candidates, %d after filters, %d returned",
            parsed.query,
            len(candidates),
            len(filtered),
            len(results),
        )
        return SearchResponse(query=parsed.query, total_results=len(results), results=results)

    def find_related(self, connection_id: str, content: str, limit: int = 5) -> SearchResponse:
        """Nearest chunks to arbitrary *content*; no score threshold or filters."""
        if not content.strip():
            raise InvalidQueryError("content must not be empty")
        if limit < 1:
            raise InvalidQueryError("limit must be >= 1")

        vector = self._embedder.embed([content])[0]
        candidates = self._repo.search_by_embedding(connection_id, vector, limit)
        results = [_to_item(c) for c in candidates]
        return SearchResponse(
            query=RELATED_QUERY_LABEL, total_results=len(results), results=results
        )


def _validate(query: SearchQuery | Mapping[str, Any]) -> SearchQuery:
    if isinstance(query, SearchQuery):
        query = query.model_dump()
    try:
        return SearchQuery.model_validate(dict(query))
    except ValidationError as exc:
        raise InvalidQueryError(f"Invalid search query: {exc}") from exc


def _to_item(candidate: SearchCandidate) -> SearchResultItem:
    chunk = candidate.chunk
    return SearchResultItem(
        file_path=candidate.file_path,
        start_line=chunk.start_line,
        end_line=chunk.end_line,
        content=chunk.content,
        symbol_name=chunk.name,
        symbol_type=chunk.chunk_type,
        language=candidate.language or None,
        score=candidate.score,
    )
