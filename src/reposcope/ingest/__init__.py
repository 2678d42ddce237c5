"""reposcope ingest pipeline: chunker, embedding client, indexing pipeline."""

from reposcope.ingest.checkout import DiffResult, LocalCheckout, compute_diff
from reposcope.ingest.code_chunker import CodeChunker
from reposcope.ingest.embedding_client import EmbeddingClient
from reposcope.ingest.fallback import chunk_lines
from reposcope.ingest.parsers import ParserCache
from reposcope.ingest.pipeline import (
    FileProcessingResult,
    IndexingPipeline,
    IndexResult,
    format_chunk_for_embedding,
)
from reposcope.ingest.providers import EmbeddingProvider, LiteLLMProvider

__all__ = [
    "CodeChunker",
    "DiffResult",
    "EmbeddingClient",
    "EmbeddingProvider",
    "FileProcessingResult",
    "IndexResult",
    "IndexingPipeline",
    "LiteLLMProvider",
    "LocalCheckout",
    "ParserCache",
    "chunk_lines",
    "compute_diff",
    "format_chunk_for_embedding",
]
