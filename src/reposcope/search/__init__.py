"""reposcope semantic search."""

from reposcope.search.glob import glob_match, glob_to_regex
from reposcope.search.schemas import SearchQuery, SearchResponse, SearchResultItem
from reposcope.search.similarity import RELATED_QUERY_LABEL, SemanticSearch

__all__ = [
    "RELATED_QUERY_LABEL",
    "SearchQuery",
    "SearchResponse",
    "SearchResultItem",
    "SemanticSearch",
    "glob_match",
    "glob_to_regex",
]
