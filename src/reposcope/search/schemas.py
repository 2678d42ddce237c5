"""Request and response models for semantic code search."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SymbolType = Literal[
    "function", "class", "method", "interface", "type_alias", "enum", "import", "block"
]


class SearchQuery(BaseModel):
    """A validated search request."""

    model_config = ConfigDict(extra="forbid")

    query: str = Field(min_length=1, description="Natural language description of the code")
    limit: int = Field(default=10, ge=1, description="Maximum number of results")
    file_path_pattern: Optional[str] = Field(
        default=None, description='Path glob, e.g. "src/services/**"'
    )
    language: Optional[str] = Field(default=None, description='Language tag, e.g. "typescript"')
    symbol_type: Optional[SymbolType] = None
    min_score: float = Field(default=0.3, ge=0.0, le=1.0)


class SearchResultItem(BaseModel):
    file_path: str
    start_line: int = Field(ge=1)
    end_line: int = Field(ge=1)
    content: str
    symbol_name: Optional[str] = None
    symbol_type: str
    language: Optional[str] = None
    score: float = Field(ge=0.0, le=1.0)


class SearchResponse(BaseModel):
    query: str
    total_results: int = Field(ge=0)
    results: list[SearchResultItem]
