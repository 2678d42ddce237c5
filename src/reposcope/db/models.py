"""Domain models for the reposcope database layer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Literal

ChunkType = Literal["function", "class", "method", "import", "block"]

CHUNK_TYPES: tuple[str, ...] = ("function", "class", "method", "import", "block")


@dataclass
class CodeChunk:
    chunk_type: ChunkType
    start_line: int  # 1-based, inclusive
    end_line: int  # 1-based, inclusive
    content: str
    name: str | None = None
    file_id: str = ""  # set by the store on insert
    file_path: str = ""  # set by the caller at persistence time
    rowid: int | None = None  # set after insert; None for unsaved chunks


@dataclass
class TrackedConnection:
    """A repository tracked for indexing, bound to one branch and checkout."""

    id: str
    project_id: str
    full_name: str  # "owner/repo"
    branch: str
    root_path: str
    status: str = "pending"  # pending | indexing | completed | failed
    last_indexed_commit: str | None = None
    file_count: int = 0
    created_at: str | None = None

    @property
    def owner(self) -> str:
        return self.full_name.split("/", 1)[0]

    @property
    def repo(self) -> str:
        return self.full_name.split("/", 1)[-1]


@dataclass
class IndexedFile:
    id: str
    connection_id: str
    file_path: str
    language: str | None
    file_hash: str
    indexed_at: str | None = None


@dataclass
class SearchCandidate:
    """One nearest-neighbour hit. *score* is cosine similarity in [0, 1]."""

    file_path: str
    chunk: CodeChunk
    score: float
    language: str | None = None


@dataclass
class ReindexJob:
    """Minimal description of a push-triggered reindex."""

    connection_id: str
    project_id: str
    owner: str
    repo: str
    branch: str
    changed_files: list[str] = field(default_factory=list)
    id: int | None = None  # queue row id, set on enqueue
    status: str = "pending"  # pending | running | done | failed
    error: str | None = None

    def changed_files_json(self) -> str:
        return json.dumps(self.changed_files)
