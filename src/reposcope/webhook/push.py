"""Push-event handling: turn a repository push into one reindex job.

Pushes for untracked repositories or other branches are ignored and logged;
they are not errors.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from reposcope.db.models import ReindexJob, TrackedConnection
from reposcope.errors import InvalidPayloadError

logger = logging.getLogger(__name__)

_BRANCH_PREFIX = "refs/heads/"


class PushRepository(BaseModel):
    model_config = ConfigDict(extra="ignore")

    full_name: str = Field(min_length=1)
    default_branch: Optional[str] = None


class PushCommit(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    added: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    modified: list[str] = Field(default_factory=list)


class PushInstallation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int


class PushEvent(BaseModel):
    """The subset of a push webhook payload that drives reindexing."""

    model_config = ConfigDict(extra="ignore")

    ref: str
    after: str = ""
    repository: PushRepository
    commits: list[PushCommit] = Field(default_factory=list)
    installation: Optional[PushInstallation] = None

    @property
    def branch(self) -> str:
        return self.ref.removeprefix(_BRANCH_PREFIX)

    def changed_files(self) -> list[str]:
        """Added and modified paths across all commits, first-seen order, no duplicates."""
        seen: dict[str, None] = {}
        for commit in self.commits:
            for path in [*commit.added, *commit.modified]:
                seen.setdefault(path, None)
        return list(seen)


class ConnectionResolver(Protocol):
    def resolve_connection(self, full_name: str) -> TrackedConnection | None: ...


class JobQueue(Protocol):
    def enqueue(self, job: ReindexJob) -> Any: ...


def parse_push_event(payload: Mapping[str, Any]) -> PushEvent:
    """Validate a raw webhook body.

    Raises:
        InvalidPayloadError: If required push fields are missing or malformed.
    """
    try:
        return PushEvent.model_validate(payload)
    except ValidationError as exc:
        raise InvalidPayloadError(f"Invalid push payload: {exc}") from exc


def handle_push_event(
    event: PushEvent | Mapping[str, Any],
    queue: JobQueue,
    resolver: ConnectionResolver,
) -> bool:
    """Schedule a reindex for a push to a tracked branch.

    Returns True only once a job has been enqueued; False when the push was
    ignored (untracked repository or a branch other than the tracked one).
    """
    if not isinstance(event, PushEvent):
        event = parse_push_event(event)

    full_name = event.repository.full_name
    connection = resolver.resolve_connection(full_name)
    if connection is None:
        logger.info("Ignoring push to untracked repository %s", full_name)
        return False

    if event.branch != connection.branch:
        logger.info(
            "Ignoring push to %s@%s (tracking %s)", full_name, event.branch, connection.branch
        )
        return False

    owner, _, repo = full_name.partition("/")
    job = ReindexJob(
        connection_id=connection.id,
        project_id=connection.project_id,
        owner=owner,
        repo=repo,
        branch=connection.branch,
        changed_files=event.changed_files(),
    )
    queue.enqueue(job)
    logger.info(
        "Scheduled reindex of %d files for %s@%s",
        len(job.changed_files),
        full_name,
        connection.branch,
    )
    return True
