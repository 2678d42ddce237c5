"""Exception taxonomy for the reposcope pipeline.

Only InvalidQueryError and EmbeddingProviderError are meant to reach a user.
ParserUnavailableError never leaves the parser cache: it is turned into
fallback chunking. Ignored pushes are not exceptions at all.
"""

from __future__ import annotations


class ReposcopeError(Exception):
    """Base class for all reposcope errors."""


class ConfigError(ReposcopeError, ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


class InvalidQueryError(ReposcopeError, ValueError):
    """Search parameters failed validation. Raised before any network call."""


class EmbeddingProviderError(ReposcopeError, RuntimeError):
    """An embedding batch still failed after the retry budget was spent.

    The provider's last exception is chained as ``__cause__``.
    """

    def __init__(self, message: str, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


class ParserUnavailableError(ReposcopeError):
    """No tree-sitter grammar could be loaded for a language."""


class OperationCancelled(ReposcopeError):
    """The caller's cancellation event was set while work was in flight."""


class ConnectionNotFoundError(ReposcopeError, LookupError):
    """No tracked connection exists for the given id."""


class InvalidPayloadError(ReposcopeError, ValueError):
    """A webhook payload is missing required push-event fields."""
