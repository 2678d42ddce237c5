"""Lazily constructed, shared tree-sitter parsers: one per language."""

from __future__ import annotations

import importlib
import logging
import threading

from tree_sitter import Language, Parser, Tree

from reposcope.errors import ParserUnavailableError
from reposcope.ingest.profiles import LANGUAGE_PROFILES, LanguageProfile

logger = logging.getLogger(__name__)


def load_language(profile: LanguageProfile) -> Language:
    """Import the grammar package named by *profile* and wrap it in a Language.

    Raises:
        ParserUnavailableError: If the grammar package is missing or broken.
    """
    try:
        module = importlib.import_module(profile.grammar_module)
        factory = getattr(module, profile.grammar_factory)
        return Language(factory())
    except (ImportError, AttributeError, TypeError, ValueError) as exc:
        raise ParserUnavailableError(
            f"tree-sitter grammar {profile.grammar_module}.{profile.grammar_factory} "
            f"could not be loaded: {exc}"
        ) from exc


class ParserCache:
    """Per-language parser cache shared by all chunking threads.

    The first ``get()`` for a language builds its parser under that language's
    lock, so concurrent first use constructs it once. A language whose grammar
    fails to load stays unavailable for the life of the cache.
    """

    def __init__(
        self,
        profiles: dict[str, LanguageProfile] | None = None,
        loader=load_language,
    ) -> None:
        self._profiles = dict(LANGUAGE_PROFILES if profiles is None else profiles)
        self._loader = loader
        self._parsers: dict[str, Parser] = {}
        self._unavailable: set[str] = set()
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def get(self, language: str) -> Parser | None:
        """Return the parser for *language*, or None when none can be built."""
        parser = self._parsers.get(language)
        if parser is not None:
            return parser
        profile = self._profiles.get(language)
        if profile is None or language in self._unavailable:
            return None

        with self._lock_for(language):
            parser = self._parsers.get(language)
            if parser is not None or language in self._unavailable:
                return parser
            try:
                parser = Parser(self._loader(profile))
            except ParserUnavailableError as exc:
                logger.warning("Falling back to line chunking for %s: %s", language, exc)
                self._unavailable.add(language)
                return None
            self._parsers[language] = parser
            logger.debug("Loaded tree-sitter parser for %s", language)
            return parser

    def parse(self, language: str, source: bytes) -> Tree | None:
        """Parse *source* with the cached parser, or return None if there is none.

        A tree-sitter Parser is not safe for concurrent use, so parses of the
        same language are serialised on the language lock.
        """
        parser = self.get(language)
        if parser is None:
            return None
        with self._lock_for(language):
            return parser.parse(source)

    def is_unavailable(self, language: str) -> bool:
        return language in self._unavailable

    def _lock_for(self, language: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(language, threading.Lock())
