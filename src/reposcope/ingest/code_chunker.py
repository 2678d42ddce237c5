"""AST-aware code chunker built on tree-sitter.

Walks the top level of a file's syntax tree and emits one CodeChunk per
declaration, bounded by a character-size window:

- declarations shorter than ``min_chunk_size`` are dropped;
- declarations up to ``max_chunk_size`` are emitted whole;
- larger declarations are never emitted themselves; their named children
  are chunked instead, recursively;
- classes that do not fit are split into one chunk per member, named
  ``ClassName.member``.

When there is no profile or parser for the language, or the walk produces
nothing, the file is split into fixed line windows instead.
"""

from __future__ import annotations

from tree_sitter import Node

from reposcope.config import ChunkingCfg
from reposcope.db.models import ChunkType, CodeChunk
from reposcope.ingest.fallback import chunk_lines
from reposcope.ingest.parsers import ParserCache
from reposcope.ingest.profiles import LanguageProfile, detect_language, get_profile

_DECORATED = "decorated_definition"


class CodeChunker:
    """Split source files into CodeChunks.

    Args:
        parsers: Shared parser cache. Defaults to a private cache over all
            registered language profiles.
        min_chunk_size: Minimum chunk length in characters.
        max_chunk_size: Maximum chunk length in characters.
        window_lines: Fallback window height in lines.
        window_overlap: Lines shared by consecutive fallback windows.
    """

    def __init__(
        self,
        parsers: ParserCache | None = None,
        min_chunk_size: int = 50,
        max_chunk_size: int = 4000,
        window_lines: int = 80,
        window_overlap: int = 10,
    ) -> None:
        if not 1 <= min_chunk_size <= max_chunk_size:
            raise ValueError("chunk sizes must satisfy 1 <= min_chunk_size <= max_chunk_size")
        self._parsers = parsers if parsers is not None else ParserCache()
        self.min_chunk_size = min_chunk_size
        self.max_chunk_size = max_chunk_size
        self.window_lines = window_lines
        self.window_overlap = window_overlap

    @classmethod
    def from_config(cls, cfg: ChunkingCfg, parsers: ParserCache | None = None) -> CodeChunker:
        return cls(
            parsers=parsers,
            min_chunk_size=cfg.min_chunk_size,
            max_chunk_size=cfg.max_chunk_size,
            window_lines=cfg.window_lines,
            window_overlap=cfg.window_overlap,
        )

    @staticmethod
    def detect_language(file_path: str) -> str | None:
        return detect_language(file_path)

    def parse(self, content: str, language: str) -> list[CodeChunk]:
        """Chunk *content* written in *language*. Always returns usable chunks
        for non-trivial input; never raises for a missing grammar."""
        profile = get_profile(language)
        if profile is None:
            return self._fallback(content)

        tree = self._parsers.parse(language, content.encode("utf-8"))
        if tree is None:
            return self._fallback(content)

        chunks: list[CodeChunk] = []
        self._walk_top_level(tree.root_node, profile, chunks)
        if not chunks:
            return self._fallback(content)
        return chunks

    # ------------------------------------------------------------------
    # Tree walk
    # ------------------------------------------------------------------

    def _walk_top_level(self, root: Node, profile: LanguageProfile, chunks: list[CodeChunk]) -> None:
        for child in root.children:
            node = child
            if child.type in profile.wrapper_types:
                inner = next(
                    (
                        n
                        for n in child.named_children
                        if n.type in profile.top_level_types or _is_class_like(n)
                    ),
                    None,
                )
                if inner is not None:
                    node = inner

            if _is_class_like(node):
                self._add_class(node, profile, chunks)
            elif node.type in profile.top_level_types:
                self._add_node(node, profile, chunks)

    def _add_node(self, node: Node, profile: LanguageProfile, chunks: list[CodeChunk]) -> None:
        text = _text(node)
        if len(text) < self.min_chunk_size:
            return
        if len(text) <= self.max_chunk_size:
            chunks.append(
                _make_chunk(node, resolve_chunk_type(_effective_type(node)), extract_name(node, profile), text)
            )
            return
        for child in node.named_children:
            self._add_node(child, profile, chunks)

    def _add_class(self, node: Node, profile: LanguageProfile, chunks: list[CodeChunk]) -> None:
        text = _text(node)
        if len(text) < self.min_chunk_size:
            return
        class_name = extract_name(node, profile)
        if len(text) <= self.max_chunk_size:
            chunks.append(_make_chunk(node, "class", class_name, text))
            return

        for member in _class_members(node):
            if member.type not in profile.member_types:
                continue
            member_text = _text(member)
            if len(member_text) < self.min_chunk_size:
                continue
            if len(member_text) > self.max_chunk_size:
                self._add_node(member, profile, chunks)
                continue
            member_name = extract_name(member, profile)
            if class_name and member_name:
                qualified = f"{class_name}.{member_name}"
            else:
                qualified = member_name or class_name
            chunks.append(_make_chunk(member, "method", qualified, member_text))

    def _fallback(self, content: str) -> list[CodeChunk]:
        return chunk_lines(
            content,
            window_lines=self.window_lines,
            overlap=self.window_overlap,
            min_chunk_size=self.min_chunk_size,
        )


# ------------------------------------------------------------------
# Node helpers
# ------------------------------------------------------------------


def resolve_chunk_type(node_type: str) -> ChunkType:
    """Map a syntax node kind to a chunk type by substring."""
    if "function" in node_type or node_type == "lexical_declaration":
        return "function"
    if "class" in node_type:
        return "class"
    if "method" in node_type:
        return "method"
    if "import" in node_type or "export" in node_type:
        return "import"
    return "block"


def extract_name(node: Node, profile: LanguageProfile) -> str | None:
    """Read a declaration's identifier, or None when it has none.

    Decorated definitions are named after the definition they wrap, and
    ``const x = ...`` bindings after their first declarator.
    """
    name_node = node.child_by_field_name(profile.name_field)
    if name_node is None:
        inner = _wrapped_definition(node)
        if inner is None:
            inner = next((n for n in node.named_children if n.type == "variable_declarator"), None)
        if inner is not None:
            name_node = inner.child_by_field_name(profile.name_field)
    return _text(name_node) if name_node is not None else None


def _wrapped_definition(node: Node) -> Node | None:
    if node.type != _DECORATED:
        return None
    return node.child_by_field_name("definition")


def _effective_type(node: Node) -> str:
    inner = _wrapped_definition(node)
    return inner.type if inner is not None else node.type


def _is_class_like(node: Node) -> bool:
    kind = _effective_type(node)
    return "class" in kind or "interface" in kind


def _class_members(node: Node) -> list[Node]:
    """Named children of the class or interface body."""
    definition = _wrapped_definition(node) or node
    body = definition.child_by_field_name("body")
    return list((body or definition).named_children)


def _text(node: Node) -> str:
    return (node.text or b"").decode("utf-8", errors="replace")


def _make_chunk(node: Node, chunk_type: ChunkType, name: str | None, text: str) -> CodeChunk:
    return CodeChunk(
        chunk_type=chunk_type,
        name=name,
        start_line=node.start_point[0] + 1,
        end_line=node.end_point[0] + 1,
        content=text,
    )
