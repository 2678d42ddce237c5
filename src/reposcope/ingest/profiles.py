"""Language profiles: which syntax-tree nodes become chunks, per language.

Profiles are static. A language present in ``EXTENSION_TO_LANGUAGE`` but not
in ``LANGUAGE_PROFILES`` is still indexed, through fallback line windows.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath
from types import MappingProxyType


@dataclass(frozen=True)
class LanguageProfile:
    """Read-only chunking rules for one tree-sitter grammar.

    Attributes:
        top_level_types: Node kinds emitted as standalone declarations.
        member_types: Node kinds treated as class / interface members.
        name_field: Field holding a declaration's identifier.
        grammar_module: Importable tree-sitter grammar package.
        grammar_factory: Function in *grammar_module* returning the language pointer.
        wrapper_types: Export-style wrappers unwrapped to the declaration inside.
    """

    top_level_types: frozenset[str]
    member_types: frozenset[str]
    name_field: str
    grammar_module: str
    grammar_factory: str = "language"
    wrapper_types: frozenset[str] = frozenset({"export_statement"})


_TS_TOP_LEVEL = frozenset(
    {
        "function_declaration",
        "lexical_declaration",
        "export_statement",
        "class_declaration",
        "interface_declaration",
        "type_alias_declaration",
        "enum_declaration",
    }
)

_TS_MEMBERS = frozenset(
    {"method_definition", "public_field_definition", "method_signature", "property_signature"}
)

LANGUAGE_PROFILES: MappingProxyType[str, LanguageProfile] = MappingProxyType(
    {
        "typescript": LanguageProfile(
            top_level_types=_TS_TOP_LEVEL,
            member_types=_TS_MEMBERS,
            name_field="name",
            grammar_module="tree_sitter_typescript",
            grammar_factory="language_typescript",
        ),
        "tsx": LanguageProfile(
            top_level_types=_TS_TOP_LEVEL,
            member_types=_TS_MEMBERS,
            name_field="name",
            grammar_module="tree_sitter_typescript",
            grammar_factory="language_tsx",
        ),
        "javascript": LanguageProfile(
            top_level_types=frozenset(
                {
                    "function_declaration",
                    "lexical_declaration",
                    "export_statement",
                    "class_declaration",
                }
            ),
            member_types=frozenset({"method_definition", "field_definition"}),
            name_field="name",
            grammar_module="tree_sitter_javascript",
        ),
        "python": LanguageProfile(
            top_level_types=frozenset(
                {"function_definition", "class_definition", "decorated_definition"}
            ),
            member_types=frozenset({"function_definition", "decorated_definition"}),
            name_field="name",
            grammar_module="tree_sitter_python",
            wrapper_types=frozenset(),
        ),
    }
)

# Extension → language tag. Broader than LANGUAGE_PROFILES on purpose: the
# tag is stored as file metadata and used by the search language filter.
EXTENSION_TO_LANGUAGE: MappingProxyType[str, str] = MappingProxyType(
    {
        ".ts": "typescript",
        ".mts": "typescript",
        ".cts": "typescript",
        ".tsx": "tsx",
        ".js": "javascript",
        ".jsx": "javascript",
        ".mjs": "javascript",
        ".cjs": "javascript",
        ".py": "python",
        ".pyi": "python",
        ".rs": "rust",
        ".go": "go",
        ".java": "java",
        ".rb": "ruby",
        ".php": "php",
        ".c": "c",
        ".h": "c",
        ".cpp": "cpp",
        ".hpp": "cpp",
        ".cs": "c_sharp",
        ".swift": "swift",
        ".kt": "kotlin",
        ".scala": "scala",
        ".sql": "sql",
        ".sh": "bash",
        ".bash": "bash",
        ".css": "css",
        ".scss": "css",
        ".html": "html",
        ".vue": "vue",
        ".svelte": "svelte",
    }
)


def get_profile(language: str) -> LanguageProfile | None:
    return LANGUAGE_PROFILES.get(language)


def detect_language(file_path: str) -> str | None:
    """Return the language tag for *file_path*'s extension, or None if unknown.

    Examples:
        "src/app/main.ts" -> "typescript"
        "scripts/build.py" -> "python"
        "README" -> None
    """
    suffix = PurePosixPath(file_path).suffix.lower()
    return EXTENSION_TO_LANGUAGE.get(suffix) if suffix else None
