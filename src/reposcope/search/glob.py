"""Path glob matching for search filters."""

from __future__ import annotations

import re


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a path glob into an anchored regex.

    ``**`` matches across ``/``; a whole ``**/`` segment also matches zero
    directories. ``*`` matches within one path segment. Everything else is
    literal.

    Examples:
        "src/**/*.ts" matches "src/a/b/c.ts" and "src/c.ts", not "lib/a.ts"
        "src/*.ts"    matches "src/a.ts", not "src/a/b.ts"
        "a**/b"       matches "ax/b", not "ab"
    """
    parts: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i) and (i == 0 or pattern[i - 1] == "/"):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("^" + "".join(parts) + "$")


def glob_match(pattern: str, path: str) -> bool:
    return glob_to_regex(pattern).match(path) is not None
