"""Language-agnostic line-window chunking.

Used when a language has no profile, its grammar cannot be loaded, or the
syntax-tree walk finds no declarations.
"""

from __future__ import annotations

from reposcope.db.models import CodeChunk

DEFAULT_WINDOW_LINES = 80
DEFAULT_WINDOW_OVERLAP = 10


def chunk_lines(
    content: str,
    window_lines: int = DEFAULT_WINDOW_LINES,
    overlap: int = DEFAULT_WINDOW_OVERLAP,
    min_chunk_size: int = 50,
) -> list[CodeChunk]:
    """Split *content* into overlapping windows of *window_lines* lines.

    Consecutive windows start ``window_lines - overlap`` lines apart. Windows
    whose stripped text is shorter than *min_chunk_size* are skipped.
    """
    if window_lines < 1:
        raise ValueError("window_lines must be >= 1")
    if not 0 <= overlap < window_lines:
        raise ValueError("overlap must be in [0, window_lines)")

    lines = content.split("\n")
    step = window_lines - overlap
    chunks: list[CodeChunk] = []

    for start in range(0, len(lines), step):
        end = min(start + window_lines, len(lines))
        text = "\n".join(lines[start:end])
        if len(text.strip()) >= min_chunk_size:
            chunks.append(
                CodeChunk(
                    chunk_type="block",
                    name=None,
                    start_line=start + 1,
                    end_line=end,
                    content=text,
                )
            )
        if end >= len(lines):
            break

    return chunks
