"""Local repository checkout: file listing, content and hashing.

Paths handed out and accepted here are POSIX paths relative to the checkout
root, the same form a push payload uses.

Security requirements:
- shell=False always for git subprocesses.
- Paths that resolve outside the root are treated as missing.
"""

from __future__ import annotations

import hashlib
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from reposcope.config import IndexerCfg
from reposcope.db.models import IndexedFile
from reposcope.ingest.profiles import detect_language

_MAX_DEPTH = 32


class LocalCheckout:
    """A working tree on disk whose source files can be indexed.

    Args:
        root: Checkout directory.
        skip_patterns: Regexes matched (``re.search``) against relative paths;
            directories are tested with a trailing ``/``.
        max_file_size_kb: Files larger than this are not listed.
    """

    def __init__(
        self,
        root: Path | str,
        skip_patterns: list[str] | None = None,
        max_file_size_kb: int = 512,
    ) -> None:
        self.root = Path(root)
        self._skip = [re.compile(p) for p in (skip_patterns or [])]
        self.max_file_size_kb = max_file_size_kb

    @classmethod
    def from_config(cls, root: Path | str, cfg: IndexerCfg) -> LocalCheckout:
        return cls(root, skip_patterns=cfg.skip_patterns, max_file_size_kb=cfg.max_file_size_kb)

    def should_skip(self, rel_path: str) -> bool:
        return any(p.search(rel_path) for p in self._skip)

    def list_files(self) -> list[str]:
        """Return indexable files (known language, under the size limit), sorted."""
        if not self.root.is_dir():
            raise FileNotFoundError(f"Checkout directory not found: {self.root}")
        return sorted(self._scan(self.root, depth=0))

    def exists(self, rel_path: str) -> bool:
        path = self._resolve(rel_path)
        return path is not None and path.is_file()

    def read_text(self, rel_path: str) -> str:
        path = self._require(rel_path)
        return path.read_bytes().decode("utf-8", errors="replace")

    def file_hash(self, rel_path: str) -> str:
        """SHA-256 of the file's bytes."""
        h = hashlib.sha256()
        with self._require(rel_path).open("rb") as fh:
            for block in iter(lambda: fh.read(65536), b""):
                h.update(block)
        return h.hexdigest()

    def head_commit(self) -> str | None:
        """Return the checked-out commit sha, or None outside a git work tree."""
        try:
            result = subprocess.run(
                ["git", "rev-parse", "HEAD"],
                cwd=self.root,
                shell=False,
                capture_output=True,
                text=True,
                check=True,
            )
        except (subprocess.CalledProcessError, FileNotFoundError, NotADirectoryError):
            return None
        return result.stdout.strip() or None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _scan(self, directory: Path, depth: int) -> list[str]:
        if depth > _MAX_DEPTH:
            return []
        files: list[str] = []
        try:
            entries = sorted(directory.iterdir())
        except PermissionError:
            return []
        for entry in entries:
            rel = entry.relative_to(self.root).as_posix()
            if entry.is_symlink():
                continue
            if entry.is_dir():
                if not self.should_skip(rel + "/"):
                    files.extend(self._scan(entry, depth + 1))
            elif entry.is_file() and self._is_indexable(entry, rel):
                files.append(rel)
        return files

    def _is_indexable(self, path: Path, rel: str) -> bool:
        if self.should_skip(rel) or detect_language(rel) is None:
            return False
        return path.stat().st_size <= self.max_file_size_kb * 1024

    def _resolve(self, rel_path: str) -> Path | None:
        root = self.root.resolve()
        path = (root / rel_path).resolve()
        if path != root and root not in path.parents:
            return None
        return path

    def _require(self, rel_path: str) -> Path:
        path = self._resolve(rel_path)
        if path is None or not path.is_file():
            raise FileNotFoundError(f"{rel_path} is not a file in {self.root}")
        return path


# ------------------------------------------------------------------
# Diffing against the stored index
# ------------------------------------------------------------------


@dataclass
class DiffResult:
    """Files to (re)process, relative to what is already indexed."""

    to_add: list[str] = field(default_factory=list)
    to_update: list[str] = field(default_factory=list)
    to_delete: list[IndexedFile] = field(default_factory=list)
    unchanged: int = 0


def compute_diff(indexed: list[IndexedFile], checkout: LocalCheckout) -> DiffResult:
    """Compare the checkout against stored file hashes.

    New paths go to ``to_add``, paths whose hash changed to ``to_update`` and
    stored paths no longer in the checkout to ``to_delete``.
    """
    by_path = {f.file_path: f for f in indexed}
    diff = DiffResult()
    present: set[str] = set()

    for rel in checkout.list_files():
        present.add(rel)
        existing = by_path.get(rel)
        if existing is None:
            diff.to_add.append(rel)
        elif existing.file_hash != checkout.file_hash(rel):
            diff.to_update.append(rel)
        else:
            diff.unchanged += 1

    diff.to_delete = [f for f in indexed if f.file_path not in present]
    return diff
