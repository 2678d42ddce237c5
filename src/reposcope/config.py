"""reposcope configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (REPOSCOPE_EMBEDDING_MODEL, REPOSCOPE_DB)
  3. Per-project reposcope.yaml
  4. Global ~/.reposcope/config.yaml  (defaults only, no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load(); never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from reposcope.errors import ConfigError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".reposcope"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "reposcope.yaml"

DEFAULT_DB: str = ".reposcope.db"

# Key names that look like credentials. Matches api_key, github_token, secret,
# password, credentials; does not match max_retries or batch_size.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["embedding", "chunking", "search", "indexer", "database"]
)

_DEFAULT_SKIP_PATTERNS: tuple[str, ...] = (
    r"node_modules/",
    r"\.git/",
    r"(^|/)dist/",
    r"(^|/)build/",
    r"\.next/",
    r"(^|/)coverage/",
    r"(^|/)\.env",
    r"package-lock\.json$",
    r"pnpm-lock\.yaml$",
    r"yarn\.lock$",
)


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding provider and rate-limit configuration (reposcope.yaml: embedding:).

    Attributes:
        model: LiteLLM embedding model string (provider/model format).
        dimensions: Vector size produced by *model*.
        batch_size: Maximum texts per provider call.
        inter_batch_delay: Seconds to sleep between consecutive batches.
        max_retries: Retries per batch after the first attempt.
        base_retry_delay: Backoff base in seconds; retry k waits base * 2**k.
    """

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536
    batch_size: int = 96
    inter_batch_delay: float = 0.2
    max_retries: int = 3
    base_retry_delay: float = 1.0


@dataclass
class ChunkingCfg:
    """Chunk size thresholds, in characters, and fallback window shape."""

    min_chunk_size: int = 50
    max_chunk_size: int = 4000
    window_lines: int = 80
    window_overlap: int = 10


@dataclass
class SearchCfg:
    """Similarity search defaults (reposcope.yaml: search:)."""

    limit: int = 10
    min_score: float = 0.3
    overfetch_factor: int = 3


@dataclass
class IndexerCfg:
    """Indexing pipeline settings (reposcope.yaml: indexer:)."""

    workers: int = 4
    max_file_size_kb: int = 512
    skip_patterns: list[str] = field(default_factory=lambda: list(_DEFAULT_SKIP_PATTERNS))


@dataclass
class ReposcopeConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    db_path: str = DEFAULT_DB
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    search: SearchCfg = field(default_factory=SearchCfg)
    indexer: IndexerCfg = field(default_factory=IndexerCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}'; ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: ReposcopeConfig) -> None:
    """Raise ConfigError for values the pipeline cannot run with."""
    e, c, s, i = cfg.embedding, cfg.chunking, cfg.search, cfg.indexer
    if e.batch_size < 1:
        raise ConfigError(f"embedding.batch_size must be >= 1, got {e.batch_size}")
    if e.dimensions < 1:
        raise ConfigError(f"embedding.dimensions must be >= 1, got {e.dimensions}")
    if e.max_retries < 0:
        raise ConfigError(f"embedding.max_retries must be >= 0, got {e.max_retries}")
    if e.inter_batch_delay < 0 or e.base_retry_delay < 0:
        raise ConfigError("embedding delays must be >= 0")
    if c.min_chunk_size < 1 or c.max_chunk_size < c.min_chunk_size:
        raise ConfigError(
            "chunking sizes must satisfy 1 <= min_chunk_size <= max_chunk_size, "
            f"got {c.min_chunk_size}/{c.max_chunk_size}"
        )
    if c.window_lines < 1 or not 0 <= c.window_overlap < c.window_lines:
        raise ConfigError(
            "chunking.window_overlap must be in [0, window_lines), "
            f"got {c.window_overlap}/{c.window_lines}"
        )
    if s.limit < 1 or s.overfetch_factor < 1:
        raise ConfigError("search.limit and search.overfetch_factor must be >= 1")
    if not 0.0 <= s.min_score <= 1.0:
        raise ConfigError(f"search.min_score must be in [0, 1], got {s.min_score}")
    if i.workers < 1:
        raise ConfigError(f"indexer.workers must be >= 1, got {i.workers}")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> ReposcopeConfig:
    """Build a *ReposcopeConfig* from a merged raw YAML dict."""
    cfg = ReposcopeConfig()

    try:
        if "database" in data:
            cfg.db_path = str(data["database"].get("path", cfg.db_path))

        if "embedding" in data:
            e = data["embedding"]
            d = cfg.embedding
            cfg.embedding = EmbeddingCfg(
                model=str(e.get("model", d.model)),
                dimensions=int(e.get("dimensions", d.dimensions)),
                batch_size=int(e.get("batch_size", d.batch_size)),
                inter_batch_delay=float(e.get("inter_batch_delay", d.inter_batch_delay)),
                max_retries=int(e.get("max_retries", d.max_retries)),
                base_retry_delay=float(e.get("base_retry_delay", d.base_retry_delay)),
            )

        if "chunking" in data:
            ch = data["chunking"]
            d = cfg.chunking
            cfg.chunking = ChunkingCfg(
                min_chunk_size=int(ch.get("min_chunk_size", d.min_chunk_size)),
                max_chunk_size=int(ch.get("max_chunk_size", d.max_chunk_size)),
                window_lines=int(ch.get("window_lines", d.window_lines)),
                window_overlap=int(ch.get("window_overlap", d.window_overlap)),
            )

        if "search" in data:
            s = data["search"]
            d = cfg.search
            cfg.search = SearchCfg(
                limit=int(s.get("limit", d.limit)),
                min_score=float(s.get("min_score", d.min_score)),
                overfetch_factor=int(s.get("overfetch_factor", d.overfetch_factor)),
            )

        if "indexer" in data:
            ix = data["indexer"]
            d = cfg.indexer
            cfg.indexer = IndexerCfg(
                workers=int(ix.get("workers", d.workers)),
                max_file_size_kb=int(ix.get("max_file_size_kb", d.max_file_size_kb)),
                skip_patterns=[str(p) for p in ix.get("skip_patterns", d.skip_patterns)],
            )
    except (TypeError, ValueError, AttributeError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    return cfg


def _apply_env_overrides(cfg: ReposcopeConfig) -> ReposcopeConfig:
    """Apply REPOSCOPE_* environment variable overrides."""
    if model := os.environ.get("REPOSCOPE_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if db_path := os.environ.get("REPOSCOPE_DB"):
        cfg.db_path = db_path
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> ReposcopeConfig:
    """Load and return a merged *ReposcopeConfig*.

    Applies layers in order: global → per-project → env vars.

    Args:
        project_dir: Directory to search for *reposcope.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields or any
            value is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _apply_env_overrides(_cfg_from_dict(merged))
    _validate(cfg)
    return cfg


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.reposcope/config.yaml`` with defaults if it does not exist.

    The directory is created with mode 0o700 and the file with mode 0o600.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# reposcope global configuration; defaults only.\n"
            "# NEVER store API keys here; use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "\n"
            "embedding:\n"
            "  model: openai/text-embedding-3-small\n"
            "  dimensions: 1536\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
