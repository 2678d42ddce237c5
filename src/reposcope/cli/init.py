"""reposcope init: scaffold a project.

Creates:
  .reposcope.db            : empty index with schema
  reposcope.yaml           : project config with the defaults spelled out
  ~/.reposcope/config.yaml : global model config (created once, mode 0o600)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console

from reposcope.config import DEFAULT_DB, ensure_global_config
from reposcope.db.connection import open_db

console = Console()

_PROJECT_YAML = """\
# reposcope project configuration.
# API keys belong in environment variables, never in this file.

embedding:
  model: openai/text-embedding-3-small
  dimensions: 1536
  batch_size: 96
  inter_batch_delay: 0.2
  max_retries: 3
  base_retry_delay: 1.0

chunking:
  min_chunk_size: 50
  max_chunk_size: 4000
  window_lines: 80
  window_overlap: 10

search:
  limit: 10
  min_score: 0.3

indexer:
  workers: 4
  max_file_size_kb: 512
"""


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = Path("."),
    global_config: Annotated[
        Optional[Path],
        typer.Option("--global-config", hidden=True, help="Override global config path (for testing)."),
    ] = None,
) -> None:
    """Create the index database and config files."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)

    db_path = project_dir / DEFAULT_DB
    existed = db_path.exists()
    open_db(db_path).close()
    mark = "[dim]↷[/]" if existed else "[green]✓[/]"
    console.print(f"  {mark} {db_path}")

    yaml_path = project_dir / "reposcope.yaml"
    if yaml_path.exists():
        console.print(f"  [dim]↷ {yaml_path} (kept)[/]")
    else:
        yaml_path.write_text(_PROJECT_YAML, encoding="utf-8")
        console.print(f"  [green]✓[/] {yaml_path}")

    cfg_path = ensure_global_config(global_config)
    console.print(f"  [green]✓[/] {cfg_path} (global config)")

    console.print("\nNext steps:")
    console.print("  1. reposcope connect owner/repo --path <checkout>")
    console.print("  2. reposcope index owner/repo")
    console.print('  3. reposcope search owner/repo "what the code does"')
