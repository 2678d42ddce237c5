"""reposcope rich error messages: actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from reposcope.cli.errors import err_no_db
    console.print(err_no_db(".reposcope.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from reposcope.ingest.providers import api_key_env_var


def err_no_api_key(model: str) -> str:
    """No API key for the provider of *model*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = api_key_env_var(model) or f"{provider.upper()}_API_KEY"
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_no_db(db_path: str = ".reposcope.db") -> str:
    """No database at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  reposcope init   or   reposcope connect owner/repo --path <checkout>"
    )


def err_connection_not_found(ident: str) -> str:
    return (
        f"[red]Error:[/] No tracked repository '{ident}'.\n"
        "  Run:  reposcope status  to list connections."
    )


def err_duplicate_connection(full_name: str) -> str:
    return (
        f"[red]Error:[/] '{full_name}' is already connected.\n"
        "  Run:  reposcope status  to see its id."
    )


def err_bad_full_name(full_name: str) -> str:
    return (
        f"[red]Error:[/] Repository name must look like 'owner/repo', got '{full_name}'.\n"
        "  Example:  reposcope connect acme/widgets --path ./widgets"
    )


def err_checkout_missing(path: str) -> str:
    return (
        f"[red]Error:[/] Checkout directory not found: '{path}'\n"
        "  Clone the repository first, or pass the right --path."
    )


def err_invalid_query(message: str) -> str:
    return f"[red]Error:[/] {message}\n  Check the search options:  reposcope search --help"


def err_invalid_payload(path: str, message: str) -> str:
    return (
        f"[red]Error:[/] '{path}' is not a valid push event.\n"
        f"  {message}\n"
        "  Pass the JSON body of a push webhook delivery."
    )


def err_embedding_failed(message: str) -> str:
    return (
        f"[red]Error:[/] Embedding provider failed: {message}\n"
        "  Check provider status and rate limits, then retry."
    )


def err_dimension_mismatch(message: str) -> str:
    return (
        f"[red]Error:[/] {message}\n"
        "  Set embedding.dimensions in reposcope.yaml to match the model, "
        "or use a fresh --db."
    )


def err_config(message: str) -> str:
    return f"[red]Error:[/] {message}\n  Fix reposcope.yaml or ~/.reposcope/config.yaml."
