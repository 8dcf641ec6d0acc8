"""ChatVault rich error messages.

Every error shown to the user contains:
  1. What went wrong
  2. The exact action that fixes it

Usage:
    from chatvault.cli.errors import err_no_db
    console.print(err_no_db(".chatvault.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from chatvault.rag.llm_client import _PROVIDER_ENV


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_var = _PROVIDER_ENV.get(provider.lower()) or f"{provider.upper()}_API_KEY"
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_no_db(db_path: str = ".chatvault.db") -> str:
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  chatvault ingest <transcript.json>  to archive a first conversation."
    )


def err_config(message: str) -> str:
    return (
        f"[red]Error:[/] Invalid configuration: {message}\n"
        "  Fix chatvault.yaml (or ~/.chatvault/config.yaml) and retry."
    )


def err_invalid_transcript(path: str, reason: str) -> str:
    """Transcript file cannot be read or has the wrong shape."""
    return (
        f"[red]Error:[/] Cannot ingest '{path}': {reason}\n"
        "  Expected JSON:  {\"url\": \"https://...\", \"title\": \"...\", "
        "\"messages\": [{\"role\": \"user\", \"content\": \"...\"}]}"
    )


def err_session_not_found(session_id: str) -> str:
    return (
        f"[yellow]Session not found:[/] '{session_id}' is not in the archive.\n"
        "  Run:  chatvault list  to see all archived sessions."
    )


def err_retrieval(detail: str) -> str:
    """Vector store failure: distinct from 'no relevant information'."""
    return (
        f"[red]Error:[/] Search backend unavailable ({detail}).\n"
        "  Check that the database file is readable and not locked, then retry."
    )


def err_generation(model: str, detail: str) -> str:
    return (
        f"[red]Error:[/] Answer generation with '{model}' failed ({detail}).\n"
        "  Check the model name under generation.model and your provider API key."
    )


def warn_low_confidence() -> str:
    """Shown with the ungrounded fallback answer."""
    return (
        "[yellow]Low confidence:[/] the archive matched this question only weakly.\n"
        "  A general answer without archive context is shown below."
    )
