"""chatvault remove — delete an archived session.

Removes the session record, its chunks and every embedding row belonging to
them.

Usage:
  chatvault remove 0b6f...
  chatvault remove 0b6f... --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from chatvault.cli.context import load_cli_config, open_db
from chatvault.cli.errors import err_session_not_found
from chatvault.db.repository import Repository

console = Console()


def remove_cmd(
    session_id: Annotated[str, typer.Argument(help="Session id to remove.")],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the archive database."),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove a session and all its chunks from the archive."""
    cfg = load_cli_config(db)
    conn = open_db(cfg)
    try:
        repo = Repository(conn)
        existing = repo.get_session(session_id)
        if existing is None:
            console.print(err_session_not_found(session_id))
            raise typer.Exit(1)

        chunk_count = repo.count_chunks(session_id)
        console.print(f"\nRemove session: [bold]{existing.title}[/]")
        console.print(f"  URL: {existing.url}  |  Chunks: {chunk_count}")

        if not yes:
            if not typer.confirm("Confirm removal?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        repo.delete_session(session_id)
        console.print(f"\n[green]✓[/] Removed: {session_id}")
        console.print(f"  {chunk_count} chunks deleted")
    finally:
        conn.close()
