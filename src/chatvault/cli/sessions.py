"""chatvault list / favorite / enhance — archive housekeeping."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from chatvault.cli.context import load_cli_config, open_db
from chatvault.cli.errors import err_session_not_found
from chatvault.db.repository import Repository
from chatvault.ingest.categorizer import DEFAULT_CATEGORY, enhance_categories

console = Console()

_DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Path to the archive database."),
]


def list_cmd(
    search: Annotated[
        str | None,
        typer.Option("--search", "-s", help="Only sessions whose title or summary contains this."),
    ] = None,
    favorites: Annotated[
        bool,
        typer.Option("--favorites", help="Only favorite sessions."),
    ] = False,
    db: _DbOption = None,
) -> None:
    """List archived sessions, newest first."""
    cfg = load_cli_config(db)
    conn = open_db(cfg)
    try:
        repo = Repository(conn)
        reserved = set(cfg.retrieval.reserved_session_ids)
        if search:
            sessions = [s for s in repo.search_sessions(search) if s.id not in reserved]
        else:
            sessions = repo.list_sessions(exclude_ids=reserved)
    finally:
        conn.close()

    if favorites:
        sessions = [s for s in sessions if s.metadata.get("favorite")]

    if not sessions:
        console.print("[dim]No sessions archived yet.[/]")
        return

    table = Table(title=f"Sessions ({len(sessions)})", show_header=True)
    table.add_column("ID", no_wrap=True)
    table.add_column("Title")
    table.add_column("Category")
    table.add_column("Msgs", justify="right")
    table.add_column("★", justify="center")
    table.add_column("Created")
    for s in sessions:
        table.add_row(
            s.id,
            s.title,
            s.metadata.get("mainCategory") or DEFAULT_CATEGORY,
            str(s.message_count),
            "★" if s.metadata.get("favorite") else "",
            s.created_at or "",
        )
    console.print(table)


def favorite_cmd(
    session_id: Annotated[str, typer.Argument(help="Session id.")],
    off: Annotated[
        bool,
        typer.Option("--off", help="Remove the favorite mark instead."),
    ] = False,
    db: _DbOption = None,
) -> None:
    """Mark (or unmark) a session as favorite."""
    cfg = load_cli_config(db)
    conn = open_db(cfg)
    try:
        metadata = Repository(conn).update_metadata(session_id, {"favorite": not off})
    finally:
        conn.close()

    if metadata is None:
        console.print(err_session_not_found(session_id))
        raise typer.Exit(1)
    state = "favorite" if metadata["favorite"] else "not favorite"
    console.print(f"[green]✓[/] {session_id} is now {state}")


def enhance_cmd(db: _DbOption = None) -> None:
    """Assign keyword-based categories to uncategorized sessions."""
    cfg = load_cli_config(db)
    conn = open_db(cfg)
    try:
        repo = Repository(conn)
        ids = [s.id for s in repo.list_sessions(exclude_ids=cfg.retrieval.reserved_session_ids)]
        result = enhance_categories(repo, ids, batch_size=cfg.ingest.batch_size)
    finally:
        conn.close()

    console.print(
        f"[green]✓[/] Enhanced {result.enhanced} of {result.total} sessions"
        + (f"  [yellow]({result.errors} errors)[/]" if result.errors else "")
    )
