"""chatvault ingest — archive transcript JSON files.

Each file holds one transcript object or a list of them:

  {"url": "https://chatgpt.com/share/...", "title": "...", "summary": "...",
   "messages": [{"role": "user", "content": "..."}, ...], "metadata": {...}}

``summary`` is optional; a missing summary is generated.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from chatvault.cli.context import load_cli_config, open_db
from chatvault.cli.errors import err_invalid_transcript
from chatvault.db.models import Message
from chatvault.db.repository import Repository
from chatvault.errors import ValidationError
from chatvault.services import build_ingestion_pipeline

console = Console()


def ingest_cmd(
    files: Annotated[
        list[Path],
        typer.Argument(help="Transcript JSON file(s).", exists=True, dir_okay=False),
    ],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the archive database (created if missing)."),
    ] = None,
) -> None:
    """Archive one or more transcripts."""
    cfg = load_cli_config(db)

    transcripts: list[tuple[Path, dict]] = []
    for path in files:
        try:
            transcripts.extend((path, t) for t in _read_transcripts(path))
        except ValueError as exc:
            console.print(err_invalid_transcript(str(path), str(exc)))
            raise typer.Exit(1)

    conn = open_db(cfg, must_exist=False)
    failures = 0
    try:
        pipeline = build_ingestion_pipeline(cfg, Repository(conn))
        for path, data in transcripts:
            label = data.get("title") or data.get("url") or path.name
            console.print(f"\n[bold]→ {label}[/]")
            try:
                messages = [Message.from_dict(m) for m in data.get("messages") or []]
                result = asyncio.run(
                    pipeline.ingest(
                        url=str(data.get("url") or ""),
                        title=str(data.get("title") or ""),
                        summary=data.get("summary"),
                        messages=messages,
                        metadata=data.get("metadata") or {},
                    )
                )
            except (ValidationError, ValueError) as exc:
                console.print(err_invalid_transcript(str(path), str(exc)))
                failures += 1
                continue

            if result.duplicate:
                console.print(
                    f"  [dim]↷ Already archived as {result.id} "
                    f"({result.chunk_count} chunks)[/]"
                )
            else:
                console.print(
                    f"  [green]✓[/] Archived as {result.id} ({result.chunk_count} chunks)"
                )
    finally:
        conn.close()

    if failures:
        raise typer.Exit(1)


def _read_transcripts(path: Path) -> list[dict]:
    """Return the transcript objects in *path*.

    Raises:
        ValueError: If the file is not JSON or holds anything but objects.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ValueError(f"not a readable JSON file ({exc})") from exc
    items = data if isinstance(data, list) else [data]
    if not items or not all(isinstance(item, dict) for item in items):
        raise ValueError("expected a transcript object or a list of transcript objects")
    return items
