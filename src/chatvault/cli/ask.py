"""chatvault ask — answer a question from the archive."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from chatvault.cli.context import load_cli_config, open_db
from chatvault.cli.errors import err_generation, err_no_api_key, err_retrieval, warn_low_confidence
from chatvault.db.repository import Repository
from chatvault.errors import GenerationError, RetrievalError, ValidationError
from chatvault.rag import llm_client
from chatvault.services import build_query_pipeline

console = Console()


def ask_cmd(
    query: Annotated[str, typer.Argument(help="Question to answer.")],
    similarity: Annotated[
        float | None,
        typer.Option("--similarity", min=0.0, max=1.0, help="First similarity threshold."),
    ] = None,
    limit: Annotated[
        int | None,
        typer.Option("--limit", min=1, help="Maximum chunks to retrieve."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the archive database."),
    ] = None,
) -> None:
    """Answer QUERY from archived conversations."""
    cfg = load_cli_config(db)
    if not llm_client.has_api_key(cfg.generation.model):
        console.print(err_no_api_key(llm_client.provider_of(cfg.generation.model)))
        raise typer.Exit(1)

    conn = open_db(cfg)
    try:
        pipeline = build_query_pipeline(cfg, Repository(conn))
        result = asyncio.run(pipeline.answer(query, threshold=similarity, limit=limit))
    except ValidationError as exc:
        console.print(f"[red]Error:[/] {exc}")
        raise typer.Exit(1)
    except RetrievalError as exc:
        console.print(err_retrieval(str(exc)))
        raise typer.Exit(1)
    except GenerationError as exc:
        console.print(err_generation(cfg.generation.model, str(exc)))
        raise typer.Exit(1)
    finally:
        conn.close()

    console.print(Panel(result.answer, title="[bold]Answer[/]", expand=False))
    if result.summary:
        console.print(f"[dim]Summary:[/] {result.summary}")

    if result.sources:
        table = Table(title="Sources", show_header=True)
        table.add_column("#", justify="right")
        table.add_column("Title")
        table.add_column("URL", overflow="fold")
        table.add_column("Similarity", justify="right")
        for i, source in enumerate(result.sources, start=1):
            table.add_row(str(i), source.title, source.url, f"{source.similarity:.3f}")
        console.print(table)

    if result.fallback_answer:
        if result.has_source_context:
            console.print(warn_low_confidence())
        console.print(Panel(result.fallback_answer, title="[bold]General answer[/]", expand=False))
