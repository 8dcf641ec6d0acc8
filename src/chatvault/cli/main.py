"""ChatVault CLI entry point."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from chatvault import __version__
from chatvault.cli.ask import ask_cmd
from chatvault.cli.context import load_cli_config
from chatvault.cli.ingest import ingest_cmd
from chatvault.cli.remove import remove_cmd
from chatvault.cli.sessions import enhance_cmd, favorite_cmd, list_cmd


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"chatvault {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="chatvault",
    help=(
        "ChatVault — archive chat transcripts and ask questions about them.\n\n"
        "  chatvault ingest  Archive transcript JSON files.\n"
        "  chatvault ask     Answer a question from the archive."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    """ChatVault — archive chat transcripts and ask questions about them."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # LiteLLM logs every request at INFO/DEBUG.
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)


app.command("ingest")(ingest_cmd)
app.command("ask")(ask_cmd)
app.command("list")(list_cmd)
app.command("remove")(remove_cmd)
app.command("favorite")(favorite_cmd)
app.command("enhance")(enhance_cmd)


@app.command("serve")
def serve_cmd(
    host: Annotated[str, typer.Option("--host", help="Bind address.")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", help="Bind port.")] = 8000,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the archive database."),
    ] = None,
) -> None:
    """Serve the HTTP API with uvicorn."""
    import uvicorn

    from chatvault.api import create_app

    cfg = load_cli_config(db)
    uvicorn.run(create_app(cfg), host=host, port=port)


@app.command("version")
def version_cmd() -> None:
    """Show the installed ChatVault version."""
    typer.echo(f"chatvault {__version__}")


if __name__ == "__main__":
    app()
