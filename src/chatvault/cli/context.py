"""Config and database helpers shared by the CLI commands."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import typer
from rich.console import Console

from chatvault.cli.errors import err_config, err_no_db
from chatvault.config import ChatVaultConfig, ConfigError, load_config
from chatvault.db.connection import Database

console = Console()


def load_cli_config(db: Path | None = None) -> ChatVaultConfig:
    """Load config from the working directory; ``--db`` overrides database.path."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)
    if db is not None:
        cfg.database.path = str(db)
    return cfg


def open_db(cfg: ChatVaultConfig, must_exist: bool = True) -> sqlite3.Connection:
    """Open the configured store, exiting with a hint if it does not exist yet."""
    db_path = Path(cfg.database.path)
    if must_exist and not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)
    return Database(db_path, cfg.embedding.dimensions).open()
