"""SQLite connection layer with sqlite-vec extension."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec

from chatvault.db.migrations import run_migrations
from chatvault.db.vectors import ensure_vec_tables


class Database:
    """Single-file SQLite store with sqlite-vec vector search support."""

    def __init__(self, db_path: Path | str, dimensions: int = 1536) -> None:
        """Store the database path. Call connect() to open the connection.

        Args:
            db_path: Path to the SQLite database file (created if missing).
            dimensions: Embedding dimensions for the vec tables.
        """
        self.db_path = Path(db_path)
        self.dimensions = dimensions
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Open a connection, load sqlite-vec, and return the connection.

        The connection may be handed between threads (the HTTP server opens it
        in one worker and uses it in another) but must not be shared by two
        requests at once.
        """
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.enable_load_extension(True)
        sqlite_vec.load(conn)
        conn.enable_load_extension(False)
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    def open(self) -> sqlite3.Connection:
        """Connect, apply migrations, and create the vec tables."""
        conn = self.connect()
        run_migrations(conn)
        ensure_vec_tables(conn, self.dimensions)
        return conn

    def __enter__(self) -> sqlite3.Connection:
        """Open the initialised database and return the connection."""
        self._conn = self.open()
        return self._conn

    def __exit__(self, *args: object) -> None:
        """Close the connection when leaving the context manager."""
        if self._conn:
            self._conn.close()
            self._conn = None
