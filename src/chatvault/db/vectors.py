"""sqlite-vec virtual table management.

Vec tables are keyed by the rowid of the row they embed and use cosine
distance, so ``similarity = 1 - distance``.
"""

from __future__ import annotations

import re
import sqlite3

CHUNK_VEC_TABLE = "vec_chunks"
SESSION_VEC_TABLE = "vec_sessions"


def ensure_vec_table(conn: sqlite3.Connection, table: str, dimensions: int) -> str:
    """Create the cosine-distance vec table *table* if it doesn't already exist.

    Args:
        conn: Active database connection (sqlite-vec must be loaded).
        table: Table name; must be a lowercase identifier starting with ``vec_``.
        dimensions: Embedding vector dimensions (e.g. 1536 for text-embedding-3-small).

    Returns:
        The table name.

    Raises:
        ValueError: On a malformed table name, non-positive dimensions, or an
            existing table declared with different dimensions.
    """
    if not re.fullmatch(r"vec_[a-z0-9_]+", table):
        raise ValueError(f"Invalid vec table name '{table}'")
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    existing = conn.execute(
        "SELECT sql FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()

    if existing is None:
        conn.execute(
            f"CREATE VIRTUAL TABLE {table} USING vec0("
            f"embedding float[{dimensions}] distance_metric=cosine)"
        )
        conn.commit()
    elif f"float[{dimensions}]" not in existing[0]:
        raise ValueError(
            f"Vec table '{table}' exists with different dimensions than {dimensions}. "
            "Use a fresh database or the original embedding model."
        )

    return table


def ensure_vec_tables(conn: sqlite3.Connection, dimensions: int) -> None:
    """Create both the chunk and the session vec tables."""
    ensure_vec_table(conn, CHUNK_VEC_TABLE, dimensions)
    ensure_vec_table(conn, SESSION_VEC_TABLE, dimensions)
