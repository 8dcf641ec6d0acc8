"""ChatVault database layer."""

from chatvault.db.connection import Database
from chatvault.db.migrations import MIGRATIONS, run_migrations
from chatvault.db.repository import Repository
from chatvault.db.vectors import CHUNK_VEC_TABLE, SESSION_VEC_TABLE, ensure_vec_table

__all__ = [
    "Database",
    "Repository",
    "run_migrations",
    "MIGRATIONS",
    "ensure_vec_table",
    "CHUNK_VEC_TABLE",
    "SESSION_VEC_TABLE",
]
