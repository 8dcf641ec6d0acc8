"""Repository pattern for all ChatVault database operations.

Single interface for: sessions, chunks, vec embeddings and similarity search.
This is the vector store the pipelines talk to; they receive it by injection.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from collections.abc import Iterable

from chatvault.db.models import Chunk, Message, ScoredChunk, Session
from chatvault.db.vectors import CHUNK_VEC_TABLE, SESSION_VEC_TABLE

_SESSION_COLUMNS = "rowid, id, title, url, summary, messages, metadata, created_at"
_CHUNK_COLUMNS = "id, chat_session_id, chunk_index, content, created_at"


class Repository:
    """Data access layer for sessions, chunks and their embeddings.

    Wraps an open sqlite3.Connection (see ``Database.open``). The connection
    is owned by the caller and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def add_session(self, session: Session, url_key: str, embedding: list[float]) -> str:
        """Insert *session* and its summary embedding atomically. Returns the new id.

        Args:
            session: Session to persist; ``id`` is generated when unset.
            url_key: Normalized URL; must be unique across sessions.
            embedding: Vector over the session summary.

        Raises:
            sqlite3.IntegrityError: If another session already owns *url_key*.
        """
        session_id = session.id or str(uuid.uuid4())
        with self._conn:
            cur = self._conn.execute(
                """
                INSERT INTO sessions (id, title, url, url_key, summary, messages, metadata)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session_id,
                    session.title,
                    session.url,
                    url_key,
                    session.summary,
                    json.dumps([m.to_dict() for m in session.messages], ensure_ascii=False),
                    json.dumps(session.metadata, ensure_ascii=False),
                ),
            )
            self._conn.execute(
                f"INSERT INTO {SESSION_VEC_TABLE}(rowid, embedding) VALUES (?, ?)",
                (cur.lastrowid, json.dumps(embedding)),
            )
        session.id = session_id
        return session_id

    def get_session(self, session_id: str) -> Session | None:
        """Return a session by id, or None if not found."""
        row = self._conn.execute(
            f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE id = ?", (session_id,)
        ).fetchone()
        return _row_to_session(row) if row else None

    def get_sessions(self, session_ids: Iterable[str]) -> dict[str, Session]:
        """Return ``{id: Session}`` for every existing id in *session_ids*."""
        ids = list(dict.fromkeys(session_ids))
        if not ids:
            return {}
        placeholders = ",".join("?" * len(ids))
        rows = self._conn.execute(
            f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE id IN ({placeholders})", ids
        ).fetchall()
        return {row["id"]: _row_to_session(row) for row in rows}

    def find_session_by_url_prefix(self, prefix: str) -> Session | None:
        """Return the oldest session whose url_key starts with *prefix*, or None.

        The comparison is case-sensitive: url_key already has its scheme and
        host lowercased, and share ids in the path differ by case.
        """
        row = self._conn.execute(
            f"""
            SELECT {_SESSION_COLUMNS} FROM sessions
            WHERE substr(url_key, 1, length(?)) = ?
            ORDER BY created_at LIMIT 1
            """,
            (prefix, prefix),
        ).fetchone()
        return _row_to_session(row) if row else None

    def find_session_by_url_key(self, url_key: str) -> Session | None:
        row = self._conn.execute(
            f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE url_key = ?", (url_key,)
        ).fetchone()
        return _row_to_session(row) if row else None

    def latest_session(self) -> Session | None:
        """Return the most recently created session, or None if the store is empty."""
        row = self._conn.execute(
            f"SELECT {_SESSION_COLUMNS} FROM sessions ORDER BY created_at DESC, rowid DESC LIMIT 1"
        ).fetchone()
        return _row_to_session(row) if row else None

    def list_sessions(self, exclude_ids: Iterable[str] = ()) -> list[Session]:
        """Return all sessions newest first, skipping *exclude_ids*."""
        excluded = set(exclude_ids)
        rows = self._conn.execute(
            f"SELECT {_SESSION_COLUMNS} FROM sessions ORDER BY created_at DESC, rowid DESC"
        ).fetchall()
        return [_row_to_session(r) for r in rows if r["id"] not in excluded]

    def search_sessions(self, keyword: str) -> list[Session]:
        """Case-insensitive substring search over title and summary, newest first."""
        escaped = keyword.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        rows = self._conn.execute(
            f"""
            SELECT {_SESSION_COLUMNS} FROM sessions
            WHERE title LIKE ? ESCAPE '\\' OR summary LIKE ? ESCAPE '\\'
            ORDER BY created_at DESC, rowid DESC
            """,
            (pattern, pattern),
        ).fetchall()
        return [_row_to_session(r) for r in rows]

    def update_metadata(self, session_id: str, changes: dict) -> dict | None:
        """Merge *changes* into a session's metadata. Returns the new metadata.

        This is the only mutation sessions support after creation.
        Returns None if the session does not exist.
        """
        with self._conn:
            row = self._conn.execute(
                "SELECT metadata FROM sessions WHERE id = ?", (session_id,)
            ).fetchone()
            if row is None:
                return None
            metadata = {**json.loads(row["metadata"]), **changes}
            self._conn.execute(
                "UPDATE sessions SET metadata = ? WHERE id = ?",
                (json.dumps(metadata, ensure_ascii=False), session_id),
            )
        return metadata

    def delete_session(self, session_id: str) -> bool:
        """Delete a session, its chunks, and every vec row belonging to them.

        Chunk rows cascade via the foreign key; vec0 tables do not support
        foreign keys, so their rows are removed explicitly first.
        Returns False if the session did not exist.
        """
        with self._conn:
            row = self._conn.execute(
                "SELECT rowid FROM sessions WHERE id = ?", (session_id,)
            ).fetchone()
            if row is None:
                return False
            chunk_ids = [
                r[0]
                for r in self._conn.execute(
                    "SELECT id FROM chunks WHERE chat_session_id = ?", (session_id,)
                ).fetchall()
            ]
            if chunk_ids:
                placeholders = ",".join("?" * len(chunk_ids))
                self._conn.execute(
                    f"DELETE FROM {CHUNK_VEC_TABLE} WHERE rowid IN ({placeholders})",  # noqa: S608
                    chunk_ids,
                )
            self._conn.execute(
                f"DELETE FROM {SESSION_VEC_TABLE} WHERE rowid = ?", (row[0],)
            )
            self._conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
        return True

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def add_chunks(self, chunks: list[Chunk]) -> list[int]:
        """Insert one batch of embedded chunks in a single transaction.

        Either the whole batch is stored or none of it is.
        Returns the new chunk ids in input order.

        Raises:
            ValueError: If a chunk has no embedding.
            sqlite3.Error: On any storage failure (the batch is rolled back).
        """
        ids: list[int] = []
        with self._conn:
            for chunk in chunks:
                if chunk.embedding is None:
                    raise ValueError(
                        f"Chunk {chunk.chunk_index} of session {chunk.chat_session_id} "
                        "has no embedding"
                    )
                cur = self._conn.execute(
                    """
                    INSERT INTO chunks (chat_session_id, chunk_index, content)
                    VALUES (?, ?, ?)
                    """,
                    (chunk.chat_session_id, chunk.chunk_index, chunk.content),
                )
                self._conn.execute(
                    f"INSERT INTO {CHUNK_VEC_TABLE}(rowid, embedding) VALUES (?, ?)",
                    (cur.lastrowid, json.dumps(chunk.embedding)),
                )
                ids.append(cur.lastrowid)
        for chunk, chunk_id in zip(chunks, ids):
            chunk.id = chunk_id
        return ids

    def get_chunks(self, session_id: str) -> list[Chunk]:
        """Return a session's chunks ordered by chunk_index."""
        rows = self._conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM chunks WHERE chat_session_id = ? ORDER BY chunk_index",
            (session_id,),
        ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def count_chunks(self, session_id: str) -> int:
        """Return the number of chunks belonging to *session_id*."""
        return self._conn.execute(
            "SELECT COUNT(*) FROM chunks WHERE chat_session_id = ?", (session_id,)
        ).fetchone()[0]

    # ------------------------------------------------------------------
    # Similarity search
    # ------------------------------------------------------------------

    def match_chunks(
        self, query_embedding: list[float], threshold: float, limit: int
    ) -> list[ScoredChunk]:
        """Nearest-neighbour chunk search by cosine similarity.

        Returns at most *limit* chunks with ``similarity > threshold``, best
        first, where ``similarity = 1 - cosine_distance``. Taking the top
        *limit* neighbours and then filtering yields the same rows as
        filtering first, because both orders are by the same score.
        """
        if limit < 1:
            return []
        vec_rows = self._conn.execute(
            f"SELECT rowid, distance FROM {CHUNK_VEC_TABLE} "
            "WHERE embedding MATCH ? AND k = ? ORDER BY distance",
            (json.dumps(query_embedding), limit),
        ).fetchall()

        scored = [
            (row["rowid"], 1.0 - row["distance"])
            for row in vec_rows
            if row["distance"] is not None and 1.0 - row["distance"] > threshold
        ]
        if not scored:
            return []

        placeholders = ",".join("?" * len(scored))
        chunk_rows = self._conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM chunks WHERE id IN ({placeholders})",
            [rowid for rowid, _ in scored],
        ).fetchall()
        by_id = {r["id"]: _row_to_chunk(r) for r in chunk_rows}
        return [
            ScoredChunk(chunk=by_id[rowid], similarity=similarity)
            for rowid, similarity in scored
            if rowid in by_id
        ]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_session(row: sqlite3.Row) -> Session:
    return Session(
        id=row["id"],
        title=row["title"],
        url=row["url"],
        summary=row["summary"],
        messages=[Message.from_dict(m) for m in json.loads(row["messages"])],
        metadata=json.loads(row["metadata"]),
        created_at=row["created_at"],
    )


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        id=row["id"],
        chat_session_id=row["chat_session_id"],
        chunk_index=row["chunk_index"],
        content=row["content"],
        created_at=row["created_at"],
    )
