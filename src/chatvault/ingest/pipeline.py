"""Ingestion pipeline — dedup, sanitize, embed, chunk and persist a transcript.

Flow for a new URL:

1. Validate and normalize the URL (``scheme://host[:port]/path``).
2. Short-circuit if a session already exists under that prefix.
3. Sanitize title, summary, messages and metadata; summarize and categorize
   when those are missing.
4. Embed the summary and insert the session (the ``url_key`` UNIQUE
   constraint settles concurrent ingests of the same URL).
5. Chunk the messages, embed every chunk concurrently, insert in sequential
   batches. A failing batch is logged and skipped.
6. Await the export hook.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from dataclasses import dataclass
from urllib.parse import urlsplit

from chatvault.db.models import Chunk, Message, Session
from chatvault.db.repository import Repository
from chatvault.errors import ValidationError
from chatvault.hooks import ExportHook, NullExportHook
from chatvault.ingest.categorizer import DEFAULT_CATEGORY
from chatvault.ingest.chunker import MessageChunker
from chatvault.ingest.embedder import Embedder
from chatvault.sanitize import sanitize, sanitize_data

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10


@dataclass
class IngestResult:
    """Outcome of one ``ingest()`` call.

    ``chunk_count`` counts chunks actually persisted; on a duplicate it is the
    stored count of the existing session.
    """

    id: str
    duplicate: bool
    chunk_count: int


def normalize_url(url: str) -> str:
    """Return ``scheme://host[:port]/path`` for *url*, dropping query and fragment.

    Raises:
        ValidationError: If *url* is empty or has no scheme or host.
    """
    if not url or not url.strip():
        raise ValidationError("url is required")
    parts = urlsplit(url.strip())
    if not parts.scheme or not parts.netloc:
        raise ValidationError(f"url must be absolute (scheme://host/...): {url!r}")
    return f"{parts.scheme.lower()}://{parts.netloc.lower()}{parts.path}"


class IngestionPipeline:
    """Archive transcripts into the vector store.

    Args:
        repo: Open Repository.
        embedder: Embedder for summaries and chunks.
        chunker: MessageChunker bound to the configured token limit.
        batch_size: Chunks per insert transaction.
        summarizer: Optional ConversationSummarizer, used when no summary is given.
        categorizer: Optional SessionCategorizer, used when metadata has no
            ``mainCategory``.
        hook: Export hook awaited after each new session.
    """

    def __init__(
        self,
        repo: Repository,
        embedder: Embedder,
        chunker: MessageChunker,
        batch_size: int = DEFAULT_BATCH_SIZE,
        summarizer=None,
        categorizer=None,
        hook: ExportHook | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._repo = repo
        self._embedder = embedder
        self._chunker = chunker
        self._batch_size = batch_size
        self._summarizer = summarizer
        self._categorizer = categorizer
        self._hook = hook or NullExportHook()

    async def ingest(
        self,
        url: str,
        title: str,
        summary: str | None,
        messages: list[Message],
        metadata: dict | None = None,
    ) -> IngestResult:
        """Archive one transcript; idempotent per normalized URL.

        Raises:
            ValidationError: On an empty/relative url or an empty message list.
        """
        url_key = normalize_url(url)
        if not messages:
            raise ValidationError("messages must not be empty")

        existing = self._repo.find_session_by_url_prefix(url_key)
        if existing is not None:
            logger.info("Duplicate ingest for %s (session %s)", url_key, existing.id)
            return self._duplicate(existing.id)

        clean_messages = [Message(m.role, sanitize(m.content)) for m in messages]
        session = Session(
            title=sanitize(title),
            url=url.strip(),
            summary=sanitize(summary),
            messages=clean_messages,
            metadata=sanitize_data(dict(metadata or {})),
        )
        await self._fill_summary(session)
        await self._fill_category(session)

        session_embedding = await self._embedder.embed(session.summary)
        try:
            session_id = self._repo.add_session(session, url_key, session_embedding)
        except sqlite3.IntegrityError:
            winner = self._repo.find_session_by_url_key(url_key)
            if winner is None:
                raise
            logger.info("Concurrent ingest for %s lost to session %s", url_key, winner.id)
            return self._duplicate(winner.id)

        chunk_count = await self._store_chunks(session_id, clean_messages)
        logger.info(
            "Ingested '%s' as %s (%d chunks)", session.title, session_id, chunk_count
        )

        try:
            await self._hook.on_ingested(session, chunk_count)
        except Exception as exc:
            logger.warning("Export hook failed for session %s: %s", session_id, exc)

        return IngestResult(id=session_id, duplicate=False, chunk_count=chunk_count)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _duplicate(self, session_id: str) -> IngestResult:
        return IngestResult(
            id=session_id,
            duplicate=True,
            chunk_count=self._repo.count_chunks(session_id),
        )

    async def _fill_summary(self, session: Session) -> None:
        if session.summary or self._summarizer is None:
            return
        result = await self._summarizer.summarize(session.title, session.messages)
        session.summary = sanitize(result.summary)
        session.metadata.setdefault("keywords", sanitize_data(result.keywords))
        session.metadata.setdefault("model", result.model)

    async def _fill_category(self, session: Session) -> None:
        if session.metadata.get("mainCategory"):
            return
        if self._categorizer is None:
            session.metadata["mainCategory"] = DEFAULT_CATEGORY
            return
        session.metadata["mainCategory"] = await self._categorizer.classify(session)

    async def _store_chunks(self, session_id: str, messages: list[Message]) -> int:
        """Chunk, embed concurrently, insert in batches. Returns persisted count."""
        text_chunks = self._chunker.chunk(messages)
        chunks = [
            Chunk(
                chat_session_id=session_id,
                chunk_index=tc.chunk_index,
                content=sanitize(tc.content),
            )
            for tc in text_chunks
        ]
        embeddings = await asyncio.gather(
            *(self._embedder.embed(chunk.content) for chunk in chunks)
        )
        for chunk, embedding in zip(chunks, embeddings):
            chunk.embedding = embedding

        stored = 0
        for start in range(0, len(chunks), self._batch_size):
            batch = chunks[start : start + self._batch_size]
            try:
                self._repo.add_chunks(batch)
            except (sqlite3.Error, ValueError) as exc:
                logger.error(
                    "Chunk batch %d-%d of session %s failed: %s",
                    batch[0].chunk_index,
                    batch[-1].chunk_index,
                    session_id,
                    exc,
                )
                continue
            stored += len(batch)
        return stored
