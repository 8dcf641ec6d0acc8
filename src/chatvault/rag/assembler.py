"""Context assembler: source labelling and source-list building.

Pipeline:
  1. Resolve the parent session of every retrieved chunk (one lookup per
     distinct session id).
  2. Label each chunk ``[Source i: title]`` and join the blocks into the
     grounded-prompt context.
  3. Map chunks to ``Source`` records, drop reserved sessions, keep the top N.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from chatvault.db.models import ScoredChunk, Session
from chatvault.rag.prompts import UNKNOWN_TITLE


@dataclass
class Source:
    """A cited session, as returned alongside an answer."""

    id: str
    title: str
    url: str
    similarity: float

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "similarity": self.similarity,
        }


def resolve_sessions(repo, chunks: list[ScoredChunk]) -> dict[str, Session]:
    """Fetch each distinct parent session once."""
    return repo.get_sessions(sc.chunk.chat_session_id for sc in chunks)


def build_context(chunks: list[ScoredChunk], sessions: dict[str, Session]) -> str:
    """Return the labelled context block for the grounded prompt."""
    blocks = []
    for i, sc in enumerate(chunks, start=1):
        session = sessions.get(sc.chunk.chat_session_id)
        title = session.title if session and session.title else UNKNOWN_TITLE
        blocks.append(f"[Source {i}: {title}]\n{sc.chunk.content}\n")
    return "\n".join(blocks)


def build_sources(
    chunks: list[ScoredChunk],
    sessions: dict[str, Session],
    reserved_ids: Iterable[str] = (),
    max_sources: int = 3,
) -> list[Source]:
    """Map chunks to sources in retrieval order.

    Chunks whose session is reserved or no longer exists are dropped before
    truncating to *max_sources*.
    """
    reserved = set(reserved_ids)
    sources: list[Source] = []
    for sc in chunks:
        session_id = sc.chunk.chat_session_id
        if session_id in reserved:
            continue
        session = sessions.get(session_id)
        if session is None:
            continue
        sources.append(
            Source(
                id=session_id,
                title=session.title,
                url=session.url,
                similarity=sc.similarity,
            )
        )
    return sources[:max_sources]
