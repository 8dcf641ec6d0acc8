"""Domain models for the ChatVault database layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

ROLES = ("user", "assistant", "system")


@dataclass
class Message:
    role: str
    content: str

    def render(self) -> str:
        """Render as ``[role]: content``, the unit the chunker packs."""
        return f"[{self.role}]: {self.content}"

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        role = str(data.get("role", "user")).lower()
        if role not in ROLES:
            raise ValueError(f"Unknown message role '{role}' (expected one of {ROLES})")
        return cls(role=role, content=str(data.get("content") or ""))


@dataclass
class Session:
    title: str
    url: str
    summary: str
    messages: list[Message] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str | None = None  # uuid4; set at insert
    created_at: str | None = None

    @property
    def message_count(self) -> int:
        return len(self.messages)


@dataclass
class Chunk:
    chat_session_id: str
    chunk_index: int
    content: str
    embedding: list[float] | None = None  # not loaded on reads
    id: int | None = None  # set after insert; None for unsaved chunks
    created_at: str | None = None


@dataclass
class ScoredChunk:
    """A chunk returned by similarity search, with cosine similarity in [-1, 1]."""

    chunk: Chunk
    similarity: float
