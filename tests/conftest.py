"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from chatvault.db.connection import Database
from chatvault.ingest.embedder import Embedder, pseudo_embedding

# Small vectors keep the vec0 tables cheap in tests.
TEST_DIMS = 8


class WordCodec:
    """Deterministic tokenizer: one token per whitespace-separated word."""

    def __init__(self) -> None:
        self._ids: dict[str, int] = {}
        self._words: dict[int, str] = {}

    def encode(self, text: str) -> list[int]:
        tokens = []
        for word in text.split():
            if word not in self._ids:
                self._ids[word] = len(self._ids) + 1
                self._words[self._ids[word]] = word
            tokens.append(self._ids[word])
        return tokens

    def decode(self, tokens: list[int]) -> str:
        return " ".join(self._words[t] for t in tokens)


class FakeGenerator:
    """Records every call; replies via *reply* (str or callable) or raises *error*."""

    def __init__(self, reply="generated", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[dict] = []

    async def generate(self, messages, *, max_tokens=None, temperature=None) -> str:
        self.calls.append(
            {"messages": messages, "max_tokens": max_tokens, "temperature": temperature}
        )
        if self.error is not None:
            raise self.error
        if callable(self.reply):
            return self.reply(messages)
        return self.reply


class FakeEmbedder(Embedder):
    """Explicit vectors for known texts, pseudo-embedding otherwise."""

    def __init__(self, vectors: dict[str, list[float]] | None = None, dimensions: int = TEST_DIMS):
        super().__init__(dimensions)
        self.vectors = vectors or {}
        self.calls: list[str] = []

    async def _embed(self, text: str) -> list[float]:
        self.calls.append(text)
        return self.vectors.get(text) or pseudo_embedding(text, self.dimensions)


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with migrations and vec tables, closed after test."""
    conn = Database(tmp_path / ".chatvault.db", dimensions=TEST_DIMS).open()
    yield conn
    conn.close()


@pytest.fixture
def codec():
    return WordCodec()


@pytest.fixture
def fake_generator():
    return FakeGenerator()


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def unit_vector():
    """unit_vector(i) -> one-hot vector of TEST_DIMS along axis i."""

    def _make(i: int, dims: int = TEST_DIMS) -> list[float]:
        vec = [0.0] * dims
        vec[i] = 1.0
        return vec

    return _make
