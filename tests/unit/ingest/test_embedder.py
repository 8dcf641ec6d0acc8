"""Tests for the embedders and the pseudo-embedding fallback."""

from __future__ import annotations

import asyncio
import math
from unittest.mock import AsyncMock, patch

import pytest

from chatvault.config import EmbeddingCfg
from chatvault.ingest.embedder import (
    SHORT_TEXT_TEMPLATE,
    LiteLLMEmbedder,
    PseudoEmbedder,
    build_embedder,
    prepare_text,
    pseudo_embedding,
)


# ------------------------------------------------------------------
# Pseudo-embedding
# ------------------------------------------------------------------


def test_pseudo_embedding_is_deterministic():
    assert pseudo_embedding("hello", 16) == pseudo_embedding("hello", 16)


def test_pseudo_embedding_differs_by_text():
    assert pseudo_embedding("hello", 16) != pseudo_embedding("world", 16)


def test_pseudo_embedding_formula():
    seed = 7
    for ch in "ab":
        seed = (seed * 31 + ord(ch)) % 997
    vec = pseudo_embedding("ab", 4)
    assert vec == [math.cos((seed + i) / 100) * 0.5 for i in range(4)]


def test_pseudo_embedding_dimension_and_range():
    vec = pseudo_embedding("안녕하세요", 1536)
    assert len(vec) == 1536
    assert all(-0.5 <= v <= 0.5 for v in vec)


# ------------------------------------------------------------------
# Text preparation
# ------------------------------------------------------------------


def test_prepare_text_expands_short_text():
    assert prepare_text("hi") == SHORT_TEXT_TEMPLATE.format(text="hi")


def test_prepare_text_keeps_long_text():
    assert prepare_text(" hello\x00 world ") == "hello world"


def test_prepare_text_empty():
    assert prepare_text(None) == ""


# ------------------------------------------------------------------
# Embedders
# ------------------------------------------------------------------


def test_empty_text_gives_zero_vector():
    vec = asyncio.run(PseudoEmbedder(8).embed("  "))
    assert vec == [0.0] * 8


def test_pseudo_embedder_uses_prepared_text():
    vec = asyncio.run(PseudoEmbedder(8).embed("hi"))
    assert vec == pseudo_embedding(SHORT_TEXT_TEMPLATE.format(text="hi"), 8)


def test_litellm_embedder_returns_provider_vector(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    with patch(
        "chatvault.ingest.embedder.llm_client.embed",
        new=AsyncMock(return_value=[0.1, 0.2, 0.3]),
    ) as mock_embed:
        vec = asyncio.run(LiteLLMEmbedder("openai/text-embedding-3-small", 3).embed("hello"))
    assert vec == [0.1, 0.2, 0.3]
    mock_embed.assert_awaited_once_with("openai/text-embedding-3-small", "hello")


def test_litellm_embedder_falls_back_on_error(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    with patch(
        "chatvault.ingest.embedder.llm_client.embed",
        new=AsyncMock(side_effect=RuntimeError("rate limited")),
    ):
        vec = asyncio.run(LiteLLMEmbedder("openai/text-embedding-3-small", 8).embed("hello"))
    assert vec == pseudo_embedding("hello", 8)


def test_litellm_embedder_falls_back_without_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with patch("chatvault.ingest.embedder.llm_client.embed", new=AsyncMock()) as mock_embed:
        vec = asyncio.run(LiteLLMEmbedder("openai/text-embedding-3-small", 8).embed("hello"))
    assert vec == pseudo_embedding("hello", 8)
    mock_embed.assert_not_awaited()


def test_litellm_embedder_rejects_wrong_dimensions(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    with patch(
        "chatvault.ingest.embedder.llm_client.embed",
        new=AsyncMock(return_value=[0.1, 0.2]),
    ):
        vec = asyncio.run(LiteLLMEmbedder("openai/text-embedding-3-small", 8).embed("hello"))
    assert vec == pseudo_embedding("hello", 8)


def test_build_embedder_selects_by_mode():
    assert isinstance(build_embedder(EmbeddingCfg(mode="degraded", dimensions=8)), PseudoEmbedder)
    live = build_embedder(EmbeddingCfg(mode="live", dimensions=8))
    assert isinstance(live, LiteLLMEmbedder)
    assert live.dimensions == 8


def test_invalid_dimensions():
    with pytest.raises(ValueError):
        PseudoEmbedder(0)
