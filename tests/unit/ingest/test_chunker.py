"""Tests for MessageChunker greedy token-bounded packing."""

from __future__ import annotations

import pytest

from chatvault.db.models import Message
from chatvault.ingest.chunker import MessageChunker


def _msgs(*pairs):
    return [Message(role, content) for role, content in pairs]


def test_short_conversation_is_one_chunk(codec):
    chunker = MessageChunker(codec, max_tokens=500)
    chunks = chunker.chunk(_msgs(("user", "What is X?"), ("assistant", "X is Y.")))
    assert len(chunks) == 1
    assert chunks[0].chunk_index == 0
    assert chunks[0].content == "[user]: What is X?\n\n[assistant]: X is Y."


def test_empty_message_list(codec):
    assert MessageChunker(codec).chunk([]) == []


def test_flushes_when_next_message_does_not_fit(codec):
    # "[user]: a b" is three tokens
    chunker = MessageChunker(codec, max_tokens=5)
    chunks = chunker.chunk(_msgs(("user", "a b"), ("assistant", "c d"), ("user", "e")))
    assert [c.content for c in chunks] == [
        "[user]: a b",
        "[assistant]: c d\n\n[user]: e",
    ]


def test_oversized_message_is_split_after_flushing_buffer(codec):
    chunker = MessageChunker(codec, max_tokens=3)
    chunks = chunker.chunk(_msgs(("user", "hi"), ("assistant", "one two three four five")))
    assert [c.content for c in chunks] == [
        "[user]: hi",
        "[assistant]: one two",
        "three four five",
    ]
    assert [c.chunk_index for c in chunks] == [0, 1, 2]


def test_message_after_oversized_starts_new_chunk(codec):
    chunker = MessageChunker(codec, max_tokens=3)
    chunks = chunker.chunk(_msgs(("user", "a b c d"), ("assistant", "ok")))
    assert chunks[-1].content == "[assistant]: ok"


def test_token_bound_and_index_contiguity(codec):
    chunker = MessageChunker(codec, max_tokens=7)
    messages = [
        Message("user" if i % 2 == 0 else "assistant", " ".join(f"w{i}_{j}" for j in range(i % 11)))
        for i in range(40)
    ]
    chunks = chunker.chunk(messages)
    assert chunks
    assert all(len(codec.encode(c.content)) <= 7 for c in chunks)
    assert sorted(c.chunk_index for c in chunks) == list(range(len(chunks)))


def test_order_is_preserved(codec):
    chunker = MessageChunker(codec, max_tokens=4)
    messages = _msgs(*[("user", f"m{i}") for i in range(10)])
    joined = " ".join(c.content for c in chunker.chunk(messages))
    positions = [joined.index(f"m{i}") for i in range(10)]
    assert positions == sorted(positions)


def test_invalid_max_tokens(codec):
    with pytest.raises(ValueError):
        MessageChunker(codec, max_tokens=0)
