"""Tests for ConversationSummarizer."""

from __future__ import annotations

import asyncio
import json

from chatvault.db.models import Message
from chatvault.ingest.summarizer import FALLBACK_SUMMARY, ConversationSummarizer


def _messages(n: int) -> list[Message]:
    return [Message("user" if i % 2 == 0 else "assistant", f"message {i}") for i in range(n)]


def _reply(summary: str, keywords: list[str]) -> str:
    return json.dumps({"summary": summary, "keywords": keywords})


def test_summarize_short_conversation(fake_generator):
    fake_generator.reply = _reply("A chat about X.", ["x", "y"])
    result = asyncio.run(
        ConversationSummarizer(fake_generator, model_name="gpt").summarize("T", _messages(4))
    )
    assert result.summary == "A chat about X."
    assert result.keywords == ["x", "y"]
    assert result.model == "gpt"
    assert len(fake_generator.calls) == 1
    assert "message 3" in fake_generator.calls[0]["messages"][1]["content"]


def test_summarize_tolerates_prose_around_json(fake_generator):
    fake_generator.reply = "Sure! " + _reply("S.", ["k"]) + " Hope this helps."
    result = asyncio.run(ConversationSummarizer(fake_generator).summarize("T", _messages(2)))
    assert result.summary == "S."


def test_summarize_caps_keywords(fake_generator):
    fake_generator.reply = _reply("S.", [f"k{i}" for i in range(9)])
    result = asyncio.run(ConversationSummarizer(fake_generator).summarize("T", _messages(2)))
    assert result.keywords == ["k0", "k1", "k2", "k3", "k4"]


def test_summarize_non_json_falls_back(fake_generator):
    fake_generator.reply = "no json here"
    result = asyncio.run(ConversationSummarizer(fake_generator).summarize("T", _messages(2)))
    assert result.summary == FALLBACK_SUMMARY
    assert result.keywords == []


def test_summarize_generator_error_falls_back(fake_generator):
    fake_generator.error = RuntimeError("API down")
    result = asyncio.run(ConversationSummarizer(fake_generator).summarize("T", _messages(2)))
    assert result.summary == FALLBACK_SUMMARY


def test_long_conversation_is_summarized_in_parts(fake_generator):
    def reply(messages):
        if "merge" in messages[0]["content"]:
            return _reply("Merged.", [])
        return _reply("Part.", ["alpha", "beta"])

    fake_generator.reply = reply
    result = asyncio.run(ConversationSummarizer(fake_generator).summarize("T", _messages(25)))

    # 25 messages -> parts of 10, 10, 5, then one merge call
    assert len(fake_generator.calls) == 4
    assert result.summary == "Merged."
    assert result.keywords == ["alpha", "beta"]


def test_twenty_messages_is_not_long(fake_generator):
    fake_generator.reply = _reply("S.", [])
    asyncio.run(ConversationSummarizer(fake_generator).summarize("T", _messages(20)))
    assert len(fake_generator.calls) == 1
