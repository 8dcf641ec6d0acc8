"""Conversation summarizer — session summary + keywords via the generator.

Used when a transcript arrives without a summary. Conversations longer than
``LONG_CONVERSATION`` messages are summarized in parts of ``PART_SIZE``
messages, then the part summaries are merged in a final call.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

from chatvault.db.models import Message

logger = logging.getLogger(__name__)

LONG_CONVERSATION = 20
PART_SIZE = 10
MAX_KEYWORDS = 5
FALLBACK_SUMMARY = "A summary could not be generated."

_SUMMARY_SYSTEM = (
    "You summarize conversations and extract their main keywords. "
    "Write the summary in 3-5 sentences and extract at most 5 keywords. "
    'Respond with JSON only: {"summary": "...", "keywords": ["...", ...]}'
)

_MERGE_SYSTEM = (
    "You merge partial summaries of one long conversation into a single summary "
    "of at most 5 sentences and pick the 5 most important keywords. "
    'Respond with JSON only: {"summary": "...", "keywords": ["...", ...]}'
)


@dataclass
class SummaryResult:
    summary: str
    keywords: list[str] = field(default_factory=list)
    model: str = "unknown"


class ConversationSummarizer:
    """Generate a summary and keywords for a transcript.

    Args:
        generator: Object with ``async generate(messages, max_tokens=, temperature=)``.
        model_name: Recorded in ``SummaryResult.model`` (stored in session metadata).
    """

    def __init__(self, generator, model_name: str = "unknown") -> None:
        self._generator = generator
        self._model_name = model_name

    async def summarize(self, title: str, messages: list[Message]) -> SummaryResult:
        """Return a SummaryResult; falls back to a placeholder on any failure."""
        if len(messages) > LONG_CONVERSATION:
            return await self._summarize_long(title, messages)
        return await self._summarize_part(title, messages)

    async def _summarize_part(self, title: str, messages: list[Message]) -> SummaryResult:
        transcript = "\n\n".join(f"{m.role}: {m.content}" for m in messages)
        try:
            raw = await self._generator.generate(
                [
                    {"role": "system", "content": _SUMMARY_SYSTEM},
                    {"role": "user", "content": f'Title: "{title}"\n\n{transcript}'},
                ],
                max_tokens=400,
            )
        except Exception as exc:
            logger.warning("Summary generation failed for '%s': %s", title, exc)
            return SummaryResult(FALLBACK_SUMMARY, [], self._model_name)
        return self._parse(raw)

    async def _summarize_long(self, title: str, messages: list[Message]) -> SummaryResult:
        parts = [messages[i : i + PART_SIZE] for i in range(0, len(messages), PART_SIZE)]
        part_summaries: list[str] = []
        all_keywords: list[str] = []
        for n, part in enumerate(parts, start=1):
            result = await self._summarize_part(f"{title} (part {n}/{len(parts)})", part)
            part_summaries.append(f"Part {n}: {result.summary}")
            all_keywords.extend(result.keywords)

        unique_keywords = list(dict.fromkeys(all_keywords))[:MAX_KEYWORDS]
        try:
            raw = await self._generator.generate(
                [
                    {"role": "system", "content": _MERGE_SYSTEM},
                    {"role": "user", "content": "\n\n".join(part_summaries)},
                ],
                max_tokens=400,
            )
        except Exception as exc:
            logger.warning("Summary merge failed for '%s': %s", title, exc)
            return SummaryResult(FALLBACK_SUMMARY, unique_keywords, self._model_name)

        merged = self._parse(raw)
        if not merged.keywords:
            merged.keywords = unique_keywords
        return merged

    def _parse(self, raw: str) -> SummaryResult:
        """Parse the JSON reply; tolerate prose around the object."""
        try:
            start = raw.index("{")
            end = raw.rindex("}") + 1
            data = json.loads(raw[start:end])
        except (ValueError, json.JSONDecodeError):
            logger.warning("Summary reply was not JSON: %.80s", raw)
            return SummaryResult(FALLBACK_SUMMARY, [], self._model_name)

        summary = str(data.get("summary") or "").strip() or FALLBACK_SUMMARY
        keywords = data.get("keywords")
        if not isinstance(keywords, list):
            keywords = []
        return SummaryResult(
            summary=summary,
            keywords=[str(k) for k in keywords][:MAX_KEYWORDS],
            model=self._model_name,
        )
