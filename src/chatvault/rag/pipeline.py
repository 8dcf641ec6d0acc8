"""Query pipeline: intent routing, threshold-ladder retrieval, grounded synthesis.

Flow:
  1. Conversational query  -> direct reply, no retrieval.
  2. Meta question         -> latest session summary as a single synthetic
                              chunk (similarity 1.0), no vector search.
  3. Knowledge query       -> embed, walk the threshold ladder; nothing found
                              -> "no relevant information" + ungrounded answer.
  4. Grounded answer from the labelled context, then a one-sentence summary
     and, on low mean similarity, an ungrounded fallback answer (concurrent).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from chatvault.config import RetrievalCfg
from chatvault.db.models import Chunk, ScoredChunk
from chatvault.errors import GenerationError, ValidationError
from chatvault.rag import prompts
from chatvault.rag.assembler import Source, build_context, build_sources, resolve_sessions
from chatvault.rag.intent import Intent, classify_intent
from chatvault.rag.retriever import mean_similarity, retrieve

logger = logging.getLogger(__name__)

META_CHUNK_PREFIX = "[Summary]: "


@dataclass
class RagAnswer:
    answer: str
    summary: str | None = None
    sources: list[Source] = field(default_factory=list)
    has_source_context: bool = False
    fallback_answer: str | None = None
    threshold_used: float | None = None

    def to_dict(self) -> dict:
        """Wire shape used by the HTTP API (camelCase keys)."""
        data = {
            "answer": self.answer,
            "sources": [s.to_dict() for s in self.sources],
            "hasSourceContext": self.has_source_context,
        }
        if self.summary is not None:
            data["summary"] = self.summary
        if self.fallback_answer is not None:
            data["fallbackAnswer"] = self.fallback_answer
        return data


class QueryPipeline:
    """Answer questions from the archive.

    Args:
        repo: Repository used as the vector store and session lookup.
        embedder: Embedder for the query text (same model as ingest).
        generator: Object with ``async generate(messages, max_tokens=, temperature=)``.
        retrieval: Thresholds, limits and reserved sessions.
    """

    def __init__(self, repo, embedder, generator, retrieval: RetrievalCfg | None = None) -> None:
        self._repo = repo
        self._embedder = embedder
        self._generator = generator
        self._cfg = retrieval or RetrievalCfg()

    async def answer(
        self,
        query: str,
        threshold: float | None = None,
        limit: int | None = None,
    ) -> RagAnswer:
        """Answer *query*.

        Raises:
            ValidationError: If *query* is empty.
            RetrievalError: If the vector store fails.
            GenerationError: If the generation model fails.
        """
        if not query or not query.strip():
            raise ValidationError("query is required")
        query = query.strip()
        threshold = self._cfg.threshold if threshold is None else threshold
        limit = limit or self._cfg.limit

        intent = classify_intent(query)
        logger.info("Query intent: %s", intent.value)

        if intent is Intent.CONVERSATIONAL:
            reply = await self._generate(prompts.conversational_messages(query))
            return RagAnswer(answer=reply)

        if intent is Intent.META:
            latest = self._repo.latest_session()
            if latest is None:
                return RagAnswer(answer=prompts.NO_SUMMARY_ANSWER)
            synthetic = ScoredChunk(
                chunk=Chunk(
                    chat_session_id=latest.id,
                    chunk_index=0,
                    content=META_CHUNK_PREFIX + latest.summary,
                ),
                similarity=1.0,
            )
            return await self._synthesize(query, [synthetic], threshold_used=None)

        embedding = await self._embedder.embed(query)
        result = retrieve(self._repo, embedding, threshold, limit, floor=self._cfg.floor)
        if not result.chunks:
            logger.info("No chunks found after thresholds %s", result.attempts)
            fallback = await self._generate(prompts.fallback_messages(query))
            return RagAnswer(
                answer=prompts.NO_INFORMATION_ANSWER,
                fallback_answer=fallback,
                threshold_used=result.threshold_used,
            )
        return await self._synthesize(query, result.chunks, threshold_used=result.threshold_used)

    async def _synthesize(
        self,
        query: str,
        chunks: list[ScoredChunk],
        threshold_used: float | None,
    ) -> RagAnswer:
        sessions = resolve_sessions(self._repo, chunks)
        context = build_context(chunks, sessions)
        answer = await self._generate(prompts.grounded_messages(query, context))

        similarity = mean_similarity(chunks)
        low_confidence = similarity < self._cfg.low_confidence
        if low_confidence:
            logger.info("Mean similarity %.3f is low; generating fallback answer", similarity)
            summary, fallback = await asyncio.gather(
                self._generate(prompts.summary_messages(answer), max_tokens=100),
                self._generate(prompts.fallback_messages(query)),
            )
        else:
            summary = await self._generate(prompts.summary_messages(answer), max_tokens=100)
            fallback = None

        return RagAnswer(
            answer=answer,
            summary=summary,
            sources=build_sources(
                chunks,
                sessions,
                reserved_ids=self._cfg.reserved_session_ids,
                max_sources=self._cfg.max_sources,
            ),
            has_source_context=True,
            fallback_answer=fallback,
            threshold_used=threshold_used,
        )

    async def _generate(self, messages: list[dict], max_tokens: int | None = None) -> str:
        try:
            return await self._generator.generate(messages, max_tokens=max_tokens)
        except Exception as exc:
            raise GenerationError(f"answer generation failed: {exc}") from exc
