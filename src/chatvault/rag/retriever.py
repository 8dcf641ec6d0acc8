"""Chunk retriever with threshold relaxation.

Threshold ladder:
  T  ->  0.5 * T  ->  floor (0.1)

The first non-empty result set wins. Only empty results walk the ladder;
a store error is raised immediately as RetrievalError.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field

from chatvault.db.models import ScoredChunk
from chatvault.errors import RetrievalError

logger = logging.getLogger(__name__)

DEFAULT_FLOOR = 0.1


@dataclass
class RetrievalResult:
    """Chunks from the first non-empty ladder step.

    Attributes:
        chunks: Scored chunks, best first; empty when every step was empty.
        threshold_used: Threshold of the step that produced ``chunks``
            (the last one tried when all were empty).
        attempts: Thresholds tried, in order.
    """

    chunks: list[ScoredChunk] = field(default_factory=list)
    threshold_used: float | None = None
    attempts: list[float] = field(default_factory=list)

    @property
    def mean_similarity(self) -> float:
        return mean_similarity(self.chunks)


def mean_similarity(chunks: list[ScoredChunk]) -> float:
    """Average similarity of *chunks*; 0.0 when there are none."""
    if not chunks:
        return 0.0
    return sum(c.similarity for c in chunks) / len(chunks)


def threshold_ladder(threshold: float, floor: float = DEFAULT_FLOOR) -> list[float]:
    """Return ``[T, 0.5*T, floor]``."""
    return [threshold, threshold * 0.5, floor]


def retrieve(
    store,
    query_embedding: list[float],
    threshold: float,
    limit: int,
    floor: float = DEFAULT_FLOOR,
) -> RetrievalResult:
    """Search *store* down the threshold ladder.

    Args:
        store: Object with ``match_chunks(embedding, threshold, limit)``.
        query_embedding: Vector to search with.
        threshold: First-step similarity threshold.
        limit: Maximum chunks per step.
        floor: Threshold of the last step.

    Raises:
        RetrievalError: If the store fails; the ladder is not continued.
    """
    result = RetrievalResult()
    for step in threshold_ladder(threshold, floor):
        result.attempts.append(step)
        result.threshold_used = step
        try:
            chunks = store.match_chunks(query_embedding, step, limit)
        except sqlite3.Error as exc:
            raise RetrievalError(f"search backend unavailable: {exc}") from exc
        if chunks:
            logger.debug("Retrieved %d chunks at threshold %.3f", len(chunks), step)
            result.chunks = chunks
            return result
        logger.debug("No chunks above threshold %.3f", step)
    return result
