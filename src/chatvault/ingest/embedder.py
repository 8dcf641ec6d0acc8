"""Embedders — text to fixed-dimension vectors.

Two variants share the ``Embedder`` interface:

- ``LiteLLMEmbedder`` calls the configured provider through
  ``litellm.aembedding`` and falls back to the pseudo-embedding on any
  provider error or missing API key. It never raises.
- ``PseudoEmbedder`` is the explicit degraded mode: it never touches the
  network and derives a deterministic vector from the text.

``build_embedder()`` picks the variant from configuration.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod

from chatvault.config import EmbeddingCfg
from chatvault.rag import llm_client
from chatvault.sanitize import sanitize

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 3
SHORT_TEXT_TEMPLATE = "question: {text} - searching for related information."

_SEED_START = 7
_SEED_MULTIPLIER = 31
_SEED_MODULUS = 997


def pseudo_embedding(text: str, dimensions: int = 1536) -> list[float]:
    """Deterministic stand-in vector for *text*.

    The seed folds the code points through ``acc = (acc * 31 + cp) % 997``;
    coordinate ``i`` is ``cos((seed + i) / 100) * 0.5``. Same text, same
    vector; never raises.
    """
    seed = _SEED_START
    for ch in text or "":
        seed = (seed * _SEED_MULTIPLIER + ord(ch)) % _SEED_MODULUS
    return [math.cos((seed + i) / 100) * 0.5 for i in range(dimensions)]


def prepare_text(text: str | None) -> str:
    """Sanitize *text* and expand very short inputs with a templated prefix."""
    cleaned = sanitize(text)
    if cleaned and len(cleaned) < MIN_TEXT_LENGTH:
        return SHORT_TEXT_TEMPLATE.format(text=cleaned)
    return cleaned


class Embedder(ABC):
    """Maps text to a vector of ``dimensions`` floats; ``embed`` never raises."""

    def __init__(self, dimensions: int = 1536) -> None:
        if dimensions < 1:
            raise ValueError("dimensions must be >= 1")
        self.dimensions = dimensions

    async def embed(self, text: str | None) -> list[float]:
        """Return the embedding of *text*; the zero vector for empty text."""
        prepared = prepare_text(text)
        if not prepared:
            return [0.0] * self.dimensions
        return await self._embed(prepared)

    @abstractmethod
    async def _embed(self, text: str) -> list[float]:
        """Embed already-prepared, non-empty *text*."""


class PseudoEmbedder(Embedder):
    """Degraded mode: deterministic pseudo-embeddings, no provider calls."""

    async def _embed(self, text: str) -> list[float]:
        return pseudo_embedding(text, self.dimensions)


class LiteLLMEmbedder(Embedder):
    """Provider-backed embedder with a pseudo-embedding safety net.

    Args:
        model: LiteLLM embedding model string (provider/model format).
        dimensions: Expected vector size; provider vectors of another size
            are rejected in favour of the fallback.
    """

    def __init__(self, model: str = "openai/text-embedding-3-small", dimensions: int = 1536) -> None:
        super().__init__(dimensions)
        self.model = model

    async def _embed(self, text: str) -> list[float]:
        if not llm_client.has_api_key(self.model):
            logger.warning(
                "No API key for embedding model %s; using pseudo-embedding", self.model
            )
            return pseudo_embedding(text, self.dimensions)
        try:
            vector = await llm_client.embed(self.model, text)
        except Exception as exc:
            logger.warning("Embedding provider failed (%s); using pseudo-embedding", exc)
            return pseudo_embedding(text, self.dimensions)
        if len(vector) != self.dimensions:
            logger.warning(
                "Embedding model %s returned %d dimensions, expected %d; using pseudo-embedding",
                self.model,
                len(vector),
                self.dimensions,
            )
            return pseudo_embedding(text, self.dimensions)
        return [float(v) for v in vector]


def build_embedder(cfg: EmbeddingCfg) -> Embedder:
    """Return the embedder selected by ``embedding.mode``."""
    if cfg.mode == "degraded":
        return PseudoEmbedder(cfg.dimensions)
    return LiteLLMEmbedder(cfg.model, cfg.dimensions)
