"""ChatVault ingest pipeline — chunker, embedders, summarizer, categorizer."""

from chatvault.ingest.chunker import MessageChunker, TextChunk
from chatvault.ingest.embedder import Embedder, LiteLLMEmbedder, PseudoEmbedder, build_embedder
from chatvault.ingest.pipeline import IngestionPipeline, IngestResult, normalize_url

__all__ = [
    "Embedder",
    "IngestResult",
    "IngestionPipeline",
    "LiteLLMEmbedder",
    "MessageChunker",
    "PseudoEmbedder",
    "TextChunk",
    "build_embedder",
    "normalize_url",
]
