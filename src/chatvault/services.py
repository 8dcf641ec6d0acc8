"""Wire pipelines from configuration.

The CLI and the HTTP API both build their collaborators here, per command or
per request, from a loaded ``ChatVaultConfig`` and an open ``Repository``.
"""

from __future__ import annotations

from chatvault.config import ChatVaultConfig
from chatvault.db.repository import Repository
from chatvault.hooks import build_export_hook
from chatvault.ingest.categorizer import SessionCategorizer
from chatvault.ingest.chunker import MessageChunker
from chatvault.ingest.embedder import build_embedder
from chatvault.ingest.pipeline import IngestionPipeline
from chatvault.ingest.summarizer import ConversationSummarizer
from chatvault.rag.generator import LiteLLMGenerator
from chatvault.rag.llm_client import LiteLLMTokenCodec
from chatvault.rag.pipeline import QueryPipeline


def build_ingestion_pipeline(
    config: ChatVaultConfig, repo: Repository, generator=None
) -> IngestionPipeline:
    generator = generator or LiteLLMGenerator.from_config(config.generation)
    return IngestionPipeline(
        repo=repo,
        embedder=build_embedder(config.embedding),
        chunker=MessageChunker(
            LiteLLMTokenCodec(config.ingest.tokenizer_model),
            max_tokens=config.ingest.max_tokens_per_chunk,
        ),
        batch_size=config.ingest.batch_size,
        summarizer=ConversationSummarizer(generator, model_name=config.generation.model),
        categorizer=SessionCategorizer(generator),
        hook=build_export_hook(config.hooks),
    )


def build_query_pipeline(
    config: ChatVaultConfig, repo: Repository, generator=None
) -> QueryPipeline:
    return QueryPipeline(
        repo=repo,
        embedder=build_embedder(config.embedding),
        generator=generator or LiteLLMGenerator.from_config(config.generation),
        retrieval=config.retrieval,
    )
