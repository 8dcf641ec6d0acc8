"""CLI test fixtures: an isolated working directory and offline pipelines."""

from __future__ import annotations

from pathlib import Path

import pytest

from chatvault.db.connection import Database
from chatvault.db.models import Chunk, Message, Session
from chatvault.db.repository import Repository
from chatvault.ingest.chunker import MessageChunker
from chatvault.ingest.embedder import PseudoEmbedder
from chatvault.ingest.pipeline import IngestionPipeline
from chatvault.rag.pipeline import QueryPipeline

CLI_DIMS = 8


@pytest.fixture
def workdir(tmp_path, monkeypatch) -> Path:
    """Empty project directory with a chatvault.yaml for small vectors."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("COLUMNS", "200")
    monkeypatch.setattr("chatvault.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    for var in ("CHATVAULT_DB", "CHATVAULT_EMBEDDING_MODEL", "CHATVAULT_EMBEDDING_MODE", "CHATVAULT_GENERATION_MODEL"):
        monkeypatch.delenv(var, raising=False)
    (tmp_path / "chatvault.yaml").write_text(
        f"embedding:\n  dimensions: {CLI_DIMS}\n  mode: degraded\n", encoding="utf-8"
    )
    return tmp_path


@pytest.fixture
def db_path(workdir) -> Path:
    return workdir / ".chatvault.db"


@pytest.fixture
def offline_pipelines(monkeypatch, codec, fake_generator):
    """Build pipelines with the word codec and the fake generator."""

    def _ingestion(cfg, repo, generator=None):
        return IngestionPipeline(
            repo,
            PseudoEmbedder(cfg.embedding.dimensions),
            MessageChunker(codec, max_tokens=cfg.ingest.max_tokens_per_chunk),
        )

    def _query(cfg, repo, generator=None):
        return QueryPipeline(
            repo, PseudoEmbedder(cfg.embedding.dimensions), fake_generator, cfg.retrieval
        )

    monkeypatch.setattr("chatvault.cli.ingest.build_ingestion_pipeline", _ingestion)
    monkeypatch.setattr("chatvault.cli.ask.build_query_pipeline", _query)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    return fake_generator


@pytest.fixture
def seeded_repo(db_path):
    """Return add(title, url, metadata) that stores a session with two chunks."""
    conn = Database(db_path, CLI_DIMS).open()
    repo = Repository(conn)

    def _add(title: str, url: str, metadata: dict | None = None) -> str:
        vector = [1.0] + [0.0] * (CLI_DIMS - 1)
        session_id = repo.add_session(
            Session(
                title=title,
                url=url,
                summary=f"About {title}",
                messages=[Message("user", "q"), Message("assistant", "a")],
                metadata=metadata or {},
            ),
            url_key=url,
            embedding=vector,
        )
        repo.add_chunks(
            [Chunk(session_id, i, f"chunk {i}", embedding=vector) for i in range(2)]
        )
        return session_id

    yield _add
    conn.close()

