"""Tests for threshold-ladder retrieval."""

from __future__ import annotations

import sqlite3

import pytest

from chatvault.db.models import Chunk, Message, ScoredChunk, Session
from chatvault.db.repository import Repository
from chatvault.errors import RetrievalError
from chatvault.rag.retriever import RetrievalResult, mean_similarity, retrieve, threshold_ladder


class LadderStore:
    """Returns canned results per threshold and records every call."""

    def __init__(self, results: dict[float, list[ScoredChunk]] | None = None, error=None):
        self.results = results or {}
        self.error = error
        self.calls: list[tuple[float, int]] = []

    def match_chunks(self, embedding, threshold, limit):
        self.calls.append((threshold, limit))
        if self.error is not None:
            raise self.error
        return self.results.get(threshold, [])


def _scored(similarity: float, index: int = 0) -> ScoredChunk:
    return ScoredChunk(Chunk("s1", index, f"chunk {index}"), similarity)


def test_threshold_ladder():
    assert threshold_ladder(0.3) == [0.3, 0.15, 0.1]
    assert threshold_ladder(0.8, floor=0.2) == [0.8, 0.4, 0.2]


def test_first_step_hit_stops_ladder():
    store = LadderStore({0.3: [_scored(0.9)]})
    result = retrieve(store, [1.0], 0.3, 5)
    assert result.threshold_used == 0.3
    assert result.attempts == [0.3]
    assert len(result.chunks) == 1
    assert store.calls == [(0.3, 5)]


def test_relaxes_to_floor():
    hits = [_scored(0.12, 0), _scored(0.11, 1)]
    store = LadderStore({0.1: hits})
    result = retrieve(store, [1.0], 0.3, 10)
    assert result.attempts == [0.3, 0.15, 0.1]
    assert result.threshold_used == 0.1
    assert result.chunks == hits


def test_all_steps_empty():
    store = LadderStore()
    result = retrieve(store, [1.0], 0.3, 10)
    assert result.chunks == []
    assert result.attempts == [0.3, 0.15, 0.1]
    assert result.threshold_used == 0.1
    assert result.mean_similarity == 0.0


def test_store_error_is_not_retried():
    store = LadderStore(error=sqlite3.OperationalError("no such table"))
    with pytest.raises(RetrievalError, match="search backend unavailable"):
        retrieve(store, [1.0], 0.3, 10)
    assert len(store.calls) == 1


def test_mean_similarity():
    result = RetrievalResult(chunks=[_scored(0.2), _scored(0.4)])
    assert result.mean_similarity == pytest.approx(0.3)


def test_mean_similarity_helper_matches_result_property():
    chunks = [_scored(0.5), _scored(0.7), _scored(0.9)]
    assert mean_similarity(chunks) == pytest.approx(0.7)
    assert mean_similarity(chunks) == RetrievalResult(chunks=chunks).mean_similarity
    assert mean_similarity([]) == 0.0


def test_retrieve_against_repository(tmp_db, unit_vector):
    repo = Repository(tmp_db)
    session_id = repo.add_session(
        Session(title="t", url="https://h/a", summary="s", messages=[Message("user", "q")]),
        url_key="https://h/a",
        embedding=unit_vector(0),
    )
    repo.add_chunks([Chunk(session_id, 0, "near", embedding=unit_vector(0))])

    result = retrieve(repo, unit_vector(0), 0.5, 5)
    assert result.threshold_used == 0.5
    assert [sc.chunk.content for sc in result.chunks] == ["near"]

    # orthogonal query has similarity 0, below every step
    assert retrieve(repo, unit_vector(1), 0.5, 5).chunks == []
