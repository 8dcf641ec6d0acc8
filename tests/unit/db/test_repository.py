"""Tests for the Repository pattern."""

from __future__ import annotations

import sqlite3

import pytest

from chatvault.db.models import Chunk, Message, Session
from chatvault.db.repository import Repository


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


def _session(url="https://host/share/abc", title="Title", summary="Summary", **kw):
    return Session(
        title=title,
        url=url,
        summary=summary,
        messages=kw.pop("messages", [Message("user", "hi"), Message("assistant", "hello")]),
        **kw,
    )


def _add(repo, unit_vector, url="https://host/share/abc", **kw):
    return repo.add_session(_session(url=url, **kw), url_key=url, embedding=unit_vector(0))


def _chunks(session_id, vectors):
    return [
        Chunk(chat_session_id=session_id, chunk_index=i, content=f"chunk {i}", embedding=v)
        for i, v in enumerate(vectors)
    ]


# ------------------------------------------------------------------
# Sessions
# ------------------------------------------------------------------


def test_add_and_get_session(repo, unit_vector):
    sid = _add(repo, unit_vector, metadata={"model": "gpt", "keywords": ["한국어"]})
    session = repo.get_session(sid)
    assert session is not None
    assert session.title == "Title"
    assert session.messages == [Message("user", "hi"), Message("assistant", "hello")]
    assert session.metadata == {"model": "gpt", "keywords": ["한국어"]}
    assert session.created_at is not None


def test_add_session_sets_id(repo, unit_vector):
    s = _session()
    sid = repo.add_session(s, url_key=s.url, embedding=unit_vector(0))
    assert s.id == sid


def test_add_session_duplicate_url_key_raises(repo, unit_vector):
    _add(repo, unit_vector)
    with pytest.raises(sqlite3.IntegrityError):
        _add(repo, unit_vector)


def test_get_session_not_found(repo):
    assert repo.get_session("missing") is None


def test_get_sessions(repo, unit_vector):
    a = _add(repo, unit_vector, url="https://h/a")
    b = _add(repo, unit_vector, url="https://h/b")
    found = repo.get_sessions([a, b, a, "missing"])
    assert set(found) == {a, b}


def test_get_sessions_empty(repo):
    assert repo.get_sessions([]) == {}


def test_find_session_by_url_prefix(repo, unit_vector):
    sid = _add(repo, unit_vector, url="https://host/share/abc?ref=1")
    assert repo.find_session_by_url_prefix("https://host/share/abc").id == sid
    assert repo.find_session_by_url_prefix("https://host/share/xyz") is None


def test_find_session_by_url_prefix_escapes_wildcards(repo, unit_vector):
    _add(repo, unit_vector, url="https://host/share/abc")
    assert repo.find_session_by_url_prefix("https://host/%") is None
    assert repo.find_session_by_url_prefix("https://host/share/ab_") is None


def test_find_session_by_url_prefix_is_case_sensitive(repo, unit_vector):
    sid = _add(repo, unit_vector, url="https://g.co/gemini/share/AbC123")
    assert repo.find_session_by_url_prefix("https://g.co/gemini/share/AbC123").id == sid
    assert repo.find_session_by_url_prefix("https://g.co/gemini/share/abc123") is None


def test_find_session_by_url_key(repo, unit_vector):
    sid = _add(repo, unit_vector, url="https://h/a")
    assert repo.find_session_by_url_key("https://h/a").id == sid
    assert repo.find_session_by_url_key("https://h/b") is None


def test_latest_session(repo, unit_vector):
    assert repo.latest_session() is None
    _add(repo, unit_vector, url="https://h/a", summary="first")
    _add(repo, unit_vector, url="https://h/b", summary="second")
    assert repo.latest_session().summary == "second"


def test_list_sessions_excludes_ids(repo, unit_vector):
    a = _add(repo, unit_vector, url="https://h/a")
    b = _add(repo, unit_vector, url="https://h/b")
    assert [s.id for s in repo.list_sessions()] == [b, a]
    assert [s.id for s in repo.list_sessions(exclude_ids=[b])] == [a]


def test_search_sessions(repo, unit_vector):
    _add(repo, unit_vector, url="https://h/a", title="Python asyncio", summary="")
    _add(repo, unit_vector, url="https://h/b", title="Cooking", summary="pasta with python? no")
    _add(repo, unit_vector, url="https://h/c", title="Travel", summary="Jeju")
    assert {s.title for s in repo.search_sessions("PYTHON")} == {"Python asyncio", "Cooking"}
    assert repo.search_sessions("100%") == []


def test_update_metadata_merges(repo, unit_vector):
    sid = _add(repo, unit_vector, metadata={"model": "gpt"})
    result = repo.update_metadata(sid, {"favorite": True})
    assert result == {"model": "gpt", "favorite": True}
    assert repo.get_session(sid).metadata == {"model": "gpt", "favorite": True}


def test_update_metadata_missing_session(repo):
    assert repo.update_metadata("missing", {"favorite": True}) is None


def test_delete_session_cascades(repo, tmp_db, unit_vector):
    sid = _add(repo, unit_vector)
    repo.add_chunks(_chunks(sid, [unit_vector(1), unit_vector(2)]))

    assert repo.delete_session(sid) is True
    assert repo.get_session(sid) is None
    assert repo.count_chunks(sid) == 0
    assert tmp_db.execute("SELECT COUNT(*) FROM vec_chunks").fetchone()[0] == 0
    assert tmp_db.execute("SELECT COUNT(*) FROM vec_sessions").fetchone()[0] == 0


def test_delete_session_missing(repo):
    assert repo.delete_session("missing") is False


# ------------------------------------------------------------------
# Chunks
# ------------------------------------------------------------------


def test_add_chunks_returns_ids_and_sets_them(repo, unit_vector):
    sid = _add(repo, unit_vector)
    chunks = _chunks(sid, [unit_vector(1), unit_vector(2)])
    ids = repo.add_chunks(chunks)
    assert len(ids) == 2
    assert [c.id for c in chunks] == ids


def test_get_chunks_ordered_by_index(repo, unit_vector):
    sid = _add(repo, unit_vector)
    chunks = _chunks(sid, [unit_vector(1), unit_vector(2), unit_vector(3)])
    repo.add_chunks(list(reversed(chunks)))
    assert [c.chunk_index for c in repo.get_chunks(sid)] == [0, 1, 2]
    assert repo.count_chunks(sid) == 3


def test_add_chunks_missing_embedding_raises(repo, unit_vector):
    sid = _add(repo, unit_vector)
    with pytest.raises(ValueError, match="no embedding"):
        repo.add_chunks([Chunk(chat_session_id=sid, chunk_index=0, content="x")])
    assert repo.count_chunks(sid) == 0


def test_add_chunks_batch_is_atomic(repo, unit_vector):
    sid = _add(repo, unit_vector)
    repo.add_chunks(_chunks(sid, [unit_vector(1)]))
    batch = [
        Chunk(chat_session_id=sid, chunk_index=1, content="ok", embedding=unit_vector(2)),
        Chunk(chat_session_id=sid, chunk_index=0, content="dup", embedding=unit_vector(3)),
    ]
    with pytest.raises(sqlite3.IntegrityError):
        repo.add_chunks(batch)
    assert repo.count_chunks(sid) == 1


# ------------------------------------------------------------------
# Similarity search
# ------------------------------------------------------------------


def test_match_chunks_orders_and_filters(repo, unit_vector):
    sid = _add(repo, unit_vector)
    diagonal = [1.0, 1.0] + [0.0] * 6
    repo.add_chunks(_chunks(sid, [unit_vector(0), unit_vector(1), diagonal]))

    results = repo.match_chunks(unit_vector(0), threshold=0.5, limit=10)
    assert [r.chunk.chunk_index for r in results] == [0, 2]
    assert results[0].similarity == pytest.approx(1.0, abs=1e-5)
    assert results[1].similarity == pytest.approx(0.7071, abs=1e-3)


def test_match_chunks_respects_limit(repo, unit_vector):
    sid = _add(repo, unit_vector)
    diagonal = [1.0, 1.0] + [0.0] * 6
    repo.add_chunks(_chunks(sid, [unit_vector(0), diagonal]))
    results = repo.match_chunks(unit_vector(0), threshold=0.0, limit=1)
    assert len(results) == 1
    assert results[0].chunk.chunk_index == 0


def test_match_chunks_nothing_above_threshold(repo, unit_vector):
    sid = _add(repo, unit_vector)
    repo.add_chunks(_chunks(sid, [unit_vector(1)]))
    assert repo.match_chunks(unit_vector(0), threshold=0.3, limit=10) == []


def test_match_chunks_zero_limit(repo, unit_vector):
    assert repo.match_chunks(unit_vector(0), threshold=0.0, limit=0) == []
