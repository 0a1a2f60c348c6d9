"""
Unit tests for session sources and the primer store (memoir_engine/memory/store.py).

Tests:
- KVSessionSource: save/fetch, handle filtering, unreadable records
- InMemorySessionSource
- PrimerStore: put/get by normalized handle, corrupt values, delete
"""

from datetime import datetime, timezone
from pathlib import Path

from memoir_engine.memory.schemas import MemoryPrimer
from memoir_engine.memory.store import InMemorySessionSource, PrimerStore


# ============================================================================
# Session sources
# ============================================================================

def test_kv_session_roundtrip(session_source, session_factory):
    session = session_factory("s1", [("user", "I was born in Leeds.")], title="Beginnings")
    session_source.save(session)

    loaded = session_source.fetch_session("s1")
    assert loaded == session
    assert loaded.turns[0].created_at.tzinfo is not None


def test_kv_missing_session(session_source):
    assert session_source.fetch_session("nope") is None


def test_kv_fetch_sessions_by_handle_key(session_source, session_factory):
    session_source.save(session_factory("a", handle="@Margaret"))
    session_source.save(session_factory("b", handle="margaret"))
    session_source.save(session_factory("c", handle="joe"))
    session_source.save(session_factory("d", handle=None))

    assert sorted(s.id for s in session_source.fetch_sessions("MARGARET")) == ["a", "b"]
    assert [s.id for s in session_source.fetch_sessions(None)] == ["d"]
    assert [s.id for s in session_source.fetch_sessions("unassigned")] == ["d"]


def test_kv_unreadable_records_skipped(kv, session_source, session_factory):
    session_source.save(session_factory("good"))
    kv.set("sessions", "broken-json", b"{not json")
    kv.set("sessions", "broken-shape", b'{"title": "no id"}')
    kv.set("sessions", "broken-bytes", b"\xff\xfe")

    assert [s.id for s in session_source.fetch_sessions("margaret")] == ["good"]
    assert session_source.fetch_session("broken-json") is None
    assert session_source.fetch_session("broken-shape") is None


def test_in_memory_source(session_factory):
    source = InMemorySessionSource([session_factory("a"), {"id": "b", "user_handle": "joe"}, "garbage"])

    assert source.fetch_session("a").id == "a"
    assert [s.id for s in source.fetch_sessions("joe")] == ["b"]

    source.save(session_factory("c", handle="joe"))
    assert sorted(s.id for s in source.fetch_sessions("joe")) == ["b", "c"]


# ============================================================================
# Primer store
# ============================================================================

def test_primer_put_get(primer_store):
    primer = MemoryPrimer(
        user_handle="margaret",
        markdown_text="# Memory Primer: @margaret",
        updated_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
    )
    primer_store.put(primer)

    assert primer_store.get("@Margaret") == primer
    assert primer_store.handles() == ["margaret"]


def test_primer_missing(primer_store):
    assert primer_store.get("nobody") is None
    assert primer_store.get(None) is None


def test_unassigned_primer(primer_store):
    primer_store.put(MemoryPrimer(user_handle="unassigned", markdown_text="text"))
    assert primer_store.get(None).markdown_text == "text"
    assert primer_store.get("   ").markdown_text == "text"


def test_corrupt_primer_ignored(kv, primer_store):
    kv.set("primers", "margaret", b"not json")
    kv.set("primers", "joe", b'{"markdown_text": "missing handle"}')

    assert primer_store.get("margaret") is None
    assert primer_store.get("joe") is None


def test_primer_delete(primer_store):
    primer_store.put(MemoryPrimer(user_handle="margaret", markdown_text="x"))

    assert primer_store.delete("@margaret") is True
    assert primer_store.delete("margaret") is False
    assert primer_store.get("margaret") is None


def test_primer_store_default_path(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    store = PrimerStore()

    assert store.kv.db_path == Path("data/cache/memory.db")
    assert (tmp_path / "data" / "cache").exists()
    store.kv.close()
