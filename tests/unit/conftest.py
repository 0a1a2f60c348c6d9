"""
Shared fixtures for unit tests.
"""
import pytest

from memoir_engine.memory.store import KVSessionSource, PrimerStore
from memoir_engine.persist.sqlite_store import KVStore


@pytest.fixture
def kv(tmp_path):
    """Create a temporary KVStore instance."""
    db_path = tmp_path / "memory.db"
    store = KVStore(db_path)
    yield store
    store.close()


@pytest.fixture
def primer_store(kv):
    return PrimerStore(kv=kv)


@pytest.fixture
def session_source(kv):
    return KVSessionSource(kv)
