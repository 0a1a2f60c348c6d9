"""
Persistence layer.

Provides:
- SQLite-backed KV store for sessions and memory primers
"""

from .sqlite_store import KVStore, TABLES

__all__ = [
    "KVStore",
    "TABLES",
]
