"""
SQLite-backed key-value store.

Uses SQLite with separate tables for the two things the engine keeps:
- sessions: session_id → session JSON
- primers: handle key → primer JSON

All values stored as BLOB with a timestamp of the last write or read.
"""

import sqlite3
import threading
import time
from pathlib import Path
from typing import List, Optional, Union


TABLES = ("sessions", "primers")


class KVStore:
    """
    File-backed SQLite key-value store.

    Thread-safe: WAL mode plus a connection-level lock around every statement.
    """

    def __init__(self, db_path: Union[str, Path]):
        """
        Initialize KV store at given path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

        self._conn = sqlite3.connect(
            str(self.db_path),
            check_same_thread=False,
            timeout=10.0,
        )

        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")

        self._init_tables()

    def _init_tables(self) -> None:
        """Create tables if they don't exist."""
        for table in TABLES:
            self._conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    key TEXT PRIMARY KEY,
                    value BLOB NOT NULL,
                    ts INTEGER NOT NULL
                )
            """)
            self._conn.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{table}_ts
                ON {table}(ts)
            """)
        self._conn.commit()

    @staticmethod
    def _check_table(table: str) -> None:
        if table not in TABLES:
            raise ValueError(f"Unknown table: {table}")

    def set(self, table: str, key: str, value: bytes) -> None:
        """
        Set a key-value pair in the specified table.

        Args:
            table: Table name (sessions, primers)
            key: String key
            value: Binary value
        """
        self._check_table(table)
        with self._lock:
            self._conn.execute(
                f"INSERT OR REPLACE INTO {table} (key, value, ts) VALUES (?, ?, ?)",
                (key, value, int(time.time()))
            )
            self._conn.commit()

    def get(self, table: str, key: str) -> Optional[bytes]:
        """
        Get value for a key from the specified table.

        Returns:
            Binary value if found, None otherwise
        """
        self._check_table(table)
        with self._lock:
            row = self._conn.execute(
                f"SELECT value FROM {table} WHERE key = ?",
                (key,)
            ).fetchone()
        return row[0] if row else None

    def keys(self, table: str, prefix: str = "") -> List[str]:
        """List keys in a table, optionally filtered by prefix."""
        self._check_table(table)
        with self._lock:
            rows = self._conn.execute(
                f"SELECT key FROM {table} WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix)
            ).fetchall()
        return [row[0] for row in rows]

    def values(self, table: str) -> List[bytes]:
        """Return every stored value of a table."""
        self._check_table(table)
        with self._lock:
            rows = self._conn.execute(f"SELECT value FROM {table} ORDER BY key").fetchall()
        return [row[0] for row in rows]

    def delete(self, table: str, key: str) -> bool:
        """
        Delete a key from the specified table.

        Returns:
            True if a row was removed
        """
        self._check_table(table)
        with self._lock:
            cursor = self._conn.execute(
                f"DELETE FROM {table} WHERE key = ?",
                (key,)
            )
            self._conn.commit()
        return cursor.rowcount > 0

    def purge_table(self, table: str) -> int:
        """
        Delete all entries from a table.

        Returns:
            Number of rows deleted
        """
        self._check_table(table)
        with self._lock:
            count = self._conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
            self._conn.execute(f"DELETE FROM {table}")
            self._conn.commit()
        return count

    def stats(self, table: str) -> dict:
        """
        Get statistics for a table.

        Returns:
            Dict with count, total_bytes, oldest_ts, newest_ts
        """
        self._check_table(table)
        with self._lock:
            row = self._conn.execute(f"""
                SELECT
                    COUNT(*) as count,
                    SUM(LENGTH(value)) as total_bytes,
                    MIN(ts) as oldest_ts,
                    MAX(ts) as newest_ts
                FROM {table}
            """).fetchone()

        return {
            "count": row[0] or 0,
            "total_bytes": row[1] or 0,
            "oldest_ts": row[2] or 0,
            "newest_ts": row[3] or 0,
        }

    def vacuum(self) -> None:
        """
        Reclaim space and optimize database.

        Should be called after large deletions.
        """
        with self._lock:
            self._conn.execute("VACUUM")
            self._conn.commit()

    def close(self) -> None:
        """Close database connection."""
        self._conn.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
