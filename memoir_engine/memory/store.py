"""
Session and primer persistence adapters.

The engine never talks to storage directly; it reads sessions through a
``SessionSource`` and keeps primers in a ``PrimerStore``. Both SQLite-backed
implementations use the shared ``KVStore``.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from memoir_engine.persist.sqlite_store import KVStore
from .primer import primer_key_for_handle
from .schemas import MemoryPrimer, Session


logger = logging.getLogger(__name__)


class SessionSource(ABC):
    """Read access to recorded sessions; storage stays the source of truth."""

    @abstractmethod
    def fetch_session(self, session_id: str) -> Optional[Session]:
        """Return one session, or None if it does not exist or is unreadable."""
        pass

    @abstractmethod
    def fetch_sessions(self, handle: Optional[str]) -> List[Session]:
        """Return every session whose handle key matches ``handle``."""
        pass


class InMemorySessionSource(SessionSource):
    """Dict-backed source, for tests and one-off scripts."""

    def __init__(self, sessions: Optional[Iterable[object]] = None):
        self._sessions: Dict[str, Session] = {}
        for raw in sessions or []:
            session = Session.from_record(raw)
            if session is not None:
                self._sessions[session.id] = session

    def save(self, session: Session) -> None:
        self._sessions[session.id] = session

    def fetch_session(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def fetch_sessions(self, handle: Optional[str]) -> List[Session]:
        key = primer_key_for_handle(handle)
        return [
            session
            for session in self._sessions.values()
            if primer_key_for_handle(session.user_handle) == key
        ]


class KVSessionSource(SessionSource):
    """
    Sessions persisted as JSON in the ``sessions`` table.

    Records that fail to parse or validate are skipped and logged.
    """

    def __init__(self, kv: KVStore):
        self.kv = kv

    def save(self, session: Session) -> None:
        self.kv.set("sessions", session.id, session.model_dump_json().encode("utf-8"))

    def _load(self, value: Optional[bytes]) -> Optional[Session]:
        if value is None:
            return None
        try:
            data = json.loads(value)
        except (json.JSONDecodeError, UnicodeDecodeError, TypeError):
            logger.warning("Skipping unreadable session record")
            return None
        session = Session.from_record(data)
        if session is None:
            logger.warning("Skipping malformed session record")
        return session

    def fetch_session(self, session_id: str) -> Optional[Session]:
        return self._load(self.kv.get("sessions", session_id))

    def fetch_sessions(self, handle: Optional[str]) -> List[Session]:
        key = primer_key_for_handle(handle)
        sessions = []
        for value in self.kv.values("sessions"):
            session = self._load(value)
            if session is None:
                continue
            if primer_key_for_handle(session.user_handle) == key:
                sessions.append(session)
        return sessions


class PrimerStore:
    """
    Persistent storage for memory primers, one per handle key.

    Keys are normalized handles, with "unassigned" for sessions recorded
    without a handle.
    """

    def __init__(self, db_path: Optional[Union[str, Path]] = None, kv: Optional[KVStore] = None):
        """
        Initialize primer store.

        Args:
            db_path: Path to SQLite database (default: data/cache/memory.db)
            kv: Existing KVStore to share instead of opening a new one
        """
        if kv is None:
            kv = KVStore(Path(db_path) if db_path else Path("data/cache/memory.db"))
        self.kv = kv

    def get(self, handle: Optional[str]) -> Optional[MemoryPrimer]:
        """
        Retrieve the stored primer for a handle.

        Returns:
            MemoryPrimer if found and readable, else None
        """
        value = self.kv.get("primers", primer_key_for_handle(handle))
        if value is None:
            return None
        try:
            return MemoryPrimer.from_storage_dict(json.loads(value))
        except (json.JSONDecodeError, UnicodeDecodeError, TypeError, ValueError):
            return None

    def put(self, primer: MemoryPrimer) -> None:
        """Store (replace) the primer under its handle key."""
        value = json.dumps(primer.to_storage_dict())
        self.kv.set("primers", primer.user_handle, value.encode("utf-8"))

    def delete(self, handle: Optional[str]) -> bool:
        return self.kv.delete("primers", primer_key_for_handle(handle))

    def handles(self) -> List[str]:
        return self.kv.keys("primers")
