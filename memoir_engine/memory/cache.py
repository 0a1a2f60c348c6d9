"""
Process-local read-through caches for sessions and primers.

Storage is always the source of truth. The session cache holds what was
last read for each handle until a finalize invalidates it; nothing here is
shared across processes.
"""

import logging
import threading
from typing import Dict, List, Optional, Tuple

from memoir_engine.config.settings import Settings
from memoir_engine.telemetry import describe_error, log_diagnostic
from .details import sessions_newest_first
from .primer import build_memory_primer, normalize_handle, primer_key_for_handle
from .schemas import MemoryPrimer, Session
from .store import PrimerStore, SessionSource


logger = logging.getLogger(__name__)


class SessionMemoryCache:
    """
    Read-through session cache keyed by handle.

    Provides:
    - hydrate(handle): sessions for a handle, newest first
    - snapshot(session_id): the focus session plus its handle's sessions
    - invalidate(handle): drop cached sessions so the next read refetches
    """

    def __init__(self, source: SessionSource):
        self.source = source
        self._by_handle: Dict[str, List[Session]] = {}
        self._lock = threading.Lock()

    def hydrate(self, handle: Optional[str]) -> List[Session]:
        """
        Return the sessions recorded for ``handle``, newest first.

        Args:
            handle: Raw handle, None for unassigned sessions

        Returns:
            Sessions from cache, or freshly fetched from the source
        """
        key = primer_key_for_handle(handle)
        with self._lock:
            cached = self._by_handle.get(key)
        if cached is not None:
            return list(cached)

        sessions = sessions_newest_first(self.source.fetch_sessions(handle))
        log_diagnostic("log", "session:hydrate:complete", handle=key, session_count=len(sessions))
        with self._lock:
            self._by_handle[key] = sessions
        return list(sessions)

    def snapshot(self, session_id: Optional[str]) -> Tuple[Optional[Session], List[Session]]:
        """
        Load the focus session and every session sharing its handle.

        The focus session is always read from the source so newly appended
        turns are visible even when the handle's list is cached.

        Returns:
            (current session or None, sessions newest first)
        """
        if not session_id:
            return None, []
        current = self.source.fetch_session(session_id)
        if current is None:
            return None, []
        sessions = [s for s in self.hydrate(current.user_handle) if s.id != current.id]
        sessions.append(current)
        return current, sessions_newest_first(sessions)

    def invalidate(self, handle: Optional[str] = None) -> None:
        """Forget cached sessions for one handle, or for all when None."""
        with self._lock:
            if handle is None:
                self._by_handle.clear()
            else:
                self._by_handle.pop(primer_key_for_handle(handle), None)


class PrimerService:
    """
    Loads and rebuilds memory primers.

    Rebuilds for the same handle are serialized with a per-handle lock;
    different handles rebuild independently. A primer that cannot be stored
    is still returned, since it can always be rebuilt from sessions.
    """

    def __init__(
        self,
        cache: SessionMemoryCache,
        store: Optional[PrimerStore] = None,
        settings: Optional[Settings] = None,
    ):
        self.cache = cache
        self.store = store
        self.settings = settings or Settings()
        self._memory: Dict[str, MemoryPrimer] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def _load_stored(self, key: str) -> Optional[MemoryPrimer]:
        if self.store is None:
            return None
        try:
            return self.store.get(key)
        except Exception as err:
            log_diagnostic("error", "primer:load:failure", handle=key, error=describe_error(err))
            return None

    def get_primer(self, handle: Optional[str]) -> MemoryPrimer:
        """
        Return the primer for ``handle``.

        Order of preference: the in-process copy, the stored copy, a rebuild
        from sessions that have content, and finally the empty primer.
        """
        key = primer_key_for_handle(handle)
        primer = self._memory.get(key) or self._load_stored(key)
        if primer is not None and primer.markdown_text:
            self._memory[key] = primer
            return primer

        sessions = self.cache.hydrate(handle)
        if any(session.has_content() for session in sessions):
            return self.rebuild(handle)

        empty = build_memory_primer([], handle=normalize_handle(handle), settings=self.settings)
        self._memory[key] = empty
        return empty

    def rebuild(self, handle: Optional[str]) -> MemoryPrimer:
        """
        Recompile the primer for ``handle`` from all of its sessions.

        Returns:
            The rebuilt primer, stored when a store is configured
        """
        key = primer_key_for_handle(handle)
        with self._lock_for(key):
            sessions = self.cache.hydrate(handle)
            primer = build_memory_primer(sessions, handle=normalize_handle(handle), settings=self.settings)
            if self.store is not None:
                try:
                    self.store.put(primer)
                except Exception as err:
                    log_diagnostic("error", "primer:rebuild:failure", handle=key, error=describe_error(err))
            self._memory[key] = primer
            log_diagnostic(
                "log", "primer:rebuild:complete",
                handle=key, session_count=len(sessions), chars=len(primer.markdown_text),
            )
            return primer

    def forget(self, handle: Optional[str] = None) -> None:
        """Drop the in-process primer copy for one handle, or all."""
        if handle is None:
            self._memory.clear()
        else:
            self._memory.pop(primer_key_for_handle(handle), None)
