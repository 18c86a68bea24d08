"""Session partition registry.

Every client session reads through its own HeadingCache, rooted at
`sessions[sessionId]` of the shared document store. The registry is the
table of live sessions that the invalidation broadcast walks.
"""

import logging
import threading
import uuid
from typing import Optional

from headingcache.adapters.cache.heading_cache import HeadingCache
from headingcache.adapters.storage.prefixed_adapter import PrefixedDocumentStore
from headingcache.domain.ports import DocumentStorePort, SessionRegistryPort

logger = logging.getLogger(__name__)

SESSIONS_ROOT = "sessions"


class SessionHandle:
    """A live session and its cache partition."""

    def __init__(self, session_id: str, store: DocumentStorePort):
        self.session_id = session_id
        self.store = PrefixedDocumentStore(store, [SESSIONS_ROOT, session_id])
        self._heading_cache = HeadingCache(self.store)

    @property
    def heading_cache(self) -> HeadingCache:
        return self._heading_cache

    def __repr__(self) -> str:
        return f"SessionHandle(session_id={self.session_id!r})"


class InMemorySessionRegistry(SessionRegistryPort):
    """Process-local table of active sessions.

    Partition data lives in the document store; only the table of session
    ids is kept in memory.
    """

    def __init__(self, store: DocumentStorePort):
        self._store = store
        self._sessions: dict[str, SessionHandle] = {}
        self._lock = threading.RLock()

    def create(self, session_id: Optional[str] = None) -> SessionHandle:
        """Open a session with an empty partition.

        Raises:
            ValueError: If a session with this id is already active
        """
        session_id = session_id or uuid.uuid4().hex
        with self._lock:
            if session_id in self._sessions:
                raise ValueError(f"Session {session_id} is already active")
            # Leftovers from a previous process must not leak into a new session
            self._store.delete([SESSIONS_ROOT, session_id])
            handle = SessionHandle(session_id, self._store)
            self._sessions[session_id] = handle

        logger.info(f"sessions/registry|create sessionId={session_id}")
        return handle

    def get(self, session_id: str) -> Optional[SessionHandle]:
        with self._lock:
            return self._sessions.get(session_id)

    def get_or_create(self, session_id: str) -> SessionHandle:
        with self._lock:
            handle = self._sessions.get(session_id)
            return handle if handle is not None else self.create(session_id)

    def end(self, session_id: str) -> bool:
        """Close a session and drop its partition.

        Returns:
            True if the session was active
        """
        with self._lock:
            handle = self._sessions.pop(session_id, None)
        if handle is None:
            return False

        self._store.delete([SESSIONS_ROOT, session_id])
        logger.info(f"sessions/registry|end sessionId={session_id}")
        return True

    def active_sessions(self) -> list[SessionHandle]:
        with self._lock:
            return list(self._sessions.values())
