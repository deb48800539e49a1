"""In-process session store mapping opaque tokens to worker sessions.

Sessions live for the lifetime of the process; there is no expiry here.
A single re-entrant lock guards the map and stored sessions are immutable,
so readers only ever see a complete session or none.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from threading import RLock

from atelier_mes.core.errors import UnknownSessionError
from atelier_mes.core.settings import settings
from atelier_mes.schemas.session import WorkerSession

__all__ = ["SessionStore", "get_session_store"]

logger = logging.getLogger(__name__)


def _default_token() -> str:
    return secrets.token_urlsafe(settings.session_token_bytes)


class SessionStore:
    """Token to session map safe for concurrent callers."""

    def __init__(self, token_factory: Callable[[], str] = _default_token) -> None:
        self._token_factory = token_factory
        self._sessions: dict[str, WorkerSession] = {}
        self._lock = RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def create(self, session: WorkerSession) -> str:
        """Store ``session`` under a fresh token and return the token."""
        with self._lock:
            token = self._fresh_token()
            self._sessions[token] = session
        logger.info("Session opened for worker %s at %s", session.worker_id, session.station_code)
        return token

    def get(self, token: str) -> WorkerSession | None:
        with self._lock:
            return self._sessions.get(token)

    def require(self, token: str) -> WorkerSession:
        """Return the session for ``token`` or raise ``UnknownSessionError``."""
        session = self.get(token)
        if session is None:
            raise UnknownSessionError("Session not found")
        return session

    def replace(self, token: str, session: WorkerSession) -> bool:
        """Overwrite an existing session; unknown tokens are left alone."""
        with self._lock:
            if token not in self._sessions:
                return False
            self._sessions[token] = session
            return True

    def rotate(self, old_token: str, session: WorkerSession) -> str:
        """Atomically invalidate ``old_token`` and store ``session`` under a new token.

        Raises:
            UnknownSessionError: if ``old_token`` is not live; nothing is stored.
        """
        with self._lock:
            if self._sessions.pop(old_token, None) is None:
                raise UnknownSessionError("Session not found")
            token = self._fresh_token()
            self._sessions[token] = session
        logger.info("Session rotated for worker %s to %s", session.worker_id, session.station_code)
        return token

    def delete(self, token: str) -> bool:
        with self._lock:
            return self._sessions.pop(token, None) is not None

    def is_valid(self, token: str) -> bool:
        return self.get(token) is not None

    def list_by_worker(self, worker_id: int) -> list[WorkerSession]:
        with self._lock:
            return [s for s in self._sessions.values() if s.worker_id == worker_id]

    def clear_for_worker(self, worker_id: int) -> int:
        """Delete every session of a worker and return how many were removed."""
        with self._lock:
            tokens = [t for t, s in self._sessions.items() if s.worker_id == worker_id]
            for token in tokens:
                del self._sessions[token]
        if tokens:
            logger.info("Cleared %d session(s) for worker %s", len(tokens), worker_id)
        return len(tokens)

    def _fresh_token(self) -> str:
        # Caller holds the lock.
        token = self._token_factory()
        while token in self._sessions:
            token = self._token_factory()
        return token


_STORE = SessionStore()


def get_session_store() -> SessionStore:
    """Return the process-wide session store."""
    return _STORE
