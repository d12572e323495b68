from __future__ import annotations

import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Protocol

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


@dataclass(frozen=True)
class Session:
    token: str
    username: str
    login_time: float
    expires_at: float | None = None

    def expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class SessionStore(Protocol):
    """Capability set the HTTP layer relies on; swap in a shared backend here."""

    def create(self, username: str) -> Session: ...

    def get(self, token: str | None) -> Session | None: ...

    def is_valid(self, token: str | None) -> bool: ...

    def revoke(self, token: str) -> bool: ...


def generate_session_token() -> str:
    # 256 bits of randomness, 64 hex characters.
    return secrets.token_hex(TOKEN_BYTES)


class InMemorySessionStore:
    """Process-local sessions. Nothing survives a restart, including a reload restart."""

    def __init__(
        self, *, ttl_seconds: float | None = None, clock: Callable[[], float] = time.time
    ) -> None:
        self._ttl = ttl_seconds if ttl_seconds else None
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def create(self, username: str) -> Session:
        now = self._clock()
        session = Session(
            token=generate_session_token(),
            username=username,
            login_time=now,
            expires_at=now + self._ttl if self._ttl is not None else None,
        )
        with self._lock:
            # Abandoned logins are never presented again; drop them here.
            self._purge_locked(now)
            self._sessions[session.token] = session
        return session

    def get(self, token: str | None) -> Session | None:
        if not token:
            return None
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if session.expired(self._clock()):
                del self._sessions[token]
                logger.info("Session for %s expired", session.username)
                return None
            return session

    def is_valid(self, token: str | None) -> bool:
        return self.get(token) is not None

    def revoke(self, token: str) -> bool:
        with self._lock:
            return self._sessions.pop(token, None) is not None

    def _purge_locked(self, now: float) -> int:
        stale = [t for t, s in self._sessions.items() if s.expired(now)]
        for t in stale:
            del self._sessions[t]
        return len(stale)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            return self._purge_locked(now)
