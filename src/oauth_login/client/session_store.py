"""
In-memory session store for the login flow.

Maps the opaque ``session_id`` cookie value to the server-side record of a
login attempt: the CSRF state and PKCE verifier generated at login start,
and the user profile once the callback succeeds.

Note: a production deployment running more than one process would back
this with a shared store (Redis, a database) instead of process memory.
"""

import asyncio
from collections import deque
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Callable, Deque, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..shared.logging_utils import ComponentType, OAuthLogger
from ..shared.oauth_models import Profile

logger = OAuthLogger(ComponentType.SESSION_STORE)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthSession(BaseModel):
    """
    Server-side record of one login attempt.

    Frozen: ``csrf_token`` and ``pkce_code_verifier`` never change after
    creation, and the profile is attached by replacing the record.
    """
    model_config = ConfigDict(frozen=True)

    csrf_token: str = Field(..., min_length=1)
    pkce_code_verifier: str = Field(..., min_length=1)
    profile: Optional[Profile] = None
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_authenticated(self) -> bool:
        return self.profile is not None

    def is_expired(self, ttl: Optional[timedelta], now: datetime) -> bool:
        return ttl is not None and now - self.created_at > ttl


class ReadWriteLock:
    """
    Asyncio reader/writer lock.

    Any number of readers may hold the lock together; a writer holds it
    alone. Waiting writers block new readers so writes are not starved.

    Releasing never awaits, so a task cancelled inside or on its way out of
    a critical section cannot leave the lock held.
    """

    def __init__(self):
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0
        self._waiters: Deque[asyncio.Future] = deque()

    def _wake_all(self):
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)

    async def _wait_until(self, predicate: Callable[[], bool]) -> None:
        # Wakeups are broadcast; every waiter re-checks its own condition
        while not predicate():
            waiter = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            await waiter

    @asynccontextmanager
    async def reader(self) -> AsyncIterator[None]:
        await self._wait_until(lambda: not self._writer and not self._writers_waiting)
        self._readers += 1
        try:
            yield
        finally:
            self._readers -= 1
            if not self._readers:
                self._wake_all()

    @asynccontextmanager
    async def writer(self) -> AsyncIterator[None]:
        self._writers_waiting += 1
        try:
            await self._wait_until(lambda: not self._writer and not self._readers)
        except BaseException:
            self._writers_waiting -= 1
            # Readers held back by this writer may proceed now
            self._wake_all()
            raise
        self._writers_waiting -= 1
        self._writer = True
        try:
            yield
        finally:
            self._writer = False
            self._wake_all()


class SessionStore:
    """
    Concurrency-safe mapping from session id to ``AuthSession``.

    Each operation takes the lock for a single map operation only; callers
    must never hold it across network I/O.

    Args:
        ttl_seconds: sessions older than this read as absent and are purged
            on the next ``create``; ``None`` or ``0`` keeps them forever
        clock: returns the current UTC time (injected by tests)
    """

    def __init__(self,
                 ttl_seconds: Optional[int] = None,
                 clock: Callable[[], datetime] = _utcnow):
        self._sessions: Dict[str, AuthSession] = {}
        self._lock = ReadWriteLock()
        self._ttl = timedelta(seconds=ttl_seconds) if ttl_seconds else None
        self._clock = clock

    def __len__(self) -> int:
        """Stored entries, including expired ones not yet purged."""
        return len(self._sessions)

    def _live(self, session: Optional[AuthSession]) -> Optional[AuthSession]:
        if session is None or session.is_expired(self._ttl, self._clock()):
            return None
        return session

    def _purge_locked(self) -> int:
        if self._ttl is None:
            return 0
        now = self._clock()
        expired = [sid for sid, session in self._sessions.items()
                   if session.is_expired(self._ttl, now)]
        for sid in expired:
            del self._sessions[sid]
        return len(expired)

    async def create(self, session_id: str, session: AuthSession) -> None:
        """Insert a session, silently replacing any entry with the same id."""
        async with self._lock.writer():
            purged = self._purge_locked()
            self._sessions[session_id] = session
            total = len(self._sessions)

        logger.log_session_operation("created", session_id, {
            "authenticated": session.is_authenticated,
            "expired_sessions_purged": purged,
            "active_sessions": total
        })

    async def get(self, session_id: str) -> Optional[AuthSession]:
        async with self._lock.reader():
            return self._live(self._sessions.get(session_id))

    async def attach_profile(self, session_id: str, profile: Profile) -> Optional[AuthSession]:
        """
        Attach the authenticated profile to a pending session.

        A profile that is already present is never overwritten.

        Returns:
            The stored session, or None if it no longer exists
        """
        async with self._lock.writer():
            session = self._live(self._sessions.get(session_id))
            if session is None:
                return None
            if session.profile is not None:
                return session
            session = session.model_copy(update={"profile": profile})
            self._sessions[session_id] = session

        logger.log_session_operation("authenticated", session_id, {
            "user_id": profile.user_id
        })
        return session

    async def remove(self, session_id: str) -> bool:
        """Delete a session. Returns whether an entry was removed."""
        async with self._lock.writer():
            removed = self._sessions.pop(session_id, None) is not None

        if removed:
            logger.log_session_operation("removed", session_id)
        return removed

    async def count(self) -> int:
        """Number of live sessions; expired entries awaiting purge are not counted."""
        async with self._lock.reader():
            now = self._clock()
            return sum(1 for session in self._sessions.values()
                       if not session.is_expired(self._ttl, now))

    async def purge_expired(self) -> int:
        """Drop every expired session and return how many were dropped."""
        async with self._lock.writer():
            return self._purge_locked()
