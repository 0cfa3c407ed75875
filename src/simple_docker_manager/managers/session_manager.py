"""In-memory login session store with lazy expiry."""

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional
from uuid import uuid4

from simple_docker_manager.models.sessions import Session
from simple_docker_manager.utils import get_logger
from simple_docker_manager.utils.exceptions import ConfigurationError

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionManager:
    """
    Maps opaque session tokens to sessions.

    Expiry is lazy: a session idle for longer than the timeout is removed by
    the first ``get`` that sees it, or by ``sweep_expired``. Every operation
    mutates the map (``get`` refreshes ``last_accessed``), so all of them take
    the same exclusive lock.
    """

    def __init__(
        self,
        timeout_seconds: int,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Initialize session manager.

        Args:
            timeout_seconds: Idle time after which a session expires
            clock: Source of the current time (UTC)

        Raises:
            ConfigurationError: If timeout_seconds is not positive
        """
        if timeout_seconds <= 0:
            raise ConfigurationError(
                f"Session timeout must be positive, got {timeout_seconds} seconds"
            )

        self.timeout = timedelta(seconds=timeout_seconds)
        self._clock = clock
        self._sessions: Dict[str, Session] = {}
        self._lock = asyncio.Lock()

    def _is_expired(self, session: Session, now: datetime) -> bool:
        return now - session.last_accessed > self.timeout

    async def create(self, username: str) -> str:
        """
        Create a session for a user who just signed in.

        Args:
            username: Owner of the session

        Returns:
            New session token
        """
        now = self._clock()
        async with self._lock:
            session_id = str(uuid4())
            while session_id in self._sessions:
                session_id = str(uuid4())

            self._sessions[session_id] = Session(
                session_id=session_id,
                username=username,
                created_at=now,
                last_accessed=now,
            )

        logger.info("Created session", extra={"username": username})
        return session_id

    async def get(self, session_id: str) -> Optional[Session]:
        """
        Look up a session, expiring or refreshing it.

        Args:
            session_id: Session token

        Returns:
            Copy of the session, or None if unknown or expired
        """
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None

            now = self._clock()
            if self._is_expired(session, now):
                del self._sessions[session_id]
                logger.info("Removed expired session", extra={"username": session.username})
                return None

            # Never move last_accessed backwards if the clock does
            if now > session.last_accessed:
                session.last_accessed = now
            return replace(session)

    async def remove(self, session_id: str) -> Optional[Session]:
        """
        Remove a session (logout).

        Args:
            session_id: Session token

        Returns:
            The removed session, or None if there was none
        """
        async with self._lock:
            session = self._sessions.pop(session_id, None)

        if session is not None:
            logger.info("Removed session", extra={"username": session.username})
        return session

    async def sweep_expired(self) -> int:
        """
        Remove every expired session regardless of read traffic.

        Returns:
            Number of sessions removed
        """
        now = self._clock()
        async with self._lock:
            expired = [
                session_id
                for session_id, session in self._sessions.items()
                if self._is_expired(session, now)
            ]
            for session_id in expired:
                del self._sessions[session_id]

        if expired:
            logger.info("Swept expired sessions", extra={"count": len(expired)})
        return len(expired)

    async def active_count(self) -> int:
        """Number of stored sessions, including expired ones not yet read."""
        async with self._lock:
            return len(self._sessions)
