"""
Registry of live peer sessions.

Membership is the only state shared between sessions. It changes only
through add()/remove() under the registry lock; readers get a copy.
"""

import asyncio
from collections.abc import Mapping
from types import MappingProxyType

from vncproxy.proxy.session import PeerSession
from vncproxy.utils.logger import get_logger

logger = get_logger(__name__)


class SessionRegistry:
    """Concurrency-safe set of active sessions keyed by session_id."""

    def __init__(self):
        self._sessions: dict[str, PeerSession] = {}
        self._lock = asyncio.Lock()

    async def add(self, session: PeerSession) -> bool:
        """
        Register a session.

        Returns:
            False if the session was already registered.
        """
        async with self._lock:
            if session.session_id in self._sessions:
                return False
            self._sessions[session.session_id] = session
            count = len(self._sessions)

        logger.info(
            f"[Registry] Added {session.log_prefix} -> {session.address} "
            f"(active={count})"
        )
        return True

    async def remove(self, session: PeerSession) -> bool:
        """
        Deregister a session and close its connections.

        The entry is gone before teardown starts, and the lock is released
        before any network I/O. A second remove() is a no-op.

        Returns:
            False if the session was not registered.
        """
        async with self._lock:
            removed = self._sessions.pop(session.session_id, None)
            count = len(self._sessions)

        if removed is None:
            return False

        await removed.close()
        logger.info(f"[Registry] Removed {session.log_prefix} (active={count})")
        return True

    def snapshot(self) -> Mapping[str, PeerSession]:
        """Read-only copy of the current membership."""
        return MappingProxyType(dict(self._sessions))

    async def close_all(self) -> int:
        """Remove and close every session. Returns how many were closed."""
        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()

        for session in sessions:
            await session.close()
        if sessions:
            logger.info(f"[Registry] Closed {len(sessions)} session(s)")
        return len(sessions)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session: object) -> bool:
        if isinstance(session, PeerSession):
            return session.session_id in self._sessions
        return session in self._sessions
