"""
In-memory registry of active voice sessions, one per room.

The registry only tracks which VoiceSession is live in which room; all
transcript state lives inside the VoiceSession and its aggregator.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable

from scribe.capture.session import VoiceSession

logger = logging.getLogger(__name__)

SessionFactory = Callable[[str], VoiceSession]


class SessionStore:
    def __init__(self, factory: SessionFactory, max_sessions: int = 10) -> None:
        self._factory = factory
        self._max = max_sessions
        self._sessions: dict[str, VoiceSession] = {}
        self._lock = asyncio.Lock()

    async def join(self, room_id: str) -> VoiceSession:
        """Start a session for room_id. Raises RuntimeError if the room is busy or the limit is reached."""
        async with self._lock:
            if room_id in self._sessions:
                raise RuntimeError(f"Room {room_id} already has an active session")
            if len(self._sessions) >= self._max:
                raise RuntimeError(f"Max sessions ({self._max}) reached")
            session = self._factory(room_id)
            await session.start()
            self._sessions[room_id] = session
            logger.info("Session %s joined room %s (%d active)", session.session_id, room_id, len(self._sessions))
            return session

    async def leave(self, room_id: str) -> VoiceSession | None:
        """Unregister the room's session and return it (caller ends it)."""
        async with self._lock:
            session = self._sessions.pop(room_id, None)
        if session is not None:
            logger.info("Room %s left (%d active)", room_id, len(self._sessions))
        return session

    def get(self, room_id: str) -> VoiceSession | None:
        return self._sessions.get(room_id)

    def rooms(self) -> dict[str, str]:
        """room_id -> session_id for every active session."""
        return {room_id: s.session_id for room_id, s in self._sessions.items()}

    @property
    def active_count(self) -> int:
        return len(self._sessions)
