"""
SessionAggregator: the one synchronization point between concurrent utterances.

- append() may be called from any number of utterance tasks (or executor
  threads); a lock makes each insert atomic and short.
- drain_and_reset() swaps the collection out under the same lock, so a racing
  append lands either before the swap (drained now) or after it (next session).
- Every session gets an explicit id. Entries tagged with an id that was already
  drained are late arrivals: they are logged and dropped so nothing leaks into
  the following session.
"""
from __future__ import annotations

import logging
import threading
import uuid

from scribe.transcript.models import SessionTranscript, TranscriptionEntry, unix_ms

logger = logging.getLogger(__name__)


def generate_session_id() -> str:
    """New session id (UUID hex, 12 chars)."""
    return uuid.uuid4().hex[:12]


class SessionAggregator:
    """Collects TranscriptionEntry values for the currently open session."""

    def __init__(self, session_id: str | None = None) -> None:
        self._lock = threading.Lock()
        self._session_id = session_id or generate_session_id()
        self._entries: list[TranscriptionEntry] = []
        self._drained_ids: set[str] = set()

    @property
    def session_id(self) -> str:
        return self._session_id

    def append(self, entry: TranscriptionEntry) -> bool:
        """Add an entry to the open session. Returns False for a late arrival from a drained session."""
        with self._lock:
            if entry.session_id is not None and entry.session_id != self._session_id:
                late = entry.session_id in self._drained_ids
            else:
                self._entries.append(entry)
                return True
        if late:
            logger.warning(
                "Late entry from drained session %s dropped (speaker=%s, ts=%s)",
                entry.session_id,
                entry.speaker_id,
                entry.timestamp,
            )
        else:
            logger.warning(
                "Entry for unknown session %s dropped (open session %s, speaker=%s, ts=%s)",
                entry.session_id,
                self._session_id,
                entry.speaker_id,
                entry.timestamp,
            )
        return False

    def drain_and_reset(self) -> list[TranscriptionEntry]:
        """Take all entries, sorted by utterance start (stable), and open a fresh session."""
        entries, _ = self._swap()
        return entries

    def drain_transcript(self) -> SessionTranscript:
        """drain_and_reset() as a SessionTranscript tagged with the drained session id."""
        entries, session_id = self._swap()
        return SessionTranscript(session_id=session_id, entries=tuple(entries), ended_at=unix_ms())

    def _swap(self) -> tuple[list[TranscriptionEntry], str]:
        with self._lock:
            entries = self._entries
            session_id = self._session_id
            self._entries = []
            self._drained_ids.add(session_id)
            self._session_id = generate_session_id()
        # list.sort is stable: equal timestamps keep append order
        entries.sort(key=lambda e: e.timestamp)
        logger.info("Session %s drained: %d entries", session_id, len(entries))
        return entries, session_id

    def snapshot(self) -> list[TranscriptionEntry]:
        """Copy of the open session's entries in timestamp order, without draining."""
        with self._lock:
            entries = list(self._entries)
        entries.sort(key=lambda e: e.timestamp)
        return entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
