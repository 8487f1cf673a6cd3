"""
Transcript persistence.

SessionLogWriter: append-only log of entries in the order they complete,
transcripts/{session_id}.log. Written while the session runs so a crash still
leaves a record. Completion order differs from speaking order, so this file
is not the transcript; it is removed by session id once the consolidated
artifact is written.

write_session_transcript(): the consolidated artifact, one file per session:

    Session Transcript
    Date: 2024-05-01

    [2024-05-01T12:00:01.000Z] alice: hello
    [2024-05-01T12:00:01.200Z] bob: world


    Summary:
    ...
"""
from __future__ import annotations

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from typing import Optional

from scribe.config import get_settings
from scribe.transcript.models import SessionTranscript, TranscriptionEntry

logger = logging.getLogger(__name__)


class SessionLogWriterBase(ABC):
    """Base for the per-session entry log."""

    @abstractmethod
    async def start(self) -> None:
        """Open the log. Call once when the session starts."""
        ...

    @abstractmethod
    def append(self, entry: TranscriptionEntry) -> None:
        """Queue one entry line. Non-blocking."""
        ...

    @abstractmethod
    async def close(self, remove: bool = False) -> None:
        """Flush and close; remove=True deletes the log (consolidated artifact exists)."""
        ...


class NoOpSessionLogWriter(SessionLogWriterBase):
    """When the session log is disabled. No file I/O."""

    async def start(self) -> None:
        pass

    def append(self, entry: TranscriptionEntry) -> None:
        pass

    async def close(self, remove: bool = False) -> None:
        pass


class SessionLogWriter(SessionLogWriterBase):
    """
    One file per session: transcripts/{session_id}.log, one line per entry.
    Utterance tasks only enqueue; a single flusher task owns the file handle
    and writes whatever has accumulated since its last wake-up.
    """

    _STOP = object()

    def __init__(self, session_id: str, transcript_dir: Optional[str] = None) -> None:
        self.session_id = session_id
        self._dir = transcript_dir or get_settings().TRANSCRIPT_DIR
        self._path = os.path.join(self._dir, f"{session_id}.log")
        self._pending: asyncio.Queue = asyncio.Queue()
        self._flusher: Optional[asyncio.Task] = None

    @property
    def path(self) -> str:
        return self._path

    def _open(self):
        try:
            os.makedirs(self._dir, exist_ok=True)
            return open(self._path, "a", encoding="utf-8")
        except OSError as e:
            logger.warning("Session log %s unavailable, entries will not be logged: %s", self._path, e)
            return None

    async def _flush_loop(self) -> None:
        fh = self._open()
        stopping = False
        try:
            while not stopping:
                batch = [await self._pending.get()]
                while not self._pending.empty():
                    batch.append(self._pending.get_nowait())
                if self._STOP in batch:
                    stopping = True
                    batch = [item for item in batch if item is not self._STOP]
                if fh is None or not batch:
                    continue
                try:
                    fh.write("".join(f"{line}\n" for line in batch))
                    fh.flush()
                except OSError as e:
                    logger.warning("Session log %s: %d lines lost: %s", self._path, len(batch), e)
        finally:
            if fh is not None:
                fh.close()

    async def start(self) -> None:
        if self._flusher is None:
            self._flusher = asyncio.create_task(self._flush_loop(), name=f"session-log-{self.session_id}")

    def append(self, entry: TranscriptionEntry) -> None:
        if self._flusher is not None:
            self._pending.put_nowait(entry.to_line())

    async def close(self, remove: bool = False) -> None:
        flusher, self._flusher = self._flusher, None
        if flusher is None:
            return
        self._pending.put_nowait(self._STOP)
        done, _ = await asyncio.wait({flusher}, timeout=5.0)
        if not done:
            logger.warning("Session log %s did not flush in time", self._path)
            flusher.cancel()
            await asyncio.gather(flusher, return_exceptions=True)
        if remove and os.path.exists(self._path):
            try:
                os.remove(self._path)
            except OSError as e:
                logger.warning("Session log %s could not be removed: %s", self._path, e)


def create_session_log_writer(session_id: str) -> SessionLogWriterBase:
    """Create writer when TRANSCRIPT_SAVE_ENABLED and SESSION_LOG_ENABLED; else no-op."""
    settings = get_settings()
    if not (settings.TRANSCRIPT_SAVE_ENABLED and settings.SESSION_LOG_ENABLED):
        return NoOpSessionLogWriter()
    return SessionLogWriter(session_id=session_id)


def render_session_transcript(transcript: SessionTranscript, summary: str = "") -> str:
    """Full artifact text: header, ordered lines, summary section."""
    body = transcript.text
    out = f"Session Transcript\nDate: {transcript.date}\n\n{body}\n"
    out += f"\n\nSummary:\n{summary}\n"
    return out


def write_session_transcript(
    transcript: SessionTranscript,
    summary: str = "",
    transcript_dir: Optional[str] = None,
) -> str:
    """
    Write transcripts/session-{date}-{ended_at}.txt in one go and return its path.
    Blocking; run in executor from async code.
    """
    transcript_dir = transcript_dir or get_settings().TRANSCRIPT_DIR
    os.makedirs(transcript_dir, exist_ok=True)
    path = os.path.join(transcript_dir, f"session-{transcript.date}-{transcript.ended_at}.txt")
    with open(path, "w", encoding="utf-8") as f:
        f.write(render_session_transcript(transcript, summary))
    logger.info("Session transcript saved: %s (%d entries)", path, len(transcript))
    return path
