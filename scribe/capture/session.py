"""
VoiceSession: one joined voice room, from join to leave.

Owns the session's SessionAggregator and injects it into every
UtteranceCapture it spawns, so several rooms can run side by side without
sharing state.

Speaker handling:
- speaker_start() opens an utterance for a speaker. While that utterance is
  still capturing, a second start for the same speaker is ignored.
- Once an utterance stops capturing (silence or explicit end) the speaker is
  free again; the finished utterance keeps transcribing in the background.
- feed() is the usual transport entry point: a frame for a speaker with no
  capturing utterance is that speaker's start signal.

end(): close every open stream, give in-flight utterances a bounded grace
period, drain the aggregator, summarize, write the transcript artifact.
Anything still running after the grace period is cancelled; its entry would
belong to an already drained session anyway.
"""
from __future__ import annotations

import asyncio
import functools
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from scribe.asr.base import TranscriptionClient
from scribe.audio.decoder import SpeechDecoder, create_speech_decoder
from scribe.audio.receiver import FrameQueue
from scribe.audio.vad import VADProcessor
from scribe.capture.utterance import UtteranceCapture
from scribe.config import get_settings
from scribe.summary.base import SummarizationClient
from scribe.transcript.aggregator import SessionAggregator
from scribe.transcript.models import SessionTranscript, unix_ms
from scribe.transcript.writer import (
    SessionLogWriterBase,
    create_session_log_writer,
    write_session_transcript,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], int]
NameResolver = Callable[[str], Awaitable[str]]


class SessionClock:
    """
    Millisecond wall-clock timestamps that never go backwards: anchored to
    time.time() once, advanced with time.monotonic().
    """

    def __init__(self) -> None:
        self._wall_ms = unix_ms()
        self._mono = time.monotonic()

    def __call__(self) -> int:
        return self._wall_ms + int((time.monotonic() - self._mono) * 1000)


@dataclass
class SessionResult:
    """What a finished session produced."""

    session_id: str
    transcript: SessionTranscript
    summary: str = ""
    artifact_path: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "date": self.transcript.date,
            "entries": [e.to_dict() for e in self.transcript.entries],
            "summary": self.summary,
            "artifact": self.artifact_path,
        }


class VoiceSession:
    """Per-room orchestration of concurrent per-speaker utterances."""

    def __init__(
        self,
        room_id: str,
        transcriber: TranscriptionClient,
        summarizer: SummarizationClient,
        decoder_factory: Optional[Callable[[], SpeechDecoder]] = None,
        name_resolver: Optional[NameResolver] = None,
        clock: Optional[Clock] = None,
        silence_timeout_ms: Optional[int] = None,
        grace_seconds: Optional[float] = None,
        log_writer: Optional[SessionLogWriterBase] = None,
        save_transcript: Optional[bool] = None,
        transcript_dir: Optional[str] = None,
    ) -> None:
        settings = get_settings()
        self.room_id = room_id
        self.aggregator = SessionAggregator()
        self._transcriber = transcriber
        self._summarizer = summarizer
        self._decoder_factory = decoder_factory or create_speech_decoder
        self._name_resolver = name_resolver
        self._clock = clock or SessionClock()
        self._silence_timeout_ms = silence_timeout_ms
        self._grace_seconds = grace_seconds if grace_seconds is not None else settings.SESSION_GRACE_SECONDS
        self._save_transcript = save_transcript if save_transcript is not None else settings.TRANSCRIPT_SAVE_ENABLED
        self._transcript_dir = transcript_dir or settings.TRANSCRIPT_DIR
        self._vad = VADProcessor() if settings.VAD_GATE_ENABLED else None
        self._log_writer = log_writer or create_session_log_writer(self.aggregator.session_id)

        self._capturing: dict[str, UtteranceCapture] = {}
        self._tasks: set[asyncio.Task] = set()
        self._started = False
        self._ending = False

    @property
    def session_id(self) -> str:
        return self.aggregator.session_id

    @property
    def active_speakers(self) -> list[str]:
        return list(self._capturing)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        await self._log_writer.start()
        logger.info("Voice session %s started in room %s", self.session_id, self.room_id)

    async def speaker_start(self, speaker_id: str, speaker_name: Optional[str] = None) -> Optional[FrameQueue]:
        """
        Open a new utterance for speaker_id and return its frame queue.
        Returns None when the speaker already has a capturing utterance or the session is ending.
        """
        if self._ending:
            logger.debug("Speaker %s start ignored: session %s is ending", speaker_id, self.session_id)
            return None
        if speaker_id in self._capturing:
            logger.debug("Duplicate speaker start ignored for %s", speaker_id)
            return None
        started_at = self._clock()
        frames = FrameQueue()
        resolve_name = None
        if speaker_name is None and self._name_resolver is not None:
            resolve_name = functools.partial(self._resolve_name, speaker_id)
        capture = UtteranceCapture(
            speaker_id=speaker_id,
            speaker_name=speaker_name or speaker_id,
            started_at=started_at,
            frames=frames,
            decoder_factory=self._decoder_factory,
            transcriber=self._transcriber,
            aggregator=self.aggregator,
            silence_timeout_ms=self._silence_timeout_ms,
            vad=self._vad,
            on_capture_closed=self._on_capture_closed,
            on_entry=self._log_writer.append,
            resolve_name=resolve_name,
        )
        self._capturing[speaker_id] = capture
        # The task exists before anything is awaited, so end() always sees it
        task = asyncio.create_task(capture.run(), name=f"utterance-{speaker_id}-{started_at}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return frames

    async def _resolve_name(self, speaker_id: str) -> str:
        try:
            name = await self._name_resolver(speaker_id)
        except Exception as e:
            logger.warning("Could not resolve display name for %s: %s", speaker_id, e)
            return speaker_id
        return (name or "").strip() or speaker_id

    async def feed(self, speaker_id: str, frame: bytes, speaker_name: Optional[str] = None) -> bool:
        """Route one frame to the speaker's capturing utterance, starting one if needed."""
        capture = self._capturing.get(speaker_id)
        if capture is not None:
            if capture.frames.feed(frame):
                return True
            self._on_capture_closed(capture)
        frames = await self.speaker_start(speaker_id, speaker_name)
        return frames is not None and frames.feed(frame)

    def speaker_end(self, speaker_id: str) -> None:
        """Explicit end-of-speech from the transport."""
        capture = self._capturing.pop(speaker_id, None)
        if capture is not None:
            # The ended utterance drains in the background; the next frame starts a new one
            capture.frames.end()

    def _on_capture_closed(self, capture: UtteranceCapture) -> None:
        if self._capturing.get(capture.speaker_id) is capture:
            del self._capturing[capture.speaker_id]

    async def end(self) -> SessionResult:
        """Finish the session: grace period, drain, summary, artifact."""
        self._ending = True
        for capture in list(self._capturing.values()):
            capture.frames.end()

        pending = set(self._tasks)
        if pending:
            logger.info(
                "Session %s ending: waiting up to %.1fs for %d utterances",
                self.session_id,
                self._grace_seconds,
                len(pending),
            )
            _, still_running = await asyncio.wait(pending, timeout=self._grace_seconds)
        else:
            still_running = set()

        transcript = self.aggregator.drain_transcript()

        if still_running:
            logger.warning(
                "Session %s: %d utterances missed the grace period and were cancelled",
                transcript.session_id,
                len(still_running),
            )
            for task in still_running:
                task.cancel()
            await asyncio.gather(*still_running, return_exceptions=True)

        summary = ""
        artifact_path = None
        if transcript:
            summary = await self._summarizer.summarize(transcript.text)
            if self._save_transcript:
                loop = asyncio.get_running_loop()
                try:
                    artifact_path = await loop.run_in_executor(
                        None, write_session_transcript, transcript, summary, self._transcript_dir
                    )
                except OSError as e:
                    logger.error("Could not save transcript for session %s: %s", transcript.session_id, e)
        else:
            logger.info("Session %s ended with no conversation recorded", transcript.session_id)

        # Consolidated file written (or nothing to consolidate): the running log is no longer needed
        await self._log_writer.close(remove=artifact_path is not None or not transcript)
        return SessionResult(
            session_id=transcript.session_id,
            transcript=transcript,
            summary=summary,
            artifact_path=artifact_path,
        )
