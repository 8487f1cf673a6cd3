r"""
UtteranceCapture: one speaker, one utterance, one asyncio task.

    CAPTURING -> FINALIZING -> TRANSCRIBING -> DONE
         \            \              \
          +------------+--------------+--> FAILED

CAPTURING:    decode frames from the speaker's FrameQueue into a private PCM
              buffer until the transport ends the stream or no frame arrives
              within the silence timeout. Undecodable frames are dropped.
FINALIZING:   wrap the PCM in a WAV container; optionally spool it to disk and
              read it back after a bounded settle wait.
TRANSCRIBING: hand the artifact to the TranscriptionClient. Empty text is not
              an error, it just produces no entry.
DONE:         append a TranscriptionEntry (timestamp = utterance start) to the
              session's aggregator.

Buffers and spooled files are released on every exit path, including
cancellation. A failure here never reaches other utterances or the aggregator.
"""
from __future__ import annotations

import asyncio
import logging
import os
import time
from enum import Enum
from typing import Awaitable, Callable, Optional

from scribe.asr.base import TranscriptionClient, WaveformArtifact
from scribe.audio.decoder import SpeechDecoder
from scribe.audio.receiver import FrameQueue
from scribe.audio.vad import VADProcessor
from scribe.audio.wav import WAV_HEADER_SIZE, decode_wav_header, encode_wav
from scribe.config import get_settings
from scribe.errors import EncodingError, ScribeError, TransportError
from scribe.transcript.aggregator import SessionAggregator
from scribe.transcript.models import TranscriptionEntry, format_iso_ms

logger = logging.getLogger(__name__)

_SETTLE_POLL_SECONDS = 0.05


class UtteranceState(str, Enum):
    CAPTURING = "capturing"
    FINALIZING = "finalizing"
    TRANSCRIBING = "transcribing"
    DONE = "done"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (UtteranceState.DONE, UtteranceState.FAILED)


def _write_artifact_sync(path: str, data: bytes) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "wb") as f:
        f.write(data)


def _read_artifact_sync(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


class UtteranceCapture:
    """
    Owns a single utterance from speaker-start to entry (or to nothing).
    run() is the whole lifecycle; schedule it as a task.
    """

    def __init__(
        self,
        speaker_id: str,
        speaker_name: str,
        started_at: int,
        frames: FrameQueue,
        decoder_factory: Callable[[], SpeechDecoder],
        transcriber: TranscriptionClient,
        aggregator: SessionAggregator,
        session_id: Optional[str] = None,
        silence_timeout_ms: Optional[int] = None,
        spool_dir: Optional[str] = None,
        settle_seconds: Optional[float] = None,
        keep_audio: Optional[bool] = None,
        vad: Optional[VADProcessor] = None,
        on_capture_closed: Optional[Callable[["UtteranceCapture"], None]] = None,
        on_entry: Optional[Callable[[TranscriptionEntry], None]] = None,
        resolve_name: Optional[Callable[[], Awaitable[str]]] = None,
    ) -> None:
        settings = get_settings()
        self.speaker_id = speaker_id
        self.speaker_name = speaker_name
        self.started_at = started_at
        self._frames = frames
        self._decoder_factory = decoder_factory
        self._transcriber = transcriber
        self._aggregator = aggregator
        self.session_id = session_id or aggregator.session_id
        silence_ms = silence_timeout_ms if silence_timeout_ms is not None else settings.SILENCE_TIMEOUT_MS
        self._silence_timeout = silence_ms / 1000.0
        self._spool_dir = spool_dir if spool_dir is not None else settings.UTTERANCE_SPOOL_DIR
        self._settle_seconds = settle_seconds if settle_seconds is not None else settings.ARTIFACT_SETTLE_SECONDS
        self._keep_audio = keep_audio if keep_audio is not None else settings.KEEP_AUDIO_FILES
        self._bits_per_sample = settings.BITS_PER_SAMPLE
        self._vad = vad
        self._on_capture_closed = on_capture_closed
        self._on_entry = on_entry
        self._resolve_name = resolve_name

        self._state = UtteranceState.CAPTURING
        self._buffer = bytearray()
        self._artifact_path: Optional[str] = None
        self._capture_closed = False
        self.frames_received = 0
        self.dropped_frames = 0
        self.entry: Optional[TranscriptionEntry] = None

    @property
    def state(self) -> UtteranceState:
        return self._state

    @property
    def frames(self) -> FrameQueue:
        return self._frames

    def _context(self) -> str:
        return f"speaker={self.speaker_id} start={format_iso_ms(self.started_at)} stage={self._state.value}"

    async def run(self) -> Optional[TranscriptionEntry]:
        """Capture, finalize, transcribe, append. Returns the entry or None."""
        logger.info("Utterance started (%s)", self._context())
        try:
            return await self._run()
        except asyncio.CancelledError:
            logger.warning("Utterance cancelled (%s)", self._context())
            self._state = UtteranceState.FAILED
            raise
        except ScribeError as e:
            logger.warning("Utterance failed (%s): %s", self._context(), e)
            self._state = UtteranceState.FAILED
            return None
        except Exception:
            logger.exception("Utterance failed unexpectedly (%s)", self._context())
            self._state = UtteranceState.FAILED
            return None
        finally:
            self._close_capture()
            self._release()

    async def _run(self) -> Optional[TranscriptionEntry]:
        if self._resolve_name is not None:
            # Frames keep queueing meanwhile; the silence timer starts with the first read
            self.speaker_name = await self._resolve_name()
        decoder = self._decoder_factory()
        await self._capture(decoder)

        self._state = UtteranceState.FINALIZING
        artifact = await self._finalize(decoder)

        if self._vad is not None and not self._vad.has_speech(artifact.pcm):
            logger.info("Utterance has no speech, skipping transcription (%s)", self._context())
            self._state = UtteranceState.DONE
            return None

        self._state = UtteranceState.TRANSCRIBING
        text = (await self._transcriber.transcribe(artifact) or "").strip()
        if not text:
            logger.debug("Empty transcription discarded (%s)", self._context())
            self._state = UtteranceState.DONE
            return None

        entry = TranscriptionEntry(
            timestamp=self.started_at,
            speaker_id=self.speaker_id,
            speaker_name=self.speaker_name,
            text=text,
            session_id=self.session_id,
        )
        if self._aggregator.append(entry):
            self.entry = entry
            if self._on_entry is not None:
                try:
                    self._on_entry(entry)
                except Exception as e:
                    logger.warning("on_entry hook failed (%s): %s", self._context(), e)
        self._state = UtteranceState.DONE
        logger.info("Utterance done (%s): %d chars", self._context(), len(text))
        return self.entry

    async def _capture(self, decoder: SpeechDecoder) -> None:
        while True:
            frame = await self._frames.next_frame(self._silence_timeout)
            if frame is None:
                break
            self._decode_into(decoder, frame)
        # Frames fed between the silence timeout and close() still belong to this utterance
        for frame in self._close_capture():
            self._decode_into(decoder, frame)
        if self.dropped_frames:
            logger.warning(
                "Dropped %d of %d frames (%s)", self.dropped_frames, self.frames_received, self._context()
            )

    def _decode_into(self, decoder: SpeechDecoder, frame: bytes) -> None:
        self.frames_received += 1
        try:
            pcm = decoder.decode(frame)
        except TransportError as e:
            self.dropped_frames += 1
            logger.debug("Frame %d dropped (%s): %s", self.frames_received, self._context(), e)
            return
        self._buffer.extend(pcm)

    def _close_capture(self) -> list[bytes]:
        """Stop taking frames and free the speaker for a new utterance. Idempotent."""
        if self._capture_closed:
            return []
        self._capture_closed = True
        leftover = self._frames.close()
        if self._on_capture_closed is not None:
            self._on_capture_closed(self)
        return leftover

    async def _finalize(self, decoder: SpeechDecoder) -> WaveformArtifact:
        if not self._buffer:
            raise EncodingError(f"no audio decoded ({self.dropped_frames} frames dropped)")
        wav = encode_wav(
            bytes(self._buffer),
            sample_rate=decoder.sample_rate,
            channels=decoder.channels,
            bits_per_sample=self._bits_per_sample,
        )
        # PCM is now inside the WAV; free the raw copy
        self._buffer = bytearray()
        if not self._spool_dir:
            return WaveformArtifact(data=wav, speaker_id=self.speaker_id, started_at=self.started_at)

        path = os.path.join(self._spool_dir, f"{self.speaker_id}-{self.started_at}.wav")
        self._artifact_path = path
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, _write_artifact_sync, path, wav)
        except OSError as e:
            raise EncodingError(f"could not write {path}: {e}") from e
        data = await self._await_artifact(path, expected_length=len(wav))
        return WaveformArtifact(data=data, speaker_id=self.speaker_id, started_at=self.started_at, path=path)

    async def _await_artifact(self, path: str, expected_length: int) -> bytes:
        """Wait (bounded) for the spooled file to be present and non-empty, then read it back."""
        deadline = time.monotonic() + self._settle_seconds
        while True:
            try:
                size = os.path.getsize(path)
            except OSError:
                size = 0
            if size > 0 or time.monotonic() >= deadline:
                break
            await asyncio.sleep(_SETTLE_POLL_SECONDS)
        if size == 0:
            raise EncodingError(f"artifact {path} missing or empty after {self._settle_seconds:.2f}s")

        loop = asyncio.get_running_loop()
        try:
            data = await loop.run_in_executor(None, _read_artifact_sync, path)
        except OSError as e:
            raise EncodingError(f"could not read back {path}: {e}") from e
        header = decode_wav_header(data)
        if len(data) != expected_length or len(data) != WAV_HEADER_SIZE + header.data_length:
            raise EncodingError(
                f"artifact {path} is {len(data)} bytes, expected {expected_length}"
            )
        return data

    def _release(self) -> None:
        self._buffer = bytearray()
        path, self._artifact_path = self._artifact_path, None
        if path is None or self._keep_audio:
            return
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove %s: %s", path, e)
