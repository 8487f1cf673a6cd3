"""
TranscriptionClient: abstract interface for speech-to-text backends.

Implementations: LocalWhisperTranscriber (faster-whisper),
CloudflareWhisperTranscriber, OpenAIWhisperTranscriber.

transcribe() never raises: every backend error is logged and mapped to "",
which callers treat as "no speech captured".
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from scribe.audio.wav import WAV_HEADER_SIZE, decode_wav_header
from scribe.transcript.models import format_iso_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WaveformArtifact:
    """A finalized utterance: complete WAV bytes, plus where it came from."""

    data: bytes
    speaker_id: str
    started_at: int  # unix ms, utterance start
    path: str | None = None  # set when spooled to disk

    @property
    def pcm(self) -> bytes:
        """Sample payload after the 44-byte header."""
        header = decode_wav_header(self.data)
        return self.data[WAV_HEADER_SIZE : WAV_HEADER_SIZE + header.data_length]

    @property
    def sample_rate(self) -> int:
        return decode_wav_header(self.data).sample_rate

    @property
    def duration_sec(self) -> float:
        header = decode_wav_header(self.data)
        if header.byte_rate == 0:
            return 0.0
        return header.data_length / header.byte_rate

    @property
    def filename(self) -> str:
        return f"{self.speaker_id}-{self.started_at}.wav"

    def describe(self) -> str:
        return f"speaker={self.speaker_id} start={format_iso_ms(self.started_at)} dur={self.duration_sec:.2f}s"


class TranscriptionClient(ABC):
    """
    Abstract speech-to-text client. Subclasses implement _transcribe(), which
    may raise; transcribe() contains the failure.
    """

    async def transcribe(self, artifact: WaveformArtifact) -> str:
        """Plain text for the artifact, or "" on empty speech or any backend failure."""
        try:
            text = await self._transcribe(artifact)
        except Exception as e:
            logger.warning(
                "Transcription failed (%s, %s): %s",
                type(self).__name__,
                artifact.describe(),
                e,
            )
            return ""
        return (text or "").strip()

    @abstractmethod
    async def _transcribe(self, artifact: WaveformArtifact) -> str:
        """
        Backend call. Raise on transport/API errors.
        Must not block event loop; run heavy work in executor.
        """
        ...
