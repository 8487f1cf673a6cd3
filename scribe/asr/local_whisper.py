"""
LocalWhisperTranscriber: speech-to-text with faster-whisper.

- One WhisperModel per process, loaded by the app lifespan and passed in here.
- Audio: WAV payload (PCM 16-bit mono 16kHz) converted to float32 [-1, 1].
- Runs in executor so the event loop stays responsive while other speakers talk.
"""
from __future__ import annotations

import asyncio
from typing import Any

import numpy as np

from scribe.asr.base import TranscriptionClient, WaveformArtifact
from scribe.config import get_settings
from scribe.errors import BackendError

# faster_whisper.WhisperModel; not imported here so the extra stays optional
WhisperModelT = Any


def pcm_bytes_to_float32(pcm_bytes: bytes) -> np.ndarray:
    """Convert PCM 16-bit mono bytes to float32 [-1.0, 1.0]."""
    samples = np.frombuffer(pcm_bytes, dtype=np.int16)
    return samples.astype(np.float32) / 32768.0


def load_whisper_model() -> WhisperModelT:
    """Load faster-whisper model once. Called at startup when TRANSCRIPTION_BACKEND=local."""
    try:
        from faster_whisper import WhisperModel
    except ImportError as err:
        raise ImportError(
            "faster-whisper is required for TRANSCRIPTION_BACKEND=local. "
            "Install with: pip install faster-whisper"
        ) from err
    settings = get_settings()
    return WhisperModel(
        settings.LOCAL_WHISPER_MODEL,
        device=settings.LOCAL_WHISPER_DEVICE,
        compute_type=settings.LOCAL_WHISPER_COMPUTE_TYPE,
    )


class LocalWhisperTranscriber(TranscriptionClient):
    """Local Whisper via faster-whisper, sharing one model across all utterances."""

    def __init__(self, model: WhisperModelT | None = None) -> None:
        """
        model: the process-wide WhisperModel.
        If None, every call fails (and is mapped to "") until a model is set.
        """
        self._model = model
        settings = get_settings()
        self._beam_size = settings.LOCAL_WHISPER_BEAM_SIZE
        self._language = settings.LOCAL_WHISPER_LANGUAGE or None

    def _transcribe_sync(self, audio: np.ndarray) -> str:
        if self._model is None:
            raise BackendError("faster-whisper model not loaded")
        segments, _ = self._model.transcribe(
            audio,
            language=self._language,
            beam_size=self._beam_size,
            vad_filter=True,
            vad_parameters=dict(min_silence_duration_ms=300, speech_pad_ms=100),
        )
        parts = [(seg.text or "").strip() for seg in segments]
        return " ".join(p for p in parts if p)

    async def _transcribe(self, artifact: WaveformArtifact) -> str:
        audio = pcm_bytes_to_float32(artifact.pcm)
        if audio.size == 0:
            return ""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._transcribe_sync, audio)
