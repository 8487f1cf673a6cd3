"""ASR: swappable speech-to-text clients."""
from __future__ import annotations

from typing import Any

from .base import TranscriptionClient, WaveformArtifact
from .local_whisper import LocalWhisperTranscriber, load_whisper_model, pcm_bytes_to_float32
from .cloudflare import CloudflareWhisperTranscriber
from .openai_whisper import OpenAIWhisperTranscriber

from scribe.config import get_settings


def create_transcription_client(whisper_model: Any = None) -> TranscriptionClient:
    """Client for TRANSCRIPTION_BACKEND. Local uses the shared model loaded at startup."""
    backend = get_settings().TRANSCRIPTION_BACKEND
    if backend == "cloudflare":
        return CloudflareWhisperTranscriber()
    if backend == "openai":
        return OpenAIWhisperTranscriber()
    return LocalWhisperTranscriber(model=whisper_model)


__all__ = [
    "TranscriptionClient",
    "WaveformArtifact",
    "LocalWhisperTranscriber",
    "CloudflareWhisperTranscriber",
    "OpenAIWhisperTranscriber",
    "create_transcription_client",
    "load_whisper_model",
    "pcm_bytes_to_float32",
]
