"""
OpenAIWhisperTranscriber: /v1/audio/transcriptions over httpx.

Works with OpenAI and with any server exposing the same endpoint
(OPENAI_BASE_URL). response_format=text returns the transcript as the body.
"""
from __future__ import annotations

import httpx

from scribe.asr.base import TranscriptionClient, WaveformArtifact
from scribe.config import get_settings
from scribe.errors import BackendError


class OpenAIWhisperTranscriber(TranscriptionClient):
    """Multipart upload of the WAV artifact; plain-text response."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        settings = get_settings()
        self._api_key = (settings.OPENAI_API_KEY or "").strip()
        self._base_url = settings.OPENAI_BASE_URL.rstrip("/")
        self._model = settings.OPENAI_TRANSCRIBE_MODEL
        self._timeout = settings.BACKEND_TIMEOUT_SECONDS
        self._transport = transport

    async def _transcribe(self, artifact: WaveformArtifact) -> str:
        if not self._api_key:
            raise BackendError("OPENAI_API_KEY is required")
        files = {"file": (artifact.filename, artifact.data, "audio/wav")}
        data = {"model": self._model, "response_format": "text"}
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            resp = await client.post(
                f"{self._base_url}/audio/transcriptions",
                headers={"Authorization": f"Bearer {self._api_key}"},
                data=data,
                files=files,
            )
            resp.raise_for_status()
        return resp.text.strip()
