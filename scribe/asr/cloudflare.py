"""
CloudflareWhisperTranscriber: Whisper via Cloudflare Workers AI.

Posts the complete WAV artifact as a byte array to the Workers AI REST API.
"""
from __future__ import annotations

import httpx

from scribe.asr.base import TranscriptionClient, WaveformArtifact
from scribe.config import get_settings
from scribe.errors import BackendError


def _extract_text(data: dict) -> str:
    """Workers AI returns { "result": { "text": "..." } } or the result object directly."""
    result = data.get("result", data)
    if isinstance(result, dict):
        text = result.get("text", result.get("transcript", ""))
    elif isinstance(result, str):
        text = result
    else:
        text = ""
    return (text or "").strip()


class CloudflareWhisperTranscriber(TranscriptionClient):
    """Remote Whisper via Cloudflare Workers AI."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        settings = get_settings()
        self._account_id = (settings.CLOUDFLARE_ACCOUNT_ID or "").strip()
        self._token = (settings.CLOUDFLARE_API_TOKEN or "").strip()
        self._model = settings.CLOUDFLARE_WHISPER_MODEL
        self._timeout = settings.BACKEND_TIMEOUT_SECONDS
        self._transport = transport

    @property
    def url(self) -> str:
        return f"https://api.cloudflare.com/client/v4/accounts/{self._account_id}/ai/run/{self._model}"

    async def _transcribe(self, artifact: WaveformArtifact) -> str:
        if not self._account_id or not self._token:
            raise BackendError("CLOUDFLARE_ACCOUNT_ID and CLOUDFLARE_API_TOKEN are required")
        headers = {"Authorization": f"Bearer {self._token}"}
        body = {"audio": list(artifact.data)}
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            resp = await client.post(self.url, headers=headers, json=body)
            resp.raise_for_status()
            data = resp.json()
        return _extract_text(data)
