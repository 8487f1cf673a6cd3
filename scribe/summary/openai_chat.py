"""Summaries via an OpenAI-compatible /chat/completions endpoint."""
from __future__ import annotations

import httpx

from scribe.config import get_settings
from scribe.errors import BackendError
from scribe.summary.base import SummarizationClient, build_messages


class OpenAIChatSummarizer(SummarizationClient):
    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        settings = get_settings()
        self._api_key = (settings.OPENAI_API_KEY or "").strip()
        self._base_url = settings.OPENAI_BASE_URL.rstrip("/")
        self._model = settings.OPENAI_SUMMARY_MODEL
        self._max_tokens = settings.SUMMARY_MAX_TOKENS
        self._timeout = settings.BACKEND_TIMEOUT_SECONDS
        self._transport = transport

    async def _summarize(self, transcript_text: str) -> str:
        if not self._api_key:
            raise BackendError("OPENAI_API_KEY is required for summaries")
        payload = {
            "model": self._model,
            "messages": build_messages(transcript_text),
            "max_tokens": self._max_tokens,
        }
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            resp = await client.post(
                f"{self._base_url}/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
            resp.raise_for_status()
            data = resp.json()
        choices = data.get("choices") or []
        if not choices:
            raise BackendError("chat completion returned no choices")
        return (choices[0].get("message", {}).get("content") or "").strip()
