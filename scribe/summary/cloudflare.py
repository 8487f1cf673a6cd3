"""Summaries with a Cloudflare Workers AI text-generation model."""
from __future__ import annotations

import logging

import httpx

from scribe.config import get_settings
from scribe.errors import BackendError
from scribe.summary.base import SummarizationClient, build_messages

logger = logging.getLogger(__name__)


class CloudflareSummarizer(SummarizationClient):
    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        settings = get_settings()
        self._account_id = (settings.CLOUDFLARE_ACCOUNT_ID or "").strip()
        self._token = (settings.CLOUDFLARE_API_TOKEN or "").strip()
        self._model = settings.SUMMARY_CF_MODEL
        self._max_tokens = settings.SUMMARY_MAX_TOKENS
        self._timeout = settings.BACKEND_TIMEOUT_SECONDS
        self._transport = transport

    async def _summarize(self, transcript_text: str) -> str:
        if not self._account_id or not self._token:
            raise BackendError("CLOUDFLARE_ACCOUNT_ID and CLOUDFLARE_API_TOKEN are required for summaries")
        url = f"https://api.cloudflare.com/client/v4/accounts/{self._account_id}/ai/run/{self._model}"
        payload = {
            "messages": build_messages(transcript_text),
            "max_tokens": self._max_tokens,
            "temperature": 0.3,
        }
        logger.info("Summary request to Cloudflare: model=%s, transcript=%d chars", self._model, len(transcript_text))
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            resp = await client.post(
                url,
                json=payload,
                headers={"Authorization": f"Bearer {self._token}", "Content-Type": "application/json"},
            )
            resp.raise_for_status()
            data = resp.json()

        # Workers AI returns { "result": { "response": "..." } } or direct { "response": "..." }
        result = data.get("result", data)
        if isinstance(result, dict):
            content = result.get("response", "") or ""
        elif isinstance(result, str):
            content = result
        else:
            content = ""
        return (content or "").strip()
