"""Summaries: swappable text-generation clients for finished sessions."""
from __future__ import annotations

import logging

from .base import NoOpSummarizationClient, SummarizationClient, SYSTEM_PROMPT, build_messages
from .cloudflare import CloudflareSummarizer
from .openai_chat import OpenAIChatSummarizer

from scribe.config import get_settings

logger = logging.getLogger(__name__)


def create_summarization_client() -> SummarizationClient:
    """Client for SUMMARY_BACKEND (cloudflare / openai / none)."""
    backend = get_settings().SUMMARY_BACKEND
    if backend == "cloudflare":
        return CloudflareSummarizer()
    if backend == "openai":
        return OpenAIChatSummarizer()
    logger.info("Summaries disabled (SUMMARY_BACKEND=%s)", backend)
    return NoOpSummarizationClient()


__all__ = [
    "SummarizationClient",
    "NoOpSummarizationClient",
    "CloudflareSummarizer",
    "OpenAIChatSummarizer",
    "create_summarization_client",
    "build_messages",
    "SYSTEM_PROMPT",
]
