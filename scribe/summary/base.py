"""
SummarizationClient: abstract interface for transcript summaries.

summarize() never raises: backend errors are logged and mapped to "".
An empty transcript is never sent to the backend.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a meeting summarizer. You receive the transcript of a group voice session, one line per utterance in the form "[timestamp] speaker: text", in speaking order.

Write a concise but complete summary:
- Key discussion points and who raised them.
- Decisions that were made.
- Action items, with owners when the transcript names one.
- Open questions or unresolved topics.

Keep technical details and names exactly as spoken. Do not invent content that is not in the transcript. Use short sections with headings or bullet points."""


def build_messages(transcript_text: str) -> list[dict[str, str]]:
    """Chat messages for the summary request."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": transcript_text},
    ]


class SummarizationClient(ABC):
    """Subclasses implement _summarize(), which may raise; summarize() contains the failure."""

    async def summarize(self, transcript_text: str) -> str:
        if not (transcript_text or "").strip():
            return ""
        try:
            summary = await self._summarize(transcript_text)
        except Exception as e:
            logger.warning(
                "Summarization failed (%s, %d chars of transcript): %s",
                type(self).__name__,
                len(transcript_text),
                e,
            )
            return ""
        return (summary or "").strip()

    @abstractmethod
    async def _summarize(self, transcript_text: str) -> str:
        ...


class NoOpSummarizationClient(SummarizationClient):
    """SUMMARY_BACKEND=none: transcripts are saved without a summary."""

    async def _summarize(self, transcript_text: str) -> str:
        return ""
