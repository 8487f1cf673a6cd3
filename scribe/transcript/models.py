"""
Transcript data model.

TranscriptionEntry: one attributed, timestamped piece of transcribed speech.
The timestamp is the utterance START (ms since epoch), never the time the
backend answered, so sorting by it gives speaking order.

SessionTranscript: ordered projection built once, at drain time.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone


def unix_ms() -> int:
    return int(time.time() * 1000)


def format_iso_ms(timestamp_ms: int) -> str:
    """UTC ISO-8601 with milliseconds and a Z suffix, e.g. 2024-05-01T12:00:00.250Z."""
    dt = datetime.fromtimestamp(timestamp_ms / 1000.0, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_date(timestamp_ms: int) -> str:
    """UTC calendar date YYYY-MM-DD."""
    return format_iso_ms(timestamp_ms)[:10]


@dataclass(frozen=True)
class TranscriptionEntry:
    """Immutable once created; owned by the aggregator after append."""

    timestamp: int  # utterance start, unix ms
    speaker_id: str
    speaker_name: str
    text: str
    session_id: str | None = None

    def to_line(self) -> str:
        return f"[{format_iso_ms(self.timestamp)}] {self.speaker_name}: {self.text}"

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "time": format_iso_ms(self.timestamp),
            "speaker_id": self.speaker_id,
            "speaker_name": self.speaker_name,
            "text": self.text,
        }


@dataclass(frozen=True)
class SessionTranscript:
    """Entries of one session, sorted by utterance start."""

    session_id: str
    entries: tuple[TranscriptionEntry, ...] = ()
    ended_at: int = field(default_factory=unix_ms)

    def lines(self) -> list[str]:
        return [e.to_line() for e in self.entries]

    @property
    def text(self) -> str:
        """Newline-delimited `[ISO-8601] speakerName: text` lines (summarizer input)."""
        return "\n".join(self.lines())

    @property
    def date(self) -> str:
        return format_date(self.ended_at)

    @property
    def speakers(self) -> list[str]:
        """Display names in order of first appearance."""
        seen: dict[str, None] = {}
        for e in self.entries:
            seen.setdefault(e.speaker_name, None)
        return list(seen)

    def __len__(self) -> int:
        return len(self.entries)

    def __bool__(self) -> bool:
        return bool(self.entries)
