"""Transcript handling: entries, per-session aggregation, persistence."""
from .models import SessionTranscript, TranscriptionEntry, format_iso_ms
from .aggregator import SessionAggregator, generate_session_id
from .writer import (
    SessionLogWriterBase,
    create_session_log_writer,
    render_session_transcript,
    write_session_transcript,
)

__all__ = [
    "TranscriptionEntry",
    "SessionTranscript",
    "format_iso_ms",
    "SessionAggregator",
    "generate_session_id",
    "SessionLogWriterBase",
    "create_session_log_writer",
    "render_session_transcript",
    "write_session_transcript",
]
