"""Pydantic schemas for the WebSocket transport and HTTP API."""
from scribe.schemas.session import (
    AudioMessage,
    ClientMessage,
    ErrorMessage,
    LeaveMessage,
    RoomsResponse,
    SessionSummaryMessage,
    SpeakerEndMessage,
    SpeakerStartMessage,
    TranscriptEntryOut,
)

__all__ = [
    "AudioMessage",
    "ClientMessage",
    "ErrorMessage",
    "LeaveMessage",
    "RoomsResponse",
    "SessionSummaryMessage",
    "SpeakerEndMessage",
    "SpeakerStartMessage",
    "TranscriptEntryOut",
]
