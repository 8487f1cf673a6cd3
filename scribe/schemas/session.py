"""
WebSocket messages for the room transport.

Client -> server (JSON text frames):
  {"type": "speaker_start", "speaker_id": "...", "speaker_name": "..."}
  {"type": "audio", "speaker_id": "...", "data": "<base64 frame>"}
  {"type": "speaker_end", "speaker_id": "..."}
  {"type": "leave"}

Server -> client:
  {"type": "session", "session_id": "...", "room_id": "..."}
  {"type": "session_summary", ...SessionResult.to_dict()}
  {"type": "error", "detail": "..."}
"""
from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, Field


class SpeakerStartMessage(BaseModel):
    type: Literal["speaker_start"]
    speaker_id: str = Field(..., min_length=1)
    speaker_name: str | None = None


class AudioMessage(BaseModel):
    type: Literal["audio"]
    speaker_id: str = Field(..., min_length=1)
    speaker_name: str | None = None
    data: str = Field(..., description="Base64-encoded frame (Opus packet or PCM, per SPEECH_DECODER)")


class SpeakerEndMessage(BaseModel):
    type: Literal["speaker_end"]
    speaker_id: str = Field(..., min_length=1)


class LeaveMessage(BaseModel):
    type: Literal["leave"]


ClientMessage = Union[SpeakerStartMessage, AudioMessage, SpeakerEndMessage, LeaveMessage]


class TranscriptEntryOut(BaseModel):
    timestamp: int
    time: str
    speaker_id: str
    speaker_name: str
    text: str


class SessionSummaryMessage(BaseModel):
    type: Literal["session_summary"] = "session_summary"
    session_id: str
    date: str
    entries: list[TranscriptEntryOut]
    summary: str = ""
    artifact: str | None = None


class ErrorMessage(BaseModel):
    type: Literal["error"] = "error"
    detail: str


class RoomsResponse(BaseModel):
    active: int
    rooms: dict[str, str] = Field(default_factory=dict, description="room_id -> session_id")
