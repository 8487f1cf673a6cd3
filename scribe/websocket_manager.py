"""
WebSocketManager: bridges one room's WebSocket to a VoiceSession.

The WebSocket plays the voice transport: it announces speakers, delivers
their frames and signals end of speech. One connection = one session; the
session ends on "leave" or on disconnect, and the transcript is saved either
way. The summary is only sent back when the client is still there to read it.
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Annotated

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import Field, TypeAdapter, ValidationError

from scribe.capture.session import SessionResult, VoiceSession
from scribe.schemas.session import (
    AudioMessage,
    ClientMessage,
    ErrorMessage,
    LeaveMessage,
    SessionSummaryMessage,
    SpeakerEndMessage,
    SpeakerStartMessage,
)
from scribe.session_store import SessionStore

logger = logging.getLogger(__name__)

_client_message = TypeAdapter(Annotated[ClientMessage, Field(discriminator="type")])


def parse_client_message(raw: str) -> ClientMessage:
    """Parse one JSON text frame. Raises ValueError on malformed input."""
    try:
        return _client_message.validate_python(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as e:
        raise ValueError(f"invalid message: {e}") from e


def decode_frame(data: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"audio data is not valid base64: {e}") from e


class WebSocketManager:
    def __init__(self, websocket: WebSocket, store: SessionStore, room_id: str) -> None:
        self._ws = websocket
        self._store = store
        self._room_id = room_id
        self._connected = True

    async def _send(self, payload: str) -> None:
        if not self._connected:
            return
        try:
            await self._ws.send_text(payload)
        except Exception:
            self._connected = False

    async def _send_error(self, detail: str) -> None:
        await self._send(ErrorMessage(detail=detail).model_dump_json())

    async def run(self) -> SessionResult | None:
        try:
            session = await self._store.join(self._room_id)
        except RuntimeError as e:
            logger.warning("Join rejected for room %s: %s", self._room_id, e)
            await self._send_error(str(e))
            await self._ws.close()
            return None

        await self._send(
            json.dumps({"type": "session", "session_id": session.session_id, "room_id": self._room_id})
        )
        try:
            await self._receive_loop(session)
        finally:
            await self._store.leave(self._room_id)
            result = await session.end()
        await self._send(SessionSummaryMessage(type="session_summary", **result.to_dict()).model_dump_json())
        return result

    async def _receive_loop(self, session: VoiceSession) -> None:
        while True:
            try:
                message = await self._ws.receive()
            except WebSocketDisconnect:
                message = {"type": "websocket.disconnect"}
            if message.get("type") == "websocket.disconnect":
                logger.info("Room %s disconnected without leave", self._room_id)
                self._connected = False
                return
            raw = message.get("text")
            if raw is None:
                # Binary frames are not part of the protocol: audio travels base64 in JSON
                await self._send_error("expected a JSON text frame")
                continue
            try:
                msg = parse_client_message(raw)
            except ValueError as e:
                await self._send_error(str(e))
                continue

            if isinstance(msg, LeaveMessage):
                return
            if isinstance(msg, SpeakerStartMessage):
                await session.speaker_start(msg.speaker_id, msg.speaker_name)
            elif isinstance(msg, AudioMessage):
                try:
                    frame = decode_frame(msg.data)
                except ValueError as e:
                    # Malformed frame: drop it, the utterance carries on
                    logger.debug("Room %s speaker %s: %s", self._room_id, msg.speaker_id, e)
                    await self._send_error(str(e))
                    continue
                await session.feed(msg.speaker_id, frame, msg.speaker_name)
            elif isinstance(msg, SpeakerEndMessage):
                session.speaker_end(msg.speaker_id)
