"""
FastAPI app: one WebSocket per voice room; each connection is a transcription session.

The client (voice transport bridge) announces speakers and streams their
frames; on leave the server answers with the ordered transcript and summary:
{ "type": "session_summary", "session_id": ..., "entries": [...], "summary": ..., "artifact": ... }
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from scribe.asr import TranscriptionClient, create_transcription_client, load_whisper_model
from scribe.capture.session import VoiceSession
from scribe.config import Settings, get_settings
from scribe.schemas.session import RoomsResponse
from scribe.session_store import SessionStore
from scribe.summary import SummarizationClient, create_summarization_client
from scribe.websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: Settings | None = None) -> None:
    """Root logging from LOG_LEVEL / LOG_FILE (console always, file when set)."""
    settings = settings or get_settings()
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.LOG_FILE:
        handlers.append(logging.FileHandler(settings.LOG_FILE, encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=_LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def build_session_factory(transcriber: TranscriptionClient, summarizer: SummarizationClient):
    """VoiceSession per room, sharing the (stateless) backend clients."""

    def factory(room_id: str) -> VoiceSession:
        return VoiceSession(room_id=room_id, transcriber=transcriber, summarizer=summarizer)

    return factory


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings)
    # Load Whisper model once at startup when using local backend (singleton)
    if settings.TRANSCRIPTION_BACKEND == "local":
        app.state.whisper_model = load_whisper_model()
    else:
        app.state.whisper_model = None
    transcriber = create_transcription_client(app.state.whisper_model)
    summarizer = create_summarization_client()
    app.state.sessions = SessionStore(
        build_session_factory(transcriber, summarizer),
        max_sessions=settings.MAX_SESSIONS,
    )
    logger.info(
        "Ready: transcription=%s, summary=%s, decoder=%s",
        settings.TRANSCRIPTION_BACKEND,
        settings.SUMMARY_BACKEND,
        settings.SPEECH_DECODER,
    )
    yield
    app.state.whisper_model = None


app = FastAPI(
    title="Voice Session Scribe",
    description="Per-speaker capture, transcription and session summaries",
    lifespan=lifespan,
)


@app.websocket("/ws/rooms/{room_id}")
async def websocket_room(websocket: WebSocket, room_id: str) -> None:
    await websocket.accept()
    manager = WebSocketManager(websocket, websocket.app.state.sessions, room_id)
    try:
        await manager.run()
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("Room %s handler failed", room_id)
        try:
            await websocket.close()
        except Exception:
            pass


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@app.get("/api/rooms", response_model=RoomsResponse)
async def rooms() -> RoomsResponse:
    store: SessionStore = app.state.sessions
    return RoomsResponse(active=store.active_count, rooms=store.rooms())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("scribe.main:app", host="0.0.0.0", port=8000)
