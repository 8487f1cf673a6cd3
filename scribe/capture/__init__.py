"""Capture: per-speaker utterance tasks and the voice session that owns them."""
from .utterance import UtteranceCapture, UtteranceState
from .session import SessionClock, SessionResult, VoiceSession

__all__ = [
    "UtteranceCapture",
    "UtteranceState",
    "VoiceSession",
    "SessionClock",
    "SessionResult",
]
