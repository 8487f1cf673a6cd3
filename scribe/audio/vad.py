"""
Speech gate for finished utterances.

The transport's speaking flag also fires on breathing and key clicks. Before
an utterance is sent to a paid backend, webrtcvad looks at it in FRAME_MS
slices; an utterance with no voiced slice at all is skipped.
"""
from __future__ import annotations

import webrtcvad
from scribe.config import get_settings


class VADProcessor:
    """webrtcvad over 16-bit mono PCM at SAMPLE_RATE, FRAME_MS per slice (640 bytes at 16kHz/20ms)."""

    def __init__(self, aggressiveness: int | None = None) -> None:
        """aggressiveness 0..3; 3 rejects the most non-speech. Defaults to VAD_AGGRESSIVENESS."""
        settings = get_settings()
        mode = settings.VAD_AGGRESSIVENESS if aggressiveness is None else aggressiveness
        self._vad = webrtcvad.Vad(mode)
        self._sample_rate = settings.SAMPLE_RATE
        self._frame_ms = settings.FRAME_MS
        self._frame_bytes = (self._sample_rate // 1000) * self._frame_ms * 2

    def is_speech(self, frame: bytes) -> bool:
        # webrtcvad only accepts 10/20/30ms slices; anything else is treated as silence
        return len(frame) == self._frame_bytes and self._vad.is_speech(frame, self._sample_rate)

    def speech_frames(self, pcm: bytes) -> int:
        """Voiced slices in pcm. A trailing partial slice is not examined."""
        step = self._frame_bytes
        whole = len(pcm) - len(pcm) % step
        return sum(1 for off in range(0, whole, step) if self.is_speech(pcm[off : off + step]))

    def has_speech(self, pcm: bytes) -> bool:
        return self.speech_frames(pcm) > 0

    @property
    def frame_bytes(self) -> int:
        return self._frame_bytes
