"""
SpeechDecoder: compressed per-speaker frames -> PCM 16-bit mono 16kHz.

One decoder per utterance. Decoder state (Opus prediction history) belongs
to exactly one stream and is never shared. Frames must be fed in arrival order.
A frame that cannot be decoded raises TransportError; the caller drops it
and keeps going.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from scribe.config import get_settings
from scribe.errors import TransportError

logger = logging.getLogger(__name__)

# Longest Opus packet is 120 ms; size the output buffer for that.
_OPUS_MAX_FRAME_MS = 120


class SpeechDecoder(ABC):
    """Stateful decoder for a single stream."""

    @abstractmethod
    def decode(self, frame: bytes) -> bytes:
        """Decode one frame into little-endian int16 PCM. Raises TransportError on a bad frame."""
        ...

    @property
    @abstractmethod
    def sample_rate(self) -> int:
        ...

    @property
    @abstractmethod
    def channels(self) -> int:
        ...


class OpusSpeechDecoder(SpeechDecoder):
    """
    libopus via opuslib. Decodes straight to the target rate/channels;
    libopus handles resampling and downmix (48kHz stereo packets decode fine at 16kHz mono).
    """

    def __init__(self, sample_rate: int | None = None, channels: int | None = None) -> None:
        # opuslib loads libopus with ctypes at import time
        import opuslib

        settings = get_settings()
        self._sample_rate = sample_rate or settings.SAMPLE_RATE
        self._channels = channels or settings.CHANNELS
        self._decoder = opuslib.Decoder(self._sample_rate, self._channels)
        self._opus_error = opuslib.OpusError
        self._max_frame_size = self._sample_rate * _OPUS_MAX_FRAME_MS // 1000

    def decode(self, frame: bytes) -> bytes:
        if not frame:
            raise TransportError("empty Opus frame")
        try:
            return self._decoder.decode(bytes(frame), self._max_frame_size)
        except self._opus_error as e:
            raise TransportError(f"Opus decode failed: {e}") from e

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channels(self) -> int:
        return self._channels


class PcmSpeechDecoder(SpeechDecoder):
    """Passthrough for transports that already send PCM 16-bit at the target format."""

    def __init__(self, sample_rate: int | None = None, channels: int | None = None) -> None:
        settings = get_settings()
        self._sample_rate = sample_rate or settings.SAMPLE_RATE
        self._channels = channels or settings.CHANNELS
        self._block_align = 2 * self._channels

    def decode(self, frame: bytes) -> bytes:
        if len(frame) == 0:
            raise TransportError("empty PCM frame")
        if len(frame) % self._block_align != 0:
            raise TransportError(
                f"malformed PCM frame (length {len(frame)} not divisible by {self._block_align})"
            )
        return bytes(frame)

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channels(self) -> int:
        return self._channels


def create_speech_decoder(kind: str | None = None) -> SpeechDecoder:
    """New decoder for one stream, chosen by SPEECH_DECODER unless kind is given."""
    kind = (kind or get_settings().SPEECH_DECODER).strip().lower()
    if kind == "pcm":
        return PcmSpeechDecoder()
    if kind == "opus":
        return OpusSpeechDecoder()
    raise ValueError(f"Unknown speech decoder: {kind!r} (expected 'opus' or 'pcm')")
