"""
WAV container for decoded utterances.

44-byte little-endian RIFF/WAVE header followed by the raw PCM payload.
The data length written at bytes 40–43 is always the exact payload length:
no padding, no truncation. A payload that does not end on a sample frame
boundary is rejected instead of being silently fixed.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass

from scribe.errors import EncodingError

WAV_HEADER_SIZE = 44

# RIFF id, riff size, WAVE, fmt id, fmt size, format, channels, rate, byte rate, block align, bits, data id, data size
_HEADER_STRUCT = struct.Struct("<4sI4s4sIHHIIHH4sI")
_PCM_FORMAT = 1
_FMT_CHUNK_SIZE = 16


@dataclass(frozen=True)
class WavHeader:
    """Parameters carried by a 44-byte PCM WAV header."""

    sample_rate: int
    channels: int
    bits_per_sample: int
    data_length: int

    @property
    def block_align(self) -> int:
        return self.bits_per_sample * self.channels // 8

    @property
    def byte_rate(self) -> int:
        return self.sample_rate * self.bits_per_sample * self.channels // 8


def encode_wav_header(
    data_length: int,
    sample_rate: int = 16000,
    channels: int = 1,
    bits_per_sample: int = 16,
) -> bytes:
    """Build the 44-byte header for a PCM payload of data_length bytes."""
    if data_length < 0:
        raise EncodingError(f"negative data length: {data_length}")
    if data_length > 0xFFFFFFFF - 36:
        raise EncodingError(f"payload too large for a WAV header: {data_length} bytes")
    header = WavHeader(sample_rate, channels, bits_per_sample, data_length)
    return _HEADER_STRUCT.pack(
        b"RIFF",
        36 + data_length,
        b"WAVE",
        b"fmt ",
        _FMT_CHUNK_SIZE,
        _PCM_FORMAT,
        channels,
        sample_rate,
        header.byte_rate,
        header.block_align,
        bits_per_sample,
        b"data",
        data_length,
    )


def decode_wav_header(data: bytes) -> WavHeader:
    """Parse the first 44 bytes of a PCM WAV produced by encode_wav_header."""
    if len(data) < WAV_HEADER_SIZE:
        raise EncodingError(f"WAV header needs {WAV_HEADER_SIZE} bytes, got {len(data)}")
    (
        riff,
        riff_size,
        wave_id,
        fmt_id,
        fmt_size,
        audio_format,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
        data_id,
        data_length,
    ) = _HEADER_STRUCT.unpack_from(data)
    if riff != b"RIFF" or wave_id != b"WAVE" or fmt_id != b"fmt " or data_id != b"data":
        raise EncodingError("not a canonical RIFF/WAVE header")
    if fmt_size != _FMT_CHUNK_SIZE or audio_format != _PCM_FORMAT:
        raise EncodingError(f"unsupported fmt chunk (size={fmt_size}, format={audio_format})")
    if riff_size != 36 + data_length:
        raise EncodingError(f"RIFF size {riff_size} does not match data length {data_length}")
    header = WavHeader(sample_rate, channels, bits_per_sample, data_length)
    if byte_rate != header.byte_rate or block_align != header.block_align:
        raise EncodingError("byte rate / block align inconsistent with format")
    return header


def encode_wav(
    pcm: bytes,
    sample_rate: int = 16000,
    channels: int = 1,
    bits_per_sample: int = 16,
) -> bytes:
    """Wrap raw little-endian PCM in a WAV container. Output length is 44 + len(pcm)."""
    block_align = bits_per_sample * channels // 8
    if block_align <= 0:
        raise EncodingError(f"invalid format: {channels} ch x {bits_per_sample} bits")
    if len(pcm) % block_align != 0:
        raise EncodingError(
            f"PCM length {len(pcm)} is not a multiple of the block align ({block_align})"
        )
    return encode_wav_header(len(pcm), sample_rate, channels, bits_per_sample) + bytes(pcm)
