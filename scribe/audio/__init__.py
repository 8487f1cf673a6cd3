"""Audio pipeline: per-speaker frame queue, decoding, WAV container, speech gate."""
from .receiver import FrameQueue
from .decoder import (
    OpusSpeechDecoder,
    PcmSpeechDecoder,
    SpeechDecoder,
    create_speech_decoder,
)
from .vad import VADProcessor
from .wav import WAV_HEADER_SIZE, WavHeader, decode_wav_header, encode_wav, encode_wav_header

__all__ = [
    "FrameQueue",
    "SpeechDecoder",
    "OpusSpeechDecoder",
    "PcmSpeechDecoder",
    "create_speech_decoder",
    "VADProcessor",
    "WAV_HEADER_SIZE",
    "WavHeader",
    "encode_wav",
    "encode_wav_header",
    "decode_wav_header",
]
