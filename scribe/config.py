"""Application configuration. Loads from env vars."""
from pydantic_settings import BaseSettings
from typing import Literal


class Settings(BaseSettings):
    """App settings. Override via environment variables."""

    # Target audio: PCM 16-bit mono, 16kHz (what the decoders emit and the WAV header declares)
    SAMPLE_RATE: int = 16000
    CHANNELS: int = 1
    BITS_PER_SAMPLE: int = 16

    # Frame: 20ms @ 16kHz = 320 samples = 640 bytes (VAD granularity)
    FRAME_MS: int = 20

    # Decoder for incoming per-speaker frames: "opus" (voice transport) | "pcm" (already decoded)
    SPEECH_DECODER: Literal["opus", "pcm"] = "opus"

    # End of utterance: no frame from the speaker for this long
    SILENCE_TIMEOUT_MS: int = 100

    # Optional on-disk waveform artifact per utterance. Empty = keep in memory only.
    UTTERANCE_SPOOL_DIR: str = ""
    ARTIFACT_SETTLE_SECONDS: float = 1.0  # bounded wait for the spooled file to show up non-empty
    KEEP_AUDIO_FILES: bool = False

    # Skip the backend call when webrtcvad finds no speech at all in the utterance
    VAD_GATE_ENABLED: bool = False
    VAD_AGGRESSIVENESS: int = 2

    # Session end: how long in-flight utterances may still finish and count
    SESSION_GRACE_SECONDS: float = 5.0
    MAX_SESSIONS: int = 10

    # Transcription backend: "local" | "cloudflare" | "openai"
    TRANSCRIPTION_BACKEND: Literal["local", "cloudflare", "openai"] = "local"
    # Summary backend: "cloudflare" | "openai" | "none"
    SUMMARY_BACKEND: Literal["cloudflare", "openai", "none"] = "cloudflare"

    # Cloudflare Workers AI: whisper (transcription) and text generation (summary)
    CLOUDFLARE_ACCOUNT_ID: str = ""
    CLOUDFLARE_API_TOKEN: str = ""
    CLOUDFLARE_WHISPER_MODEL: str = "@cf/openai/whisper"
    SUMMARY_CF_MODEL: str = "@cf/meta/llama-3.1-8b-instruct"

    # OpenAI-compatible REST API
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_TRANSCRIBE_MODEL: str = "whisper-1"
    OPENAI_SUMMARY_MODEL: str = "gpt-4-turbo"

    SUMMARY_MAX_TOKENS: int = 2048
    BACKEND_TIMEOUT_SECONDS: float = 60.0

    # Local Whisper (when TRANSCRIPTION_BACKEND=local); model loaded once at startup
    LOCAL_WHISPER_MODEL: str = "base"  # base | small | medium | large-v3
    LOCAL_WHISPER_DEVICE: Literal["cpu", "cuda"] = "cpu"
    LOCAL_WHISPER_COMPUTE_TYPE: Literal["int8", "float16"] = "int8"
    LOCAL_WHISPER_BEAM_SIZE: int = 5
    LOCAL_WHISPER_LANGUAGE: str = ""  # empty = auto-detect

    # Transcript output: consolidated file per session + append-only log while the session runs
    TRANSCRIPT_SAVE_ENABLED: bool = True
    TRANSCRIPT_DIR: str = "./transcripts"
    SESSION_LOG_ENABLED: bool = True

    # Logging: level (DEBUG, INFO, WARNING, ERROR); file path empty = console only.
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    class Config:
        env_file = ".env"
        extra = "ignore"


def get_settings() -> Settings:
    return Settings()
