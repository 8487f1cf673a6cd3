import asyncio

import pytest

from scribe.asr.base import TranscriptionClient, WaveformArtifact
from scribe.summary.base import SummarizationClient

# 20ms of 16kHz mono int16 with a non-zero sample pattern
PCM_FRAME = b"\x10\x00\xf0\xff" * 160


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep every test away from the real .env and the working directory."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SPEECH_DECODER", "pcm")
    monkeypatch.setenv("TRANSCRIPT_DIR", str(tmp_path / "transcripts"))
    monkeypatch.setenv("UTTERANCE_SPOOL_DIR", "")
    monkeypatch.setenv("VAD_GATE_ENABLED", "false")
    monkeypatch.setenv("SILENCE_TIMEOUT_MS", "100")
    monkeypatch.setenv("SESSION_GRACE_SECONDS", "2")
    monkeypatch.setenv("TRANSCRIPTION_BACKEND", "openai")
    monkeypatch.setenv("SUMMARY_BACKEND", "none")
    monkeypatch.setenv("CLOUDFLARE_ACCOUNT_ID", "")
    monkeypatch.setenv("CLOUDFLARE_API_TOKEN", "")
    monkeypatch.setenv("OPENAI_API_KEY", "")
    return tmp_path


class StubTranscriber(TranscriptionClient):
    """
    Scripted backend keyed by speaker id: text, delay (seconds) and optional error.
    Records completion order.
    """

    def __init__(self, script: dict[str, tuple[str, float]] | None = None, fail_for: set[str] | None = None):
        self.script = script or {}
        self.fail_for = fail_for or set()
        self.calls: list[WaveformArtifact] = []
        self.completed: list[str] = []

    async def _transcribe(self, artifact: WaveformArtifact) -> str:
        self.calls.append(artifact)
        text, delay = self.script.get(artifact.speaker_id, ("", 0.0))
        if delay:
            await asyncio.sleep(delay)
        if artifact.speaker_id in self.fail_for:
            raise ConnectionError(f"backend unreachable for {artifact.speaker_id}")
        self.completed.append(artifact.speaker_id)
        return text


class RaisingTranscriber(TranscriptionClient):
    """Does not honour the never-raise contract."""

    async def transcribe(self, artifact: WaveformArtifact) -> str:
        raise RuntimeError("boom")

    async def _transcribe(self, artifact: WaveformArtifact) -> str:
        raise AssertionError("not used")


class StubSummarizer(SummarizationClient):
    def __init__(self, summary: str = "A short summary."):
        self.summary = summary
        self.inputs: list[str] = []

    async def _summarize(self, transcript_text: str) -> str:
        self.inputs.append(transcript_text)
        return self.summary


class ScriptedClock:
    """Returns the given timestamps in order, then keeps counting up by 1ms."""

    def __init__(self, *timestamps: int):
        self._values = list(timestamps)
        self._last = 0

    def __call__(self) -> int:
        if self._values:
            self._last = self._values.pop(0)
        else:
            self._last += 1
        return self._last
