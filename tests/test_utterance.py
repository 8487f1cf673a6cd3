import asyncio
import os

import pytest

from conftest import PCM_FRAME, RaisingTranscriber, StubTranscriber
from scribe.audio.decoder import PcmSpeechDecoder
from scribe.audio.receiver import FrameQueue
from scribe.audio.vad import VADProcessor
from scribe.audio.wav import WAV_HEADER_SIZE
from scribe.capture.utterance import UtteranceCapture, UtteranceState
from scribe.transcript.aggregator import SessionAggregator


def make_capture(frames, transcriber, aggregator=None, **kwargs) -> UtteranceCapture:
    return UtteranceCapture(
        speaker_id=kwargs.pop("speaker_id", "a"),
        speaker_name=kwargs.pop("speaker_name", "Alice"),
        started_at=kwargs.pop("started_at", 1000),
        frames=frames,
        decoder_factory=PcmSpeechDecoder,
        transcriber=transcriber,
        aggregator=aggregator if aggregator is not None else SessionAggregator(),
        **kwargs,
    )


def queue_with(*frames: bytes, end: bool = True) -> FrameQueue:
    q = FrameQueue()
    for f in frames:
        q.feed(f)
    if end:
        q.end()
    return q


@pytest.mark.asyncio
async def test_happy_path_appends_entry_with_start_timestamp():
    agg = SessionAggregator()
    stub = StubTranscriber({"a": ("hello", 0.0)})
    capture = make_capture(queue_with(PCM_FRAME, PCM_FRAME, PCM_FRAME), stub, agg, started_at=1234)

    entry = await capture.run()

    assert capture.state is UtteranceState.DONE
    assert entry is not None
    assert entry.timestamp == 1234
    assert entry.speaker_name == "Alice"
    assert entry.text == "hello"
    assert entry.session_id == agg.session_id
    assert agg.snapshot() == [entry]
    artifact = stub.calls[0]
    assert len(artifact.data) == WAV_HEADER_SIZE + 3 * len(PCM_FRAME)
    assert artifact.pcm == PCM_FRAME * 3
    assert artifact.sample_rate == 16000


@pytest.mark.asyncio
async def test_timestamp_is_start_not_completion():
    agg = SessionAggregator()
    stub = StubTranscriber({"a": ("slow", 0.1)})
    entry = await make_capture(queue_with(PCM_FRAME), stub, agg, started_at=5).run()
    assert entry.timestamp == 5


@pytest.mark.asyncio
async def test_empty_transcription_produces_no_entry():
    agg = SessionAggregator()
    capture = make_capture(queue_with(PCM_FRAME), StubTranscriber({"a": ("   ", 0.0)}), agg)
    assert await capture.run() is None
    assert capture.state is UtteranceState.DONE
    assert len(agg) == 0


@pytest.mark.asyncio
async def test_backend_failure_is_contained():
    agg = SessionAggregator()
    stub = StubTranscriber({"a": ("never", 0.0)}, fail_for={"a"})
    capture = make_capture(queue_with(PCM_FRAME), stub, agg)
    assert await capture.run() is None
    assert capture.state is UtteranceState.DONE
    assert len(agg) == 0


@pytest.mark.asyncio
async def test_unexpected_exception_fails_the_utterance_only():
    agg = SessionAggregator()
    capture = make_capture(queue_with(PCM_FRAME), RaisingTranscriber(), agg)
    assert await capture.run() is None
    assert capture.state is UtteranceState.FAILED
    assert len(agg) == 0


@pytest.mark.asyncio
async def test_malformed_frames_are_dropped_and_capture_continues():
    stub = StubTranscriber({"a": ("ok", 0.0)})
    capture = make_capture(queue_with(PCM_FRAME, b"\x01\x02\x03", PCM_FRAME, b""), stub)

    entry = await capture.run()

    assert entry is not None
    assert capture.frames_received == 4
    assert capture.dropped_frames == 2
    assert stub.calls[0].pcm == PCM_FRAME * 2


@pytest.mark.asyncio
async def test_no_decodable_audio_fails_without_backend_call():
    stub = StubTranscriber({"a": ("x", 0.0)})
    capture = make_capture(queue_with(b"\x01"), stub)
    assert await capture.run() is None
    assert capture.state is UtteranceState.FAILED
    assert stub.calls == []


@pytest.mark.asyncio
async def test_empty_stream_fails():
    capture = make_capture(queue_with(), StubTranscriber())
    assert await capture.run() is None
    assert capture.state is UtteranceState.FAILED


@pytest.mark.asyncio
async def test_silence_timeout_ends_capture():
    stub = StubTranscriber({"a": ("quiet", 0.0)})
    frames = queue_with(PCM_FRAME, end=False)
    capture = make_capture(frames, stub, silence_timeout_ms=50)

    entry = await asyncio.wait_for(capture.run(), timeout=2.0)

    assert entry is not None and entry.text == "quiet"
    assert frames.closed
    assert not frames.feed(PCM_FRAME)


@pytest.mark.asyncio
async def test_frames_arriving_during_capture_are_kept():
    stub = StubTranscriber({"a": ("streamed", 0.0)})
    frames = FrameQueue()
    capture = make_capture(frames, stub, silence_timeout_ms=500)
    task = asyncio.create_task(capture.run())
    for _ in range(5):
        frames.feed(PCM_FRAME)
        await asyncio.sleep(0.01)
    frames.end()
    await task
    assert stub.calls[0].pcm == PCM_FRAME * 5


@pytest.mark.asyncio
async def test_on_capture_closed_fires_before_transcription_finishes():
    events = []
    stub = StubTranscriber({"a": ("later", 0.2)})
    capture = make_capture(
        queue_with(PCM_FRAME),
        stub,
        on_capture_closed=lambda c: events.append(("closed", c.state)),
    )
    task = asyncio.create_task(capture.run())
    await asyncio.sleep(0.1)
    assert events == [("closed", UtteranceState.CAPTURING)]
    assert not task.done()
    await task
    assert len(events) == 1


@pytest.mark.asyncio
async def test_on_entry_hook_errors_do_not_fail_the_utterance():
    def broken(entry):
        raise RuntimeError("hook")

    agg = SessionAggregator()
    capture = make_capture(queue_with(PCM_FRAME), StubTranscriber({"a": ("hi", 0.0)}), agg, on_entry=broken)
    assert await capture.run() is not None
    assert capture.state is UtteranceState.DONE
    assert len(agg) == 1


@pytest.mark.asyncio
async def test_late_entry_is_not_reported_as_recorded():
    agg = SessionAggregator()
    stub = StubTranscriber({"a": ("late", 0.1)})
    seen = []
    capture = make_capture(queue_with(PCM_FRAME), stub, agg, on_entry=seen.append)
    task = asyncio.create_task(capture.run())
    await asyncio.sleep(0.02)
    agg.drain_and_reset()
    assert await task is None
    assert seen == []
    assert len(agg) == 0


@pytest.mark.asyncio
async def test_cancellation_marks_failed_and_releases():
    frames = queue_with(PCM_FRAME, end=False)
    capture = make_capture(frames, StubTranscriber(), silence_timeout_ms=10_000)
    task = asyncio.create_task(capture.run())
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert capture.state is UtteranceState.FAILED
    assert frames.closed


class TestSpooledArtifact:
    @pytest.mark.asyncio
    async def test_spooled_file_is_read_back_and_removed(self, tmp_path):
        spool = tmp_path / "spool"
        stub = StubTranscriber({"a": ("spooled", 0.0)})
        capture = make_capture(queue_with(PCM_FRAME), stub, spool_dir=str(spool), started_at=77)

        entry = await capture.run()

        assert entry is not None
        artifact = stub.calls[0]
        assert artifact.path == os.path.join(str(spool), "a-77.wav")
        assert artifact.pcm == PCM_FRAME
        assert not os.path.exists(artifact.path)

    @pytest.mark.asyncio
    async def test_keep_audio_leaves_file(self, tmp_path):
        stub = StubTranscriber({"a": ("kept", 0.0)})
        capture = make_capture(queue_with(PCM_FRAME), stub, spool_dir=str(tmp_path), keep_audio=True)
        await capture.run()
        path = stub.calls[0].path
        with open(path, "rb") as f:
            assert len(f.read()) == WAV_HEADER_SIZE + len(PCM_FRAME)

    @pytest.mark.asyncio
    async def test_spooled_file_removed_on_backend_failure(self, tmp_path):
        stub = StubTranscriber({"a": ("x", 0.0)}, fail_for={"a"})
        spool = tmp_path / "spool"
        capture = make_capture(queue_with(PCM_FRAME), stub, spool_dir=str(spool))
        await capture.run()
        assert os.listdir(spool) == []


@pytest.mark.asyncio
async def test_vad_gate_skips_backend_for_silence():
    stub = StubTranscriber({"a": ("ghost", 0.0)})
    silence = b"\x00\x00" * 320
    capture = make_capture(queue_with(silence, silence), stub, vad=VADProcessor(aggressiveness=3))
    assert await capture.run() is None
    assert capture.state is UtteranceState.DONE
    assert stub.calls == []


@pytest.mark.asyncio
async def test_name_resolved_inside_the_task():
    async def resolve():
        return "Zed"

    stub = StubTranscriber({"a": ("hi", 0.0)})
    capture = make_capture(queue_with(PCM_FRAME), stub, speaker_name="a", resolve_name=resolve)
    entry = await capture.run()
    assert entry.speaker_name == "Zed"


def test_module_compiles_without_escape_warnings():
    import warnings

    import scribe.capture.utterance as module

    with open(module.__file__, encoding="utf-8") as f:
        source = f.read()
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        compile(source, module.__file__, "exec")
