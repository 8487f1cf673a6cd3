import asyncio
import os

import pytest

from conftest import PCM_FRAME, ScriptedClock, StubSummarizer, StubTranscriber
from scribe.audio.decoder import PcmSpeechDecoder
from scribe.capture.session import SessionClock, VoiceSession
from scribe.transcript.writer import NoOpSessionLogWriter


def make_session(transcriber, summarizer=None, **kwargs) -> VoiceSession:
    kwargs.setdefault("decoder_factory", PcmSpeechDecoder)
    return VoiceSession(
        room_id=kwargs.pop("room_id", "room-1"),
        transcriber=transcriber,
        summarizer=summarizer or StubSummarizer(),
        **kwargs,
    )


async def speak(session: VoiceSession, speaker_id: str, name: str, n_frames: int = 3) -> None:
    frames = await session.speaker_start(speaker_id, name)
    assert frames is not None
    for _ in range(n_frames):
        frames.feed(PCM_FRAME)
    session.speaker_end(speaker_id)


@pytest.mark.asyncio
async def test_overlapping_speakers_are_ordered_by_start_time():
    stub = StubTranscriber({"a": ("hello", 0.2), "b": ("world", 0.0)})
    summarizer = StubSummarizer("They greeted each other.")
    session = make_session(stub, summarizer, clock=ScriptedClock(1000, 1200))
    await session.start()

    await speak(session, "a", "Alice")
    await speak(session, "b", "Bob")
    result = await session.end()

    assert stub.completed == ["b", "a"]
    assert [(e.speaker_name, e.text, e.timestamp) for e in result.transcript.entries] == [
        ("Alice", "hello", 1000),
        ("Bob", "world", 1200),
    ]
    assert result.summary == "They greeted each other."
    assert summarizer.inputs == [
        "[1970-01-01T00:00:01.000Z] Alice: hello\n[1970-01-01T00:00:01.200Z] Bob: world"
    ]


@pytest.mark.asyncio
async def test_artifact_written_and_running_log_removed(tmp_path):
    stub = StubTranscriber({"a": ("hello", 0.0)})
    session = make_session(stub, StubSummarizer("Short."), clock=ScriptedClock(1_700_000_000_000))
    await session.start()
    log_path = os.path.join(str(tmp_path / "transcripts"), f"{session.session_id}.log")

    await speak(session, "a", "Alice")
    await asyncio.sleep(0.3)
    with open(log_path, encoding="utf-8") as f:
        assert f.read() == "[2023-11-14T22:13:20.000Z] Alice: hello\n"

    result = await session.end()

    assert result.artifact_path is not None
    assert os.path.basename(result.artifact_path).startswith("session-")
    with open(result.artifact_path, encoding="utf-8") as f:
        content = f.read()
    assert content.startswith(f"Session Transcript\nDate: {result.transcript.date}\n\n")
    assert "[2023-11-14T22:13:20.000Z] Alice: hello\n\n\nSummary:\nShort.\n" in content
    assert not os.path.exists(log_path)


@pytest.mark.asyncio
async def test_empty_session_is_valid():
    summarizer = StubSummarizer()
    session = make_session(StubTranscriber(), summarizer)
    await session.start()
    result = await session.end()
    assert len(result.transcript) == 0
    assert result.summary == ""
    assert result.artifact_path is None
    assert summarizer.inputs == []


@pytest.mark.asyncio
async def test_duplicate_start_is_ignored_while_capturing():
    session = make_session(StubTranscriber({"a": ("x", 0.0)}), silence_timeout_ms=5000)
    await session.start()
    first = await session.speaker_start("a", "Alice")
    assert first is not None
    assert await session.speaker_start("a", "Alice") is None
    assert session.active_speakers == ["a"]
    assert session.in_flight == 1
    first.feed(PCM_FRAME)
    await session.end()


@pytest.mark.asyncio
async def test_speaker_can_start_again_once_capture_closed():
    stub = StubTranscriber({"a": ("again", 0.3)})
    session = make_session(stub, clock=ScriptedClock(10, 20))
    await session.start()

    await speak(session, "a", "Alice")
    await asyncio.sleep(0.05)
    assert session.active_speakers == []
    # First utterance is still transcribing; the speaker may talk again
    await speak(session, "a", "Alice")
    result = await session.end()

    assert [e.timestamp for e in result.transcript.entries] == [10, 20]


@pytest.mark.asyncio
async def test_one_backend_failure_keeps_the_others():
    stub = StubTranscriber(
        {"a": ("one", 0.0), "b": ("two", 0.0), "c": ("three", 0.0)},
        fail_for={"b"},
    )
    session = make_session(stub, clock=ScriptedClock(1, 2, 3))
    await session.start()
    for sid in ("a", "b", "c"):
        await speak(session, sid, sid.upper())
    result = await session.end()
    assert [e.text for e in result.transcript.entries] == ["one", "three"]


@pytest.mark.asyncio
async def test_utterances_past_the_grace_period_are_cancelled():
    stub = StubTranscriber({"fast": ("quick", 0.0), "slow": ("too late", 2.0)})
    session = make_session(stub, grace_seconds=0.3, clock=ScriptedClock(1, 2))
    await session.start()
    await speak(session, "slow", "Slow")
    await speak(session, "fast", "Fast")

    result = await asyncio.wait_for(session.end(), timeout=1.5)

    assert [e.text for e in result.transcript.entries] == ["quick"]
    assert session.in_flight == 0
    assert "slow" not in stub.completed


@pytest.mark.asyncio
async def test_end_closes_streams_still_capturing():
    stub = StubTranscriber({"a": ("open mic", 0.0)})
    session = make_session(stub, silence_timeout_ms=10_000)
    await session.start()
    frames = await session.speaker_start("a", "Alice")
    frames.feed(PCM_FRAME)

    result = await asyncio.wait_for(session.end(), timeout=1.0)

    assert [e.text for e in result.transcript.entries] == ["open mic"]


@pytest.mark.asyncio
async def test_start_after_end_is_refused():
    session = make_session(StubTranscriber())
    await session.start()
    await session.end()
    assert await session.speaker_start("a") is None
    assert not await session.feed("a", PCM_FRAME)


@pytest.mark.asyncio
async def test_feed_starts_an_utterance():
    stub = StubTranscriber({"c": ("auto", 0.0)})
    session = make_session(stub, silence_timeout_ms=50)
    await session.start()

    assert await session.feed("c", PCM_FRAME, "Carol")
    assert await session.feed("c", PCM_FRAME)
    assert session.active_speakers == ["c"]
    assert session.in_flight == 1

    result = await session.end()
    assert result.transcript.entries[0].speaker_name == "Carol"
    assert stub.calls[0].pcm == PCM_FRAME * 2


class TestNameResolver:
    @pytest.mark.asyncio
    async def test_resolved_name_used_when_none_given(self):
        async def resolve(speaker_id):
            return {"u1": "Dana"}[speaker_id]

        stub = StubTranscriber({"u1": ("hey", 0.0)})
        session = make_session(stub, name_resolver=resolve)
        await session.start()
        await speak(session, "u1", None)
        result = await session.end()
        assert result.transcript.entries[0].speaker_name == "Dana"

    @pytest.mark.asyncio
    async def test_resolver_failure_falls_back_to_id(self):
        async def resolve(speaker_id):
            raise LookupError(speaker_id)

        stub = StubTranscriber({"u2": ("hey", 0.0)})
        session = make_session(stub, name_resolver=resolve)
        await session.start()
        await speak(session, "u2", None)
        result = await session.end()
        assert result.transcript.entries[0].speaker_name == "u2"


@pytest.mark.asyncio
async def test_concurrent_sessions_do_not_share_entries():
    stub = StubTranscriber({"a": ("room one", 0.05), "b": ("room two", 0.0)})
    one = make_session(stub, room_id="one", log_writer=NoOpSessionLogWriter(), save_transcript=False)
    two = make_session(stub, room_id="two", log_writer=NoOpSessionLogWriter(), save_transcript=False)
    await one.start()
    await two.start()
    await speak(one, "a", "A")
    await speak(two, "b", "B")
    r1, r2 = await asyncio.gather(one.end(), two.end())
    assert [e.text for e in r1.transcript.entries] == ["room one"]
    assert [e.text for e in r2.transcript.entries] == ["room two"]
    assert r1.artifact_path is None
    assert r1.session_id != r2.session_id


def test_session_clock_is_monotonic():
    clock = SessionClock()
    values = [clock() for _ in range(100)]
    assert values == sorted(values)
    assert values[0] > 1_600_000_000_000


@pytest.mark.asyncio
async def test_result_to_dict():
    stub = StubTranscriber({"a": ("hi", 0.0)})
    session = make_session(stub, clock=ScriptedClock(1000))
    await session.start()
    await speak(session, "a", "Alice")
    result = await session.end()
    data = result.to_dict()
    assert data["session_id"] == result.session_id
    assert data["entries"] == [
        {
            "timestamp": 1000,
            "time": "1970-01-01T00:00:01.000Z",
            "speaker_id": "a",
            "speaker_name": "Alice",
            "text": "hi",
        }
    ]
    assert data["artifact"] == result.artifact_path


@pytest.mark.asyncio
async def test_frame_right_after_speaker_end_starts_a_new_utterance():
    stub = StubTranscriber({"a": ("said", 0.0)})
    session = make_session(stub, clock=ScriptedClock(10, 20), silence_timeout_ms=5000)
    await session.start()

    assert await session.feed("a", PCM_FRAME, "Alice")
    session.speaker_end("a")
    assert await session.feed("a", PCM_FRAME, "Alice")
    assert session.in_flight == 2

    result = await session.end()
    assert [e.timestamp for e in result.transcript.entries] == [10, 20]
    assert len(stub.calls) == 2


@pytest.mark.asyncio
async def test_slow_name_lookup_still_gets_the_grace_period():
    resolved = []

    async def resolve(speaker_id):
        await asyncio.sleep(0.2)
        resolved.append(speaker_id)
        return "Eve"

    stub = StubTranscriber({"u3": ("made it", 0.0)})
    session = make_session(stub, name_resolver=resolve)
    await session.start()

    frames = await session.speaker_start("u3")
    frames.feed(PCM_FRAME)
    assert resolved == []
    assert session.in_flight == 1

    result = await session.end()
    assert [(e.speaker_name, e.text) for e in result.transcript.entries] == [("Eve", "made it")]
