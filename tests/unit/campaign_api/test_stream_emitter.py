import asyncio
import json

import pytest

from campaign_api.errors import SerializationError
from campaign_api.streaming import CancelToken, ChunkedStreamEmitter, StreamState
from tests.helpers.sse_asserts import assert_campaign_stream, parse_frames, split_frames


DOC = {
    "campaign": {"id": "c-1", "name": "Späť 🎉", "insights": ["a", "b"]},
    "budget": {"estimated": "$147.88", "roi_projection": "450-600%"},
    "subject": None,
}


async def _collect(agen):
    return [frame async for frame in agen]


def _expected_serialized(doc) -> str:
    return json.dumps(doc, indent=2, ensure_ascii=False)


@pytest.mark.asyncio
@pytest.mark.parametrize("chunk_size", [1, 7, 50, 10_000])
async def test_chunks_concatenate_to_pretty_document(chunk_size):
    emitter = ChunkedStreamEmitter(chunk_size=chunk_size, tick_ms=0)
    session = emitter.prepare(DOC)

    frames = await _collect(emitter.stream(session))
    joined, complete, count = assert_campaign_stream("".join(frames))

    assert joined == session.serialized == _expected_serialized(DOC)
    assert complete == DOC
    assert count == -(-session.length // chunk_size)
    assert session.state is StreamState.closed_normal
    assert session.cursor == session.length


@pytest.mark.asyncio
async def test_every_chunk_is_full_size_except_last():
    emitter = ChunkedStreamEmitter(chunk_size=50, tick_ms=0)
    session = emitter.prepare(DOC)

    events = parse_frames(split_frames("".join(await _collect(emitter.stream(session)))))
    chunks = [ev["chunk"] for ev in events[:-1]]
    assert all(len(c) == 50 for c in chunks[:-1])
    assert 1 <= len(chunks[-1]) <= 50


@pytest.mark.asyncio
async def test_frames_are_sse_data_lines():
    emitter = ChunkedStreamEmitter(chunk_size=10, tick_ms=0)
    session = emitter.prepare({"k": "v"})
    frames = await _collect(emitter.stream(session))

    for frame in frames:
        assert frame.startswith("data: ")
        assert frame.endswith("\n\n")
    assert json.loads(frames[-1][len("data: "):]) == {"chunk": "", "done": True, "complete": {"k": "v"}}


@pytest.mark.asyncio
@pytest.mark.parametrize("k", [0, 1, 3])
async def test_disconnect_check_stops_stream_at_chunk_k(k):
    closed = []
    emitter = ChunkedStreamEmitter(chunk_size=5, tick_ms=0, on_close=closed.append)
    session = emitter.prepare(DOC)
    sent = 0

    async def client_gone() -> bool:
        return sent >= k

    frames = []
    async for frame in emitter.stream(session, is_disconnected=client_gone):
        frames.append(frame)
        sent += 1

    events = parse_frames(split_frames("".join(frames)))
    assert len(events) == k
    assert all(ev["done"] is False for ev in events)
    assert session.state is StreamState.closed_client_gone
    assert session.chunks_sent == k
    assert closed == [session]


@pytest.mark.asyncio
async def test_closing_the_generator_releases_once():
    closed = []
    emitter = ChunkedStreamEmitter(chunk_size=5, tick_ms=0, on_close=closed.append)
    session = emitter.prepare(DOC)

    agen = emitter.stream(session)
    first = await agen.__anext__()
    second = await agen.__anext__()
    await agen.aclose()
    await agen.aclose()

    assert '"done":false' in first and '"done":false' in second
    assert session.state is StreamState.closed_client_gone
    assert session.cursor == 10
    assert closed == [session]


@pytest.mark.asyncio
async def test_task_cancellation_mid_tick_releases_once():
    closed = []
    emitter = ChunkedStreamEmitter(chunk_size=5, tick_ms=10_000, on_close=closed.append)
    session = emitter.prepare(DOC)

    task = asyncio.create_task(_collect(emitter.stream(session)))
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert session.chunks_sent == 0
    assert session.state is StreamState.closed_client_gone
    assert closed == [session]


@pytest.mark.asyncio
async def test_cancel_token_wakes_a_sleeping_stream():
    emitter = ChunkedStreamEmitter(chunk_size=5, tick_ms=60_000)
    session = emitter.prepare(DOC)
    token = CancelToken()

    task = asyncio.create_task(_collect(emitter.stream(session, token=token)))
    await asyncio.sleep(0.01)
    token.cancel()
    frames = await asyncio.wait_for(task, timeout=1.0)

    assert frames == []
    assert session.state is StreamState.closed_client_gone


@pytest.mark.asyncio
async def test_cancel_token_wait_times_out_without_cancel():
    token = CancelToken()
    assert await token.wait(0.001) is False
    assert await token.wait(0) is False
    token.cancel()
    assert await token.wait(10) is True
    assert token.cancelled


@pytest.mark.asyncio
async def test_concurrent_streams_are_independent():
    emitter = ChunkedStreamEmitter(chunk_size=3, tick_ms=1)
    docs = [{"n": i, "body": "x" * (10 + i)} for i in range(5)]
    sessions = [emitter.prepare(d) for d in docs]

    results = await asyncio.gather(*(_collect(emitter.stream(s)) for s in sessions))

    for doc, session, frames in zip(docs, sessions, results):
        joined, complete, _ = assert_campaign_stream("".join(frames))
        assert joined == session.serialized
        assert complete == doc


def test_prepare_rejects_unserializable_documents():
    emitter = ChunkedStreamEmitter(chunk_size=5, tick_ms=0)
    with pytest.raises(SerializationError) as ei:
        emitter.prepare({"bad": object()})
    assert ei.value.status_code == 500
    assert ei.value.code.value == "serialization_failed"


@pytest.mark.parametrize("kwargs", [{"chunk_size": 0}, {"chunk_size": -3}, {"tick_ms": -1}])
def test_invalid_cadence_is_rejected(kwargs):
    with pytest.raises(ValueError):
        ChunkedStreamEmitter(**kwargs)


def test_session_cursor_is_clamped_and_finish_is_first_wins():
    emitter = ChunkedStreamEmitter(chunk_size=4, tick_ms=0)
    session = emitter.prepare([1, 2])

    text = ""
    while not session.complete:
        text += session.advance(4)
    assert text == session.serialized
    assert session.advance(4) == ""
    assert session.cursor == session.length

    assert session.finish(StreamState.closed_normal) is True
    assert session.finish(StreamState.closed_client_gone) is False
    assert session.state is StreamState.closed_normal


@pytest.mark.asyncio
async def test_closed_streams_are_counted_by_outcome():
    from prometheus_client import REGISTRY

    def closed(outcome):
        return REGISTRY.get_sample_value("campaign_api_streams_closed_total", {"outcome": outcome}) or 0.0

    before = closed("closed_normal")
    emitter = ChunkedStreamEmitter(chunk_size=50, tick_ms=0)
    await _collect(emitter.stream(emitter.prepare(DOC)))
    assert closed("closed_normal") == before + 1
