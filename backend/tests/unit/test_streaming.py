"""
Unit tests for StreamingDispatcher

Tests SSE framing, simulated streaming, in-band errors and cancellation
"""
import asyncio
import json

import pytest

from aigateway.services.adapter.base import AIResponse, StreamingChatAdapter
from aigateway.services.gateway.errors import AIServiceError, ErrorCode
from aigateway.services.gateway.streaming import (
    DONE_FRAME,
    StreamingDispatcher,
    slice_content,
    sse_frame,
)
from aigateway.services.gateway.types import ChatMessage
from tests.fakes import FakeChatAdapter, FakeStreamingAdapter


MESSAGES = [ChatMessage(role="user", content="Hi")]


class HangingStreamAdapter(StreamingChatAdapter):
    """Yields one delta and then waits until cancelled."""

    provider_name = "openai"

    def __init__(self):
        super().__init__(api_key="test-key", base_url="http://fake", model="gpt-3.5-turbo")
        self.closed = False

    async def chat_completion(self, messages, parameters):
        return AIResponse(content="unused")

    async def chat_completion_stream(self, messages, parameters):
        try:
            yield "first"
            await asyncio.Event().wait()
        finally:
            self.closed = True


def _payloads(frames):
    return [json.loads(f[len("data: "):]) for f in frames if f != DONE_FRAME]


async def _collect(dispatcher, client, cancel=None, parameters=None):
    return [
        frame async for frame in dispatcher.dispatch(client, MESSAGES, parameters, cancel=cancel)
    ]


# ============================================================
# Framing
# ============================================================

@pytest.mark.unit
def test_sse_frame_format():
    assert sse_frame({"type": "start", "provider": "openai"}) == 'data: {"type": "start", "provider": "openai"}\n\n'


@pytest.mark.unit
def test_sse_frame_keeps_unicode():
    assert "你好" in sse_frame({"content": "你好"})


@pytest.mark.unit
def test_slice_content():
    assert slice_content("abcdefghij", 4) == ["abcd", "efgh", "ij"]
    assert slice_content("", 4) == []


# ============================================================
# Native Streaming
# ============================================================

@pytest.mark.unit
@pytest.mark.asyncio
async def test_native_stream_frame_sequence(make_chat_client):
    """Test start, chunks, end, then [DONE] exactly once and last"""
    client = make_chat_client(FakeStreamingAdapter(["Hel", "lo"]))

    frames = await _collect(StreamingDispatcher(chunk_delay_ms=0), client)

    assert frames[-1] == DONE_FRAME
    assert frames.count(DONE_FRAME) == 1
    payloads = _payloads(frames)
    assert [p["type"] for p in payloads] == ["start", "chunk", "chunk", "end"]
    assert payloads[0]["provider"] == "openai"
    assert "".join(p["content"] for p in payloads if p["type"] == "chunk") == "Hello"
    assert all("simulated" not in p["metadata"] for p in payloads if p["type"] == "chunk")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_native_stream_error_becomes_error_frame(make_chat_client):
    """Test a mid-stream failure ends with an error frame then [DONE]"""
    error = AIServiceError("openai", ErrorCode.SERVER_ERROR, "upstream closed")
    client = make_chat_client(FakeStreamingAdapter(["partial"], error=error))

    frames = await _collect(StreamingDispatcher(chunk_delay_ms=0), client)

    payloads = _payloads(frames)
    assert [p["type"] for p in payloads] == ["start", "chunk", "error"]
    assert payloads[-1]["error"] == "upstream closed"
    assert frames[-1] == DONE_FRAME
    assert frames.count(DONE_FRAME) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invalid_parameters_in_stream_become_error_frame(make_chat_client):
    adapter = FakeStreamingAdapter(["a"])
    client = make_chat_client(adapter)

    frames = await _collect(StreamingDispatcher(chunk_delay_ms=0), client, parameters={"temperature": 3})

    payloads = _payloads(frames)
    assert [p["type"] for p in payloads] == ["start", "error"]
    assert "Invalid parameters" in payloads[-1]["error"]
    assert adapter.stream_calls == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_ends_native_stream_quietly(make_chat_client):
    """Test cancelling mid-stream stops without end or [DONE] and closes the source"""
    adapter = HangingStreamAdapter()
    client = make_chat_client(adapter)
    cancel = asyncio.Event()
    frames = []

    async for frame in StreamingDispatcher(chunk_delay_ms=0).dispatch(client, MESSAGES, cancel=cancel):
        frames.append(frame)
        if len(frames) == 2:
            cancel.set()

    assert [p["type"] for p in _payloads(frames)] == ["start", "chunk"]
    assert DONE_FRAME not in frames
    assert adapter.closed is True


# ============================================================
# Simulated Streaming
# ============================================================

@pytest.mark.unit
@pytest.mark.asyncio
async def test_simulated_stream_slices_full_reply(make_chat_client):
    """Test non-streaming providers get sliced chunks flagged as simulated"""
    client = make_chat_client(FakeChatAdapter([AIResponse(content="abcdefghijkl")]))

    frames = await _collect(StreamingDispatcher(chunk_size=5, chunk_delay_ms=0), client)

    payloads = _payloads(frames)
    chunks = [p for p in payloads if p["type"] == "chunk"]
    assert [c["content"] for c in chunks] == ["abcde", "fghij", "kl"]
    assert all(c["metadata"]["simulated"] is True for c in chunks)
    assert payloads[-1]["type"] == "end"
    assert frames[-1] == DONE_FRAME


@pytest.mark.unit
@pytest.mark.asyncio
async def test_simulated_stream_paces_chunks(make_chat_client):
    client = make_chat_client(FakeChatAdapter([AIResponse(content="abcdef")]))
    loop = asyncio.get_running_loop()

    started = loop.time()
    frames = await _collect(StreamingDispatcher(chunk_size=2, chunk_delay_ms=20), client)
    elapsed = loop.time() - started

    assert len([p for p in _payloads(frames) if p["type"] == "chunk"]) == 3
    assert elapsed >= 0.035


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_during_simulated_pause(make_chat_client):
    client = make_chat_client(FakeChatAdapter([AIResponse(content="abcdefghij")]))
    cancel = asyncio.Event()
    frames = []

    async for frame in StreamingDispatcher(chunk_size=2, chunk_delay_ms=1000).dispatch(client, MESSAGES, cancel=cancel):
        frames.append(frame)
        if len(frames) == 2:
            cancel.set()

    assert [p["type"] for p in _payloads(frames)] == ["start", "chunk"]
    assert DONE_FRAME not in frames


@pytest.mark.unit
@pytest.mark.asyncio
async def test_simulated_stream_failure(make_chat_client):
    client = make_chat_client(FakeChatAdapter([AIServiceError("openai", ErrorCode.UNAUTHORIZED, "bad key")]))

    frames = await _collect(StreamingDispatcher(chunk_delay_ms=0), client)

    payloads = _payloads(frames)
    assert [p["type"] for p in payloads] == ["start", "error"]
    assert payloads[-1]["error"] == "bad key"
    assert frames[-1] == DONE_FRAME
