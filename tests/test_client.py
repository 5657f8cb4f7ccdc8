import asyncio
import json
from contextlib import asynccontextmanager

import pytest
from aiohttp import WSMsgType, web
from aiohttp.test_utils import TestServer

from voicebridge.client import CallError, Client
from voicebridge.protocol import (
    CallOption,
    DTMFEvent,
    HistoryCommand,
    MuteCommand,
    ReferCommand,
    ReferOption,
    SimpleCommand,
    TtsCommand,
    to_wire,
)


class _State:
    def __init__(self):
        self.paths = []
        self.received = []


@asynccontextmanager
async def _serve(responder=lambda data: [], close_at_once=False):
    state = _State()

    async def handler(request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        state.paths.append(request.path_qs)
        if close_at_once:
            await ws.close()
            return ws
        async for msg in ws:
            if msg.type == WSMsgType.TEXT:
                data = json.loads(msg.data)
                state.received.append(data)
                for reply in responder(data):
                    await ws.send_str(reply)
        return ws

    app = web.Application()
    app.router.add_get("/call/{kind}", handler)
    server = TestServer(app)
    await server.start_server()
    try:
        yield f"ws://{server.host}:{server.port}", state
    finally:
        await server.close()


async def _wait_for(predicate):
    for _ in range(200):
        if predicate():
            return
        await asyncio.sleep(0.01)


def test_process_event_dispatches_typed_event():
    client = Client("ws://unused")
    seen = []
    client.on_dtmf = seen.append
    client.process_event(json.dumps({"event": "dtmf", "trackId": "t1", "timestamp": 7, "digit": "5"}))
    assert seen == [DTMFEvent(track_id="t1", timestamp=7, digit="5")]


def test_process_event_calls_on_event_with_raw_text():
    client = Client("ws://unused")
    seen = []
    client.on_event = lambda name, payload: seen.append((name, payload))
    raw = json.dumps({"event": "speaking", "trackId": "a"})
    client.process_event(raw.encode())
    assert seen == [("speaking", raw)]


def test_process_event_ignores_invalid_json():
    client = Client("ws://unused")
    seen = []
    client.on_event = lambda name, payload: seen.append(name)
    client.process_event("{not json")
    client.process_event("[1, 2]")
    assert seen == []


def test_callback_failure_is_contained():
    client = Client("ws://unused")
    names = []
    client.on_event = lambda name, payload: names.append(name)

    def boom(event):
        raise RuntimeError("bad handler")

    client.on_dtmf = boom
    client.process_event(json.dumps({"event": "dtmf", "digit": "1"}))
    client.process_event(json.dumps({"event": "dtmf", "digit": "2"}))
    assert names == ["dtmf", "dtmf"]


def test_malformed_field_skips_callback():
    client = Client("ws://unused")
    seen = []
    client.on_dtmf = seen.append
    client.process_event(json.dumps({"event": "dtmf", "digit": 5}))
    assert seen == []


@pytest.mark.asyncio
async def test_send_without_connect_raises():
    client = Client("ws://unused")
    with pytest.raises(CallError, match="client not initialized"):
        await client.hangup("bye")


@pytest.mark.asyncio
async def test_connect_builds_url_with_id():
    async with _serve() as (endpoint, state):
        client = Client(endpoint, call_id="abc")
        await client.connect("webrtc")
        await client.interrupt()
        await _wait_for(lambda: state.received)
        await client.shutdown()
    assert state.paths == ["/call/webrtc?id=abc"]
    assert state.received == [{"command": "interrupt"}]
    assert state.received == [to_wire(SimpleCommand(command="interrupt"))]


@pytest.mark.asyncio
async def test_invite_returns_answer():
    def responder(data):
        if data["command"] == "invite":
            return [json.dumps({"event": "answer", "trackId": "t", "sdp": "v=0"})]
        return []

    async with _serve(responder) as (endpoint, state):
        client = Client(endpoint)
        await client.connect("sip")
        answer = await client.invite(CallOption(caller="alice", callee="bob"), timeout=5)
        await client.shutdown()
    assert answer.sdp == "v=0"
    assert state.received[0]["command"] == "invite"
    assert state.received[0]["option"] == {"callee": "bob", "caller": "alice"}


@pytest.mark.asyncio
async def test_invite_rejected_raises_and_restores_callbacks():
    def responder(data):
        return [json.dumps({"event": "reject", "reason": "busy here"})]

    async with _serve(responder) as (endpoint, _state):
        client = Client(endpoint)
        original = []
        client.on_reject = original.append
        await client.connect("sip")
        with pytest.raises(CallError, match="busy here"):
            await client.invite(CallOption(), timeout=5)
        await client.shutdown()
    assert client.on_reject == original.append


@pytest.mark.asyncio
async def test_invite_error_event_raises():
    def responder(data):
        return [json.dumps({"event": "error", "error": "no media"})]

    async with _serve(responder) as (endpoint, _state):
        client = Client(endpoint)
        await client.connect("sip")
        with pytest.raises(CallError, match="no media"):
            await client.invite(CallOption(), timeout=5)
        await client.shutdown()


@pytest.mark.asyncio
async def test_invite_times_out():
    async with _serve() as (endpoint, _state):
        client = Client(endpoint)
        await client.connect("sip")
        with pytest.raises(asyncio.TimeoutError):
            await client.invite(CallOption(), timeout=0.05)
        await client.shutdown()


@pytest.mark.asyncio
async def test_commands_on_the_wire():
    async with _serve() as (endpoint, state):
        client = Client(endpoint)
        await client.connect("webrtc")
        await client.tts("hello", speaker="s1")
        await client.stream_tts("part", play_id="p1")
        await client.mute()
        await client.refer("sip:bob@example.com", ReferOption(timeout=30))
        await client.history("user", "hi")
        await _wait_for(lambda: len(state.received) == 5)
        await client.shutdown()
    assert state.received == [
        {"command": "tts", "text": "hello", "speaker": "s1", "endOfStream": True},
        {"command": "tts", "text": "part", "playId": "p1", "streaming": True},
        {"command": "mute"},
        {"command": "refer", "target": "sip:bob@example.com", "options": {"timeout": 30}},
        {"command": "history", "speaker": "user", "text": "hi"},
    ]
    assert state.received == [
        to_wire(TtsCommand(text="hello", speaker="s1", end_of_stream=True)),
        to_wire(TtsCommand(text="part", play_id="p1", streaming=True)),
        to_wire(MuteCommand()),
        to_wire(ReferCommand(target="sip:bob@example.com", options=ReferOption(timeout=30))),
        to_wire(HistoryCommand(speaker="user", text="hi")),
    ]


@pytest.mark.asyncio
async def test_on_close_called_when_server_closes():
    async with _serve(close_at_once=True) as (endpoint, _state):
        client = Client(endpoint)
        reasons = []
        client.on_close = reasons.append
        await client.connect("webrtc")
        await _wait_for(lambda: reasons)
        await client.shutdown()
    assert len(reasons) == 1


@pytest.mark.asyncio
async def test_connect_failure_raises_call_error():
    client = Client("ws://127.0.0.1:1")
    with pytest.raises(CallError):
        await client.connect("webrtc")