# voicebridge

`voicebridge` is a set of asyncio building blocks for a voice-call
assistant that works with a call/media server (the service that handles
SIP/WebRTC, speech recognition and speech synthesis) reached over a
websocket at `<server url>/call/<call type>`:

* `voicebridge.protocol` – the events, options and commands of the call
  protocol, with JSON encoding and decoding;
* `voicebridge.client` – a websocket client that drives one call;
* `voicebridge.backend` – a single reconnecting websocket to the server;
* `voicebridge.llm` – a conversation with an OpenAI-compatible chat model
  that may ask to hang up;
* `voicebridge.segmenter` – splitting streamed model output at punctuation;
* `voicebridge.tooldefs` – function-calling tool definitions and font choices;
* `voicebridge.config` – the YAML configuration;
* `voicebridge.repository` and `voicebridge.api` – SQL storage of chat robot
  definitions and aiohttp routes to manage them.

## Installation

```
pip install voicebridge
```

To run the test suite:

```
pip install "voicebridge[test]"
pytest
```

## Call protocol

Commands are dataclasses in `voicebridge.protocol` (`InviteCommand`,
`AcceptCommand`, `RejectCommand`, `CandidateCommand`, `TtsCommand`,
`PlayCommand`, `SimpleCommand`, `HangupCommand`, `ReferCommand`,
`MuteCommand`, `UnmuteCommand`, `HistoryCommand`). `encode_command` turns
one into compact JSON text, leaving out empty optional fields; `to_wire`
gives the same data as plain dicts and lists.

```python
from voicebridge.protocol import HangupCommand, encode_command, event_from_json

print(encode_command(HangupCommand(reason="done")))
# {"command":"hangup","reason":"done"}

event = event_from_json(None, '{"event": "dtmf", "trackId": "t1", "digit": "5"}')
print(event.digit)  # 5
```

`event_from_json(name, payload)` accepts JSON text, bytes or a mapping,
reads the name from the `event` field when `name` is None, returns None for
event names without a class and raises `ValueError` for malformed input.

## Using the call client

```python
import asyncio

from voicebridge.client import Client
from voicebridge.protocol import CallOption


async def run():
    client = Client("ws://localhost:8000", call_id="demo-call")
    client.on_asr_final = lambda event: print("heard:", event.text)
    await client.connect("webrtc")

    answer = await client.invite(CallOption(caller="1001", callee="1002"), timeout=30)
    print("answered on track", answer.track_id)

    await client.tts("Hello, how can I help?", speaker="default", play_id="greeting")
    await client.hangup("done")
    await client.shutdown()


asyncio.run(run())
```

Each event has a callback attribute (`on_incoming`, `on_ringing`,
`on_asr_final`, `on_dtmf`, `on_metrics`, ...), plus `on_event` for every
message and `on_close` when the connection ends. `invite` raises
`CallError` when the server answers with `error`, `reject` or `hangup`
instead of `answer`; every command raises `CallError` when the client is
not connected. The other commands are `accept`, `reject`,
`send_candidates`, `stream_tts`, `play`, `interrupt`, `pause`, `resume`,
`refer`, `mute`, `unmute` and `history`.

`voicebridge.backend.BackendServer(url)` keeps one connection to the same
server: `connect(call_type)` replaces it, `reconnect(call_type)` retries up
to five times with doubling delays, and `close()` ends it.

## Chat model

```python
from voicebridge.llm import LLMHandler


async def answer(text):
    llm = LLMHandler("placeholder", "http://localhost:9000/v1", "You are a phone assistant.")
    reply = await llm.query_stream("", text, lambda segment, play_id, hangup: print(segment))
    await llm.aclose()
    return reply
```

`LLMHandler` posts to `<endpoint>/chat/completions`, keeps the conversation
history (`messages`, cleared by `reset()`) and offers the model a `hangup`
tool. `query_stream` passes the answer to a plain or coroutine callback
piece by piece with a `llm-<uuid>` play id, the last piece flagged when the
model asked to hang up. `query` returns the answer text and a `HangupTool`
or None. Failures raise `LLMError`.

## Sentence segmentation

`SentenceSegmenter` releases text up to and including each punctuation
mark (`. , ; : ! ?` and their full-width forms) plus any following
whitespace; `flush()` returns what is left. `split_segments` does the same
for a single string.

```python
from voicebridge.segmenter import SentenceSegmenter

segmenter = SentenceSegmenter()
print(segmenter.feed("Hello, wor"))   # ['Hello, ']
print(segmenter.feed("ld! How"))      # ['world! ']
print(segmenter.flush())              # 'How'
```

## Tool definitions

`voicebridge.tooldefs.tool_definitions(include_transform=True)` returns the
`queryWeather`, `searchOnline`, `generateImage` and, when asked for,
`transformText` function definitions. `font_name_for(style)` maps a style to
a preset font (default `dongfangdakai`) and `ttf_url_for(style)` returns a
custom font URL or an empty string.

## Configuration

```yaml
server:
  port: "8080"
backend:
  url: ws://localhost:8000
  call_type: webrtc
audio:
  codec: pcmu
asr:
  provider: tencent
  language: zh
  sample_rate: 16000
  secret_key: "placeholder"
tts:
  provider: tencent
  sample_rate: 16000
  speaker: "default"
  speed: 1.0
  volume: 5
  secret_key: "placeholder"
llm:
  api_key: "placeholder"
  url: http://localhost:9000/v1
  system_prompt: "You are a helpful phone assistant."
  siliconflow:
    api_key: "placeholder"
    url: http://localhost:9001/v1/chat/completions
    model: "chat-model"
big_model:
  search_api_url: http://localhost:9002/search
  search_api_key: "placeholder"
database:
  dsn: "sqlite:///robots.db"
```

`voicebridge.config.load_config(path)` reads such a file into a `Config`
(`config_from_dict` does the same for parsed data); missing keys keep their
empty defaults, unknown keys are ignored, and unreadable or ill-typed input
raises `ConfigError`.

## Robot storage and routes

`voicebridge.repository.Repository(dsn)` opens a SQLAlchemy database and
creates the `chat_robots` table; it offers `create_robot`, `delete_robot`,
`update_robot` and `get_all_robots` on `ChatRobot` records and raises
`RepositoryError` on failure.

```python
from aiohttp import web

from voicebridge.api import register_routes
from voicebridge.repository import Repository

app = web.Application()
register_routes(app, Repository("sqlite:///robots.db"))
web.run_app(app, port=8080)
```

`register_routes` adds `POST /api/robots/addAssistant`,
`POST /api/robots/deleteAssistant` (needs a non-zero `id`),
`POST /api/robots/updateAssistant` and `GET /api/robots/getAssistant`, each
answering `{"code": 1 | 0, "message": ..., "data": ...}`.

## What is not included

The package has no command-line program and no ready-made server: it does
not accept browser websocket connections, relay speech recognition results
to a chat model or forward server events to a browser. The tool definitions
are only descriptions offered to a model; weather lookup, web search, image
and word-art generation are not carried out by anything in the package.