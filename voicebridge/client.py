"""Websocket client for driving calls on the media server."""

import asyncio
import json
import logging
from typing import Callable, Optional

import aiohttp

from .protocol import (
    AcceptCommand,
    AnswerEvent,
    CallOption,
    CandidateCommand,
    ErrorEvent,
    HangupCommand,
    HangupEvent,
    HistoryCommand,
    InviteCommand,
    MuteCommand,
    PlayCommand,
    ReferCommand,
    ReferOption,
    RejectCommand,
    RejectEvent,
    SimpleCommand,
    TTSOption,
    TtsCommand,
    UnmuteCommand,
    encode_command,
    event_from_json,
)

_CALLBACKS = {
    "incoming": "on_incoming",
    "answer": "_on_answer",
    "reject": "on_reject",
    "ringing": "on_ringing",
    "hangup": "on_hangup",
    "answerMachineDetection": "on_answer_machine_detection",
    "speaking": "on_speaking",
    "silence": "on_silence",
    "dtmf": "on_dtmf",
    "trackStart": "on_track_start",
    "trackEnd": "on_track_end",
    "interruption": "on_interruption",
    "asrFinal": "on_asr_final",
    "asrDelta": "on_asr_delta",
    "llmFinal": "on_llm_final",
    "llmDelta": "on_llm_delta",
    "metrics": "on_metrics",
    "error": "on_error",
    "addHistory": "on_add_history",
    "other": "on_other",
}


class CallError(Exception):
    """Raised when a command cannot be sent or a call attempt fails."""


class Client:
    """A call session on the media server, with one callback attribute per event."""

    def __init__(self, endpoint, *, logger=None, call_id=""):
        self.endpoint = endpoint
        self.call_id = call_id
        self._logger = logger or logging.getLogger(__name__)
        self._session: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._reader: Optional[asyncio.Task] = None
        self._on_answer: Optional[Callable] = None
        self.on_close: Optional[Callable[[str], None]] = None
        self.on_event: Optional[Callable[[str, str], None]] = None
        self.on_incoming = None
        self.on_reject = None
        self.on_hangup = None
        self.on_ringing = None
        self.on_answer_machine_detection = None
        self.on_speaking = None
        self.on_silence = None
        self.on_dtmf = None
        self.on_track_start = None
        self.on_track_end = None
        self.on_interruption = None
        self.on_asr_final = None
        self.on_asr_delta = None
        self.on_llm_final = None
        self.on_llm_delta = None
        self.on_metrics = None
        self.on_error = None
        self.on_add_history = None
        self.on_other = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.shutdown()

    async def connect(self, call_type):
        """Open the websocket for ``call_type`` and start dispatching events."""
        url = f"{self.endpoint}/call/{call_type}"
        if self.call_id:
            url = f"{url}?id={self.call_id}"
        session = aiohttp.ClientSession()
        try:
            self._ws = await session.ws_connect(url)
        except (aiohttp.ClientError, OSError) as exc:
            await session.close()
            raise CallError(f"failed to connect to {url}: {exc}") from exc
        self._session = session
        self._reader = asyncio.create_task(self._read_loop(self._ws))

    async def _read_loop(self, ws):
        reason = "connection closed"
        while True:
            msg = await ws.receive()
            if msg.type == aiohttp.WSMsgType.TEXT:
                self.process_event(msg.data)
            elif msg.type in (
                aiohttp.WSMsgType.CLOSE,
                aiohttp.WSMsgType.CLOSING,
                aiohttp.WSMsgType.CLOSED,
            ):
                reason = f"websocket closed with code {ws.close_code}"
                break
            elif msg.type == aiohttp.WSMsgType.ERROR:
                reason = str(ws.exception() or msg.data)
                break
            else:
                self._logger.debug("Received non-text message: %s", msg.type)
        self._logger.error("Error reading message: %s", reason)
        if self.on_close is not None:
            self.on_close(reason)

    def process_event(self, message):
        """Decode one event message and hand it to its callback; failures are logged."""
        if isinstance(message, (bytes, bytearray)):
            message = message.decode("utf-8", errors="replace")
        try:
            data = json.loads(message)
        except json.JSONDecodeError as exc:
            self._logger.error("Error unmarshalling event: %s", exc)
            return
        if not isinstance(data, dict):
            self._logger.error("Error unmarshalling event: not a JSON object")
            return
        name = data.get("event", "")
        if name is None:
            name = ""
        if not isinstance(name, str):
            self._logger.error("Error unmarshalling event: event name %r", name)
            return
        self._logger.debug("Received event: %s %s", name, message)
        try:
            if self.on_event is not None:
                self.on_event(name, message)
            attr = _CALLBACKS.get(name)
            if attr is None:
                self._logger.debug("Unhandled event type: %s", name)
                return
            try:
                event = event_from_json(name, data)
            except ValueError as exc:
                self._logger.error("Error unmarshalling %s event: %s", name, exc)
                return
            callback = getattr(self, attr)
            if callback is not None:
                callback(event)
        except Exception as exc:  # a failing callback must not stop the reader
            self._logger.error("Panic in processEvent: %s %s", exc, message)

    async def shutdown(self):
        """Stop reading events and close the connection."""
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None
        if self._ws is not None:
            await self._ws.close()
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def invite(self, option, timeout=None):
        """Start a call and wait for it to be answered, rejected or ended."""
        loop = asyncio.get_running_loop()
        outcome = loop.create_future()

        def settle(event):
            if not outcome.done():
                outcome.set_result(event)

        saved = (self._on_answer, self.on_error, self.on_reject, self.on_hangup)
        self._on_answer = self.on_error = self.on_reject = self.on_hangup = settle
        try:
            await self._send(InviteCommand(option=option))
            event = await asyncio.wait_for(outcome, timeout)
        finally:
            self._on_answer, self.on_error, self.on_reject, self.on_hangup = saved
        if isinstance(event, AnswerEvent):
            return event
        if isinstance(event, ErrorEvent):
            raise CallError(event.error)
        if isinstance(event, (RejectEvent, HangupEvent)):
            raise CallError(event.reason)
        raise CallError("invalid event type")

    async def accept(self, option: CallOption):
        await self._send(AcceptCommand(option=option))

    async def reject(self, reason):
        await self._send(RejectCommand(reason=reason))

    async def send_candidates(self, candidates):
        await self._send(CandidateCommand(candidates=list(candidates)))

    async def tts(self, text, speaker="", play_id="", auto_hangup=False, option: Optional[TTSOption] = None):
        """Synthesise ``text`` as one complete utterance."""
        await self._send(
            TtsCommand(
                text=text,
                speaker=speaker,
                play_id=play_id,
                auto_hangup=auto_hangup,
                streaming=False,
                end_of_stream=True,
                option=option,
            )
        )

    async def stream_tts(
        self, text, speaker="", play_id="", auto_hangup=False, end_of_stream=False, option=None
    ):
        """Send one piece of a streamed utterance."""
        await self._send(
            TtsCommand(
                text=text,
                speaker=speaker,
                play_id=play_id,
                auto_hangup=auto_hangup,
                streaming=True,
                end_of_stream=end_of_stream,
                option=option,
            )
        )

    async def play(self, url, auto_hangup=False):
        await self._send(PlayCommand(url=url, auto_hangup=auto_hangup))

    async def interrupt(self):
        await self._send(SimpleCommand("interrupt"))

    async def pause(self):
        await self._send(SimpleCommand("pause"))

    async def resume(self):
        await self._send(SimpleCommand("resume"))

    async def hangup(self, reason=""):
        await self._send(HangupCommand(reason=reason))

    async def refer(self, target, options: Optional[ReferOption] = None):
        await self._send(ReferCommand(target=target, options=options))

    async def mute(self, track_id=None):
        await self._send(MuteCommand(track_id=track_id))

    async def unmute(self, track_id=None):
        await self._send(UnmuteCommand(track_id=track_id))

    async def history(self, speaker, text):
        await self._send(HistoryCommand(speaker=speaker, text=text))

    async def _send(self, command):
        if self._ws is None:
            raise CallError("client not initialized")
        if self._ws.closed:
            raise CallError("connection closed")
        payload = encode_command(command)
        self._logger.debug("Sending command: %s", payload)
        try:
            await self._ws.send_str(payload)
        except (aiohttp.ClientError, ConnectionError) as exc:
            raise CallError(f"failed to send command: {exc}") from exc