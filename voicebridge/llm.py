"""Conversation with an OpenAI-compatible chat model that may decide to end the call."""

import asyncio
import inspect
import json
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

import httpx

from .segmenter import SentenceSegmenter

DEFAULT_MODEL = "gpt-4o"
TEMPERATURE = 0.7

HANGUP_TOOL = {
    "type": "function",
    "function": {
        "name": "hangup",
        "description": "End the conversation and hang up the call",
        "parameters": {
            "type": "object",
            "properties": {
                "reason": {
                    "type": "string",
                    "description": "Reason for hanging up the call",
                }
            },
            "required": [],
        },
    },
}


class LLMError(Exception):
    """Raised when the chat model cannot be queried or answers with something unusable."""


@dataclass
class HangupTool:
    """The model's request to end the call."""

    reason: str = ""


def _failed(status_code):
    return status_code < 200 or status_code >= 400


class LLMHandler:
    """Keeps the conversation history and queries the chat model with it."""

    def __init__(self, api_key, endpoint, system_prompt, logger=None, client=None):
        self.api_key = api_key
        self.endpoint = endpoint
        self.system_prompt = system_prompt
        self._logger = logger or logging.getLogger(__name__)
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(timeout=None)
        self._lock = asyncio.Lock()
        self._messages = [{"role": "system", "content": system_prompt}]

    @property
    def messages(self):
        """A copy of the conversation so far, system prompt first."""
        return [dict(message) for message in self._messages]

    @property
    def _url(self):
        return f"{self.endpoint.rstrip('/')}/chat/completions"

    @property
    def _headers(self):
        return {"Authorization": f"Bearer {self.api_key}"}

    async def aclose(self):
        """Close the HTTP client if this handler created it."""
        if self._owns_client:
            await self._client.aclose()

    def _request_body(self, model, stream):
        body = {
            "model": model or DEFAULT_MODEL,
            "messages": list(self._messages),
            "temperature": TEMPERATURE,
            "tools": [HANGUP_TOOL],
        }
        if stream:
            body["stream"] = True
        return body

    async def _emit(self, callback, segment, play_id, auto_hangup, failure):
        try:
            result = callback(segment, play_id, auto_hangup)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:  # a failing speech callback must not end the stream
            self._logger.error("%s: %s", failure, exc)

    async def _chunks(self, response):
        async for raw in response.aiter_lines():
            line = raw.strip()
            if not line.startswith("data:"):
                continue
            data = line[len("data:"):].strip()
            if data == "[DONE]":
                return
            try:
                chunk = json.loads(data)
            except json.JSONDecodeError as exc:
                raise LLMError(f"error receiving from stream: {exc}") from exc
            if not isinstance(chunk, dict):
                raise LLMError("error receiving from stream: chunk is not a JSON object")
            yield chunk

    async def query_stream(self, model, text, tts_callback):
        """Ask the model and pass its answer to ``tts_callback`` piece by piece.

        ``tts_callback(segment, play_id, auto_hangup)`` may be a plain function or a
        coroutine function. Returns the whole answer.
        """
        async with self._lock:
            self._messages.append({"role": "user", "content": text})
            body = self._request_body(model, stream=True)
            play_id = f"llm-{uuid.uuid4()}"
            self._logger.info("Starting LLM stream with playID %s", play_id)

            segmenter = SentenceSegmenter()
            pieces = []
            should_hangup = False
            try:
                async with self._client.stream(
                    "POST", self._url, json=body, headers=self._headers
                ) as response:
                    if _failed(response.status_code):
                        detail = (await response.aread()).decode("utf-8", errors="replace")
                        raise LLMError(
                            "error creating chat completion stream: "
                            f"status code {response.status_code}, body: {detail}"
                        )
                    async for chunk in self._chunks(response):
                        choices = chunk.get("choices") or []
                        if not choices:
                            continue
                        delta = choices[0].get("delta") or {}
                        for call in delta.get("tool_calls") or []:
                            if (call.get("function") or {}).get("name") == "hangup":
                                self._logger.info("LLM requested hangup")
                                should_hangup = True
                        content = delta.get("content")
                        if content:
                            pieces.append(content)
                            for segment in segmenter.feed(content):
                                await self._emit(
                                    tts_callback, segment, play_id, False, "Failed to send TTS segment"
                                )
            except httpx.HTTPError as exc:
                raise LLMError(f"error creating chat completion stream: {exc}") from exc

            await self._emit(
                tts_callback,
                segmenter.flush(),
                play_id,
                should_hangup,
                "Failed to send final TTS segment",
            )
            full_response = "".join(pieces)
            self._messages.append({"role": "assistant", "content": full_response})
            self._logger.info(
                "LLM stream completed (responseLength=%d, hangup=%s)",
                len(full_response),
                should_hangup,
            )
            return full_response

    async def query(self, model, text):
        """Ask the model without streaming.

        Returns the answer text and a HangupTool when the model asked to end the call,
        otherwise None.
        """
        async with self._lock:
            self._messages.append({"role": "user", "content": text})
            body = self._request_body(model, stream=False)
            try:
                response = await self._client.post(self._url, json=body, headers=self._headers)
            except httpx.HTTPError as exc:
                raise LLMError(f"error querying chat model: {exc}") from exc
            if _failed(response.status_code):
                raise LLMError(
                    f"error querying chat model: status code {response.status_code}, "
                    f"body: {response.text}"
                )
            try:
                data = response.json()
            except ValueError as exc:
                raise LLMError(f"error querying chat model: {exc}") from exc
            choices = data.get("choices") if isinstance(data, dict) else None
            if not choices:
                raise LLMError("no choices in response")

            message = choices[0].get("message") or {}
            content = message.get("content") or ""
            tool_calls = message.get("tool_calls") or []
            entry = {"role": message.get("role") or "assistant", "content": content}
            if tool_calls:
                entry["tool_calls"] = tool_calls
            self._messages.append(entry)

            hangup: Optional[HangupTool] = None
            for call in tool_calls:
                function = call.get("function") or {}
                if function.get("name") != "hangup":
                    continue
                hangup = HangupTool()
                try:
                    args = json.loads(function.get("arguments") or "")
                    if args is None:
                        args = {}
                    if not isinstance(args, dict):
                        raise ValueError("arguments must be a JSON object")
                    reason = args.get("reason")
                    if reason is not None and not isinstance(reason, str):
                        raise ValueError("reason must be a string")
                except ValueError as exc:
                    self._logger.error("Failed to parse hangup arguments: %s", exc)
                else:
                    hangup.reason = reason or ""
                    self._logger.info("llm: Hangup reason %s", hangup.reason)
            return content, hangup

    async def reset(self):
        """Forget the conversation, keeping only the system prompt."""
        async with self._lock:
            self._messages = [{"role": "system", "content": self.system_prompt}]