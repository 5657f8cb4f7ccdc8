"""Events, options and commands exchanged with the media server over its websocket."""

import dataclasses
import json
import re
import types
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union, get_args, get_origin

_MISSING = dataclasses.MISSING


def _f(json_name, default=_MISSING, *, omitempty=False, factory=None, init=True):
    meta = {"json": json_name, "omitempty": omitempty}
    if factory is not None:
        return field(default_factory=factory, metadata=meta, init=init)
    return field(default=default, metadata=meta, init=init)


def _auto(default=_MISSING, *, omitempty=False):
    """A field whose wire name is the camel-cased attribute name."""
    return _f(None, default, omitempty=omitempty)


def _camel(name):
    return re.sub(r"_([a-z0-9])", lambda m: m.group(1).upper(), name)


def _json_name(f):
    name = f.metadata.get("json")
    return name if name else _camel(f.name)


# --- events received from the server -------------------------------------------------


@dataclass
class IncomingEvent:
    track_id: str = _f("trackId", "")
    timestamp: int = _f("timestamp", 0)
    caller: str = _f("caller", "")
    callee: str = _f("callee", "")
    sdp: str = _f("sdp", "")


@dataclass
class AnswerEvent:
    track_id: str = _f("trackId", "")
    timestamp: int = _f("timestamp", 0)
    sdp: str = _f("sdp", "")


@dataclass
class RejectEvent:
    track_id: str = _f("trackId", "")
    timestamp: int = _f("timestamp", 0)
    reason: str = _f("reason", "")


@dataclass
class RingingEvent:
    track_id: str = _f("trackId", "")
    timestamp: int = _f("timestamp", 0)
    early_media: bool = _f("earlyMedia", False)


@dataclass
class HangupEvent:
    timestamp: int = _f("timestamp", 0)
    reason: str = _f("reason", "")
    initiator: str = _f("initiator", "")


@dataclass
class AnswerMachineDetectionEvent:
    timestamp: int = _f("timestamp", 0)
    start_time: int = _f("startTime", 0)
    end_time: int = _f("endTime", 0)
    text: str = _f("text", "")


@dataclass
class SpeakingEvent:
    track_id: str = _f("trackId", "")
    timestamp: int = _f("timestamp", 0)
    start_time: int = _f("startTime", 0)


@dataclass
class SilenceEvent:
    track_id: str = _f("trackId", "")
    timestamp: int = _f("timestamp", 0)
    start_time: int = _f("startTime", 0)
    duration: int = _f("duration", 0)


@dataclass
class DTMFEvent:
    track_id: str = _f("trackId", "")
    timestamp: int = _f("timestamp", 0)
    digit: str = _f("digit", "")


@dataclass
class TrackStartEvent:
    track_id: str = _f("trackId", "")
    timestamp: int = _f("timestamp", 0)


@dataclass
class TrackEndEvent:
    track_id: str = _f("trackId", "")
    timestamp: int = _f("timestamp", 0)
    duration: int = _f("duration", 0)


@dataclass
class InterruptionEvent:
    track_id: str = _f("trackId", "")
    timestamp: int = _f("timestamp", 0)
    position: int = _f("position", 0)


@dataclass
class AsrFinalEvent:
    track_id: str = _f("trackId", "")
    timestamp: int = _f("timestamp", 0)
    index: int = _f("index", 0)
    start_time: Optional[int] = _f("startTime", None, omitempty=True)
    end_time: Optional[int] = _f("endTime", None, omitempty=True)
    text: str = _f("text", "")


@dataclass
class AsrDeltaEvent:
    track_id: str = _f("trackId", "")
    index: int = _f("index", 0)
    timestamp: int = _f("timestamp", 0)
    start_time: Optional[int] = _f("startTime", None, omitempty=True)
    end_time: Optional[int] = _f("endTime", None, omitempty=True)
    text: str = _f("text", "")


@dataclass
class LLMFinalEvent:
    timestamp: int = _f("timestamp", 0)
    text: str = _f("text", "")


@dataclass
class LLMDeltaEvent:
    timestamp: int = _f("timestamp", 0)
    word: str = _f("word", "")


@dataclass
class MetricsEvent:
    timestamp: int = _f("timestamp", 0)
    key: str = _f("key", "")
    duration: int = _f("duration", 0)
    data: Optional[dict[str, Any]] = _f("data", None)


@dataclass
class ErrorEvent:
    track_id: str = _f("trackId", "")
    timestamp: int = _f("timestamp", 0)
    sender: str = _f("sender", "")
    error: str = _f("error", "")
    code: Optional[int] = _f("code", None, omitempty=True)


@dataclass
class EouEvent:
    track_id: str = _f("trackId", "")
    timestamp: int = _f("timestamp", 0)
    complete: bool = _f("complete", False)


@dataclass
class AddHistoryEvent:
    sender: str = _f("sender", "")
    timestamp: int = _f("timestamp", 0)
    speaker: str = _f("speaker", "")
    text: str = _f("text", "")


@dataclass
class OtherEvent:
    track_id: str = _f("trackId", "")
    timestamp: int = _f("timestamp", 0)
    sender: str = _f("sender", "")
    extra: Optional[dict[str, str]] = _f("extra", None, omitempty=True)


# --- options ---------------------------------------------------------------------------


@dataclass
class RecorderOption:
    samplerate: int = _f("samplerate", 0, omitempty=True)


@dataclass
class VADOption:
    type: str = _f("type", "", omitempty=True)
    samplerate: int = _f("samplerate", 0, omitempty=True)
    speech_padding: int = _f("speechPadding", 0, omitempty=True)
    silence_padding: int = _f("silencePadding", 0, omitempty=True)
    ratio: float = _f("ratio", 0.0, omitempty=True)
    voice_threshold: float = _f("voiceThreshold", 0.0, omitempty=True)
    max_buffer_duration_secs: int = _f("maxBufferDurationSecs", 0, omitempty=True)
    endpoint: str = _f("endpoint", "", omitempty=True)
    secret_key: str = _auto("", omitempty=True)
    secret_id: str = _f("secretId", "", omitempty=True)


@dataclass
class ASROption:
    provider: str = _f("provider", "", omitempty=True)
    model: str = _f("model", "", omitempty=True)
    language: str = _f("language", "", omitempty=True)
    app_id: str = _f("appId", "", omitempty=True)
    secret_id: str = _f("secretId", "", omitempty=True)
    secret_key: str = _auto("", omitempty=True)
    model_type: str = _f("modelType", "", omitempty=True)
    buffer_size: int = _f("bufferSize", 0, omitempty=True)
    sample_rate: int = _f("sampleRate", 0, omitempty=True)
    endpoint: str = _f("endpoint", "", omitempty=True)
    extra: Optional[dict[str, str]] = _f("extra", None, omitempty=True)


@dataclass
class TTSOption:
    samplerate: int = _f("samplerate", 0, omitempty=True)
    provider: str = _f("provider", "", omitempty=True)
    speed: float = _f("speed", 0.0, omitempty=True)
    app_id: str = _f("appId", "", omitempty=True)
    secret_id: str = _f("secretId", "", omitempty=True)
    secret_key: str = _auto("", omitempty=True)
    volume: int = _f("volume", 0, omitempty=True)
    speaker: str = _f("speaker", "", omitempty=True)
    codec: str = _f("codec", "", omitempty=True)
    subtitle: bool = _f("subtitle", False, omitempty=True)
    emotion: str = _f("emotion", "", omitempty=True)
    endpoint: str = _f("endpoint", "", omitempty=True)
    extra: Optional[dict[str, str]] = _f("extra", None, omitempty=True)
    primary_language: int = _f("primaryLanguage", 0, omitempty=True)


@dataclass
class SipOption:
    username: str = _f("username", "", omitempty=True)
    password: str = _auto("", omitempty=True)
    realm: str = _f("realm", "", omitempty=True)
    headers: Optional[dict[str, str]] = _f("headers", None, omitempty=True)


@dataclass
class EouOption:
    type: str = _f("type", "", omitempty=True)
    endpoint: str = _f("endpoint", "", omitempty=True)
    secret_key: str = _auto("", omitempty=True)
    secret_id: str = _f("secretId", "", omitempty=True)
    timeout: int = _f("timeout", 0, omitempty=True)


@dataclass
class CallOption:
    denoise: bool = _f("denoise", False, omitempty=True)
    offer: str = _f("offer", "", omitempty=True)
    callee: str = _f("callee", "", omitempty=True)
    caller: str = _f("caller", "", omitempty=True)
    recorder: Optional[RecorderOption] = _f("recorder", None, omitempty=True)
    vad: Optional[VADOption] = _f("vad", None, omitempty=True)
    asr: Optional[ASROption] = _f("asr", None, omitempty=True)
    tts: Optional[TTSOption] = _f("tts", None, omitempty=True)
    handshake_timeout: str = _f("handshakeTimeout", "", omitempty=True)
    enable_ipv6: bool = _f("enableIpv6", False, omitempty=True)
    sip: Optional[SipOption] = _f("sip", None, omitempty=True)
    extra: Optional[dict[str, str]] = _f("extra", None, omitempty=True)
    eou: Optional[EouOption] = _f("eou", None, omitempty=True)


@dataclass
class ReferOption:
    bypass: bool = _f("bypass", False, omitempty=True)
    timeout: int = _f("timeout", 0, omitempty=True)
    music_on_hold: str = _f("moh", "", omitempty=True)
    auto_hangup: bool = _f("autoHangup", False, omitempty=True)


# --- commands sent to the server -------------------------------------------------------


@dataclass
class InviteCommand:
    command: str = _f("command", "invite", init=False)
    option: CallOption = _f("option", factory=CallOption)


@dataclass
class AcceptCommand:
    command: str = _f("command", "accept", init=False)
    option: CallOption = _f("option", factory=CallOption)


@dataclass
class RejectCommand:
    command: str = _f("command", "reject", init=False)
    reason: str = _f("reason", "")
    code: int = _f("code", 0, omitempty=True)


@dataclass
class CandidateCommand:
    command: str = _f("command", "candidate", init=False)
    candidates: list[str] = _f("candidates", factory=list)


@dataclass
class TtsCommand:
    command: str = _f("command", "tts", init=False)
    text: str = _f("text", "")
    speaker: str = _f("speaker", "", omitempty=True)
    play_id: str = _f("playId", "", omitempty=True)
    auto_hangup: bool = _f("autoHangup", False, omitempty=True)
    streaming: bool = _f("streaming", False, omitempty=True)
    end_of_stream: bool = _f("endOfStream", False, omitempty=True)
    option: Optional[TTSOption] = _f("option", None, omitempty=True)


@dataclass
class PlayCommand:
    command: str = _f("command", "play", init=False)
    url: str = _f("url", "")
    auto_hangup: bool = _f("autoHangup", False, omitempty=True)


@dataclass
class SimpleCommand:
    """A command with no arguments, such as interrupt, pause or resume."""

    command: str = _f("command")


@dataclass
class HangupCommand:
    command: str = _f("command", "hangup", init=False)
    reason: str = _f("reason", "", omitempty=True)
    initiator: str = _f("initiator", "", omitempty=True)


@dataclass
class ReferCommand:
    command: str = _f("command", "refer", init=False)
    target: str = _f("target", "")
    options: Optional[ReferOption] = _f("options", None, omitempty=True)


@dataclass
class MuteCommand:
    command: str = _f("command", "mute", init=False)
    track_id: Optional[str] = _f("trackId", None, omitempty=True)


@dataclass
class UnmuteCommand:
    command: str = _f("command", "unmute", init=False)
    track_id: Optional[str] = _f("trackId", None, omitempty=True)


@dataclass
class HistoryCommand:
    command: str = _f("command", "history", init=False)
    speaker: str = _f("speaker", "")
    text: str = _f("text", "")


EVENT_TYPES: dict[str, type] = {
    "incoming": IncomingEvent,
    "answer": AnswerEvent,
    "reject": RejectEvent,
    "ringing": RingingEvent,
    "hangup": HangupEvent,
    "answerMachineDetection": AnswerMachineDetectionEvent,
    "speaking": SpeakingEvent,
    "silence": SilenceEvent,
    "dtmf": DTMFEvent,
    "trackStart": TrackStartEvent,
    "trackEnd": TrackEndEvent,
    "interruption": InterruptionEvent,
    "asrFinal": AsrFinalEvent,
    "asrDelta": AsrDeltaEvent,
    "llmFinal": LLMFinalEvent,
    "llmDelta": LLMDeltaEvent,
    "metrics": MetricsEvent,
    "error": ErrorEvent,
    "addHistory": AddHistoryEvent,
    "other": OtherEvent,
}


def _optional_inner(tp):
    """Return the wrapped type of an Optional annotation, or None if not optional."""
    if get_origin(tp) in (Union, types.UnionType):
        args = [a for a in get_args(tp) if a is not type(None)]
        if len(args) < len(get_args(tp)):
            return args[0]
    return None


def _is_empty(value, optional):
    if value is None:
        return True
    if isinstance(value, (dict, list)):
        return not value
    if optional:
        return False
    return value is False or value == 0 or value == ""


def to_wire(value):
    """Convert a protocol object into JSON-ready data, honouring omitted empty fields."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        out = {}
        for f in dataclasses.fields(value):
            item = getattr(value, f.name)
            if f.metadata.get("omitempty") and _is_empty(item, _optional_inner(f.type) is not None):
                continue
            out[_json_name(f)] = to_wire(item)
        return out
    if isinstance(value, dict):
        return {key: to_wire(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_wire(item) for item in value]
    return value


def encode_command(command):
    """Serialise a command object into the JSON text sent over the websocket."""
    if not dataclasses.is_dataclass(command) or isinstance(command, type):
        raise TypeError(f"not a protocol command: {command!r}")
    return json.dumps(to_wire(command), ensure_ascii=False, separators=(",", ":"))


def _zero(tp):
    if tp is str:
        return ""
    if tp is bool:
        return False
    if tp is int:
        return 0
    if tp is float:
        return 0.0
    if dataclasses.is_dataclass(tp):
        return tp()
    return None


def _coerce(raw, tp, where):
    inner = _optional_inner(tp)
    if inner is not None:
        return None if raw is None else _coerce(raw, inner, where)
    if raw is None:
        return _zero(tp)
    origin = get_origin(tp)
    if tp is Any:
        return raw
    if tp is bool:
        if isinstance(raw, bool):
            return raw
    elif tp is int:
        if isinstance(raw, int) and not isinstance(raw, bool):
            return raw
    elif tp is float:
        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            return float(raw)
    elif tp is str:
        if isinstance(raw, str):
            return raw
    elif origin is dict:
        if isinstance(raw, dict):
            _, value_type = get_args(tp)
            return {key: _coerce(item, value_type, f"{where}[{key}]") for key, item in raw.items()}
    elif origin is list:
        if isinstance(raw, list):
            (item_type,) = get_args(tp)
            return [_coerce(item, item_type, f"{where}[]") for item in raw]
    elif dataclasses.is_dataclass(tp):
        return _decode(tp, raw)
    raise ValueError(f"cannot decode {raw!r} into {where}")


def _decode(cls, data):
    if not isinstance(data, Mapping):
        raise ValueError(f"cannot decode {type(data).__name__} into {cls.__name__}")
    lowered = {str(key).lower(): key for key in data}
    kwargs = {}
    for f in dataclasses.fields(cls):
        if not f.init:
            continue
        key = _json_name(f)
        if key in data:
            raw = data[key]
        elif key.lower() in lowered:
            raw = data[lowered[key.lower()]]
        else:
            continue
        kwargs[f.name] = _coerce(raw, f.type, f"{cls.__name__}.{key}")
    return cls(**kwargs)


def event_from_json(name, payload):
    """Decode an event payload into its event class.

    ``payload`` may be JSON text, bytes or an already parsed mapping. When ``name`` is
    None the event name is read from the payload's ``event`` field. Returns None for
    event names that have no dedicated class; raises ValueError for malformed input.
    """
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8")
    if isinstance(payload, str):
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise ValueError(f"invalid event payload: {exc}") from exc
    else:
        data = payload
    if not isinstance(data, Mapping):
        raise ValueError("event payload must be a JSON object")
    if name is None:
        name = data.get("event", "")
        if name is None:
            name = ""
        if not isinstance(name, str):
            raise ValueError(f"event name must be a string, got {name!r}")
    cls = EVENT_TYPES.get(name)
    if cls is None:
        return None
    return _decode(cls, data)