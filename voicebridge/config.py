"""Service configuration loaded from a YAML file."""

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path

import yaml

_U32 = (0, 2**32 - 1)
_I32 = (-(2**31), 2**31 - 1)


class ConfigError(Exception):
    """Raised when the configuration cannot be read or decoded."""


def _opt(default=dataclasses.MISSING, *, key=None, bounds=None, factory=None):
    meta = {}
    if key is not None:
        meta["yaml"] = key
    if bounds is not None:
        meta["bounds"] = bounds
    if factory is not None:
        return field(default_factory=factory, metadata=meta)
    return field(default=default, metadata=meta)


@dataclass
class DatabaseConfig:
    dsn: str = ""


@dataclass
class ServerConfig:
    port: str = ""


@dataclass
class BackendConfig:
    url: str = ""
    call_type: str = ""


@dataclass
class AudioConfig:
    codec: str = ""


@dataclass
class ASRConfig:
    provider: str = ""
    language: str = ""
    sample_rate: int = _opt(0, bounds=_U32)
    app_id: str = ""
    secret_id: str = ""
    secret_key: str = ""
    endpoint: str = ""
    model_type: str = ""


@dataclass
class TTSConfig:
    provider: str = ""
    sample_rate: int = _opt(0, bounds=_I32)
    speaker: str = ""
    speed: float = 0.0
    volume: int = _opt(0, bounds=_I32)
    emotion_category: str = _opt("", key="emotion")
    app_id: str = ""
    secret_id: str = ""
    secret_key: str = ""
    codec: str = ""
    endpoint: str = ""


@dataclass
class SiliconFlowConfig:
    api_key: str = ""
    url: str = ""
    model: str = ""


@dataclass
class LLMConfig:
    api_key: str = ""
    model: str = ""
    url: str = ""
    system_prompt: str = ""
    silicon_flow: SiliconFlowConfig = _opt(key="siliconflow", factory=SiliconFlowConfig)


@dataclass
class BigModelConfig:
    search_api_url: str = ""
    search_api_key: str = ""
    search_api_model: str = ""


@dataclass
class VADConfig:
    model: str = ""
    endpoint: str = ""
    secret_key: str = ""


@dataclass
class CallConfig:
    break_on_vad: bool = False
    with_sip: bool = False
    record: bool = False
    caller: str = ""
    callee: str = ""


@dataclass
class WebHookConfig:
    addr: str = ""
    prefix: str = ""


@dataclass
class EOUConfig:
    type: str = ""
    endpoint: str = ""


@dataclass
class Config:
    server: ServerConfig = field(default_factory=ServerConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)
    asr: ASRConfig = field(default_factory=ASRConfig)
    tts: TTSConfig = field(default_factory=TTSConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    vad: VADConfig = field(default_factory=VADConfig)
    call: CallConfig = field(default_factory=CallConfig)
    webhook: WebHookConfig = field(default_factory=WebHookConfig)
    eou: EOUConfig = field(default_factory=EOUConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    big_model: BigModelConfig = field(default_factory=BigModelConfig)


def _fail(raw, where):
    raise ConfigError(f"cannot decode {raw!r} into {where}")


def _scalar(raw, f, where):
    tp = f.type
    if tp is str:
        if raw is None:
            return ""
        if isinstance(raw, bool):
            return "true" if raw else "false"
        if isinstance(raw, (str, int, float)):
            return str(raw)
        _fail(raw, where)
    if tp is bool:
        if raw is None:
            return False
        if isinstance(raw, bool):
            return raw
        _fail(raw, where)
    if tp is int:
        if raw is None:
            return 0
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            _fail(raw, where)
        value = int(raw)
        low, high = f.metadata.get("bounds", (None, None))
        if (low is not None and value < low) or (high is not None and value > high):
            _fail(raw, where)
        return value
    if tp is float:
        if raw is None:
            return 0.0
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            _fail(raw, where)
        return float(raw)
    return _build(tp, raw, where)


def _build(cls, data, where):
    if data is None:
        return cls()
    if not isinstance(data, dict):
        _fail(data, where)
    kwargs = {}
    for f in dataclasses.fields(cls):
        key = f.metadata.get("yaml", f.name)
        if key in data:
            kwargs[f.name] = _scalar(data[key], f, f"{where}.{key}" if where else key)
    return cls(**kwargs)


def config_from_dict(data):
    """Build a Config from parsed YAML data; unknown keys are ignored."""
    return _build(Config, data, "")


def load_config(path):
    """Read and decode the YAML configuration file at ``path``."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"failed to read config file: {exc}") from exc
    try:
        data = yaml.safe_load(text)
        return config_from_dict(data)
    except (yaml.YAMLError, ConfigError) as exc:
        raise ConfigError(f"failed to unmarshal config: {exc}") from exc