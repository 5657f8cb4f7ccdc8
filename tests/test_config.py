import pytest

from voicebridge.config import (
    ASRConfig,
    Config,
    ConfigError,
    config_from_dict,
    load_config,
)

SAMPLE = """
server:
  port: 8080
backend:
  url: ws://localhost:8081
  call_type: webrtc
audio:
  codec: pcmu
asr:
  provider: tencent
  sample_rate: 16000
  secret_key: placeholder
tts:
  provider: aliyun
  speed: 1.2
  volume: 5
  emotion: happy
llm:
  system_prompt: be brief
  siliconflow:
    api_key: placeholder
    model: qwen
call:
  break_on_vad: true
database:
  dsn: sqlite:///robots.db
big_model:
  search_api_url: http://localhost/search
unknown_section:
  whatever: 1
"""


def write(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_full_config(tmp_path):
    cfg = load_config(write(tmp_path, SAMPLE))
    assert cfg.server.port == "8080"
    assert cfg.backend.url == "ws://localhost:8081"
    assert cfg.backend.call_type == "webrtc"
    assert cfg.asr.sample_rate == 16000
    assert cfg.asr.secret_key == "placeholder"
    assert cfg.tts.speed == pytest.approx(1.2)
    assert cfg.tts.emotion_category == "happy"
    assert cfg.llm.silicon_flow.model == "qwen"
    assert cfg.llm.system_prompt == "be brief"
    assert cfg.call.break_on_vad is True
    assert cfg.database.dsn == "sqlite:///robots.db"
    assert cfg.big_model.search_api_url == "http://localhost/search"


def test_empty_file_gives_defaults(tmp_path):
    assert load_config(write(tmp_path, "")) == Config()


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="failed to read config file"):
        load_config(tmp_path / "absent.yaml")


def test_invalid_yaml(tmp_path):
    with pytest.raises(ConfigError, match="failed to unmarshal config"):
        load_config(write(tmp_path, "server: [unclosed"))


def test_string_into_integer_rejected(tmp_path):
    with pytest.raises(ConfigError, match="failed to unmarshal config"):
        load_config(write(tmp_path, "asr:\n  sample_rate: fast\n"))


def test_negative_unsigned_rejected():
    with pytest.raises(ConfigError):
        config_from_dict({"asr": {"sample_rate": -1}})


def test_negative_signed_accepted():
    assert config_from_dict({"tts": {"volume": -3}}).tts.volume == -3


def test_bool_field_requires_bool():
    with pytest.raises(ConfigError):
        config_from_dict({"call": {"record": "yes please"}})


def test_section_must_be_mapping():
    with pytest.raises(ConfigError):
        config_from_dict({"server": ["a"]})
    with pytest.raises(ConfigError):
        config_from_dict(["not", "a", "mapping"])


def test_none_and_null_sections():
    assert config_from_dict(None) == Config()
    assert config_from_dict({"asr": None}).asr == ASRConfig()


def test_scalar_bool_into_string():
    assert config_from_dict({"audio": {"codec": True}}).audio.codec == "true"