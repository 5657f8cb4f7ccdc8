import json

import pytest

from voicebridge.protocol import (
    AcceptCommand,
    AnswerEvent,
    AsrFinalEvent,
    CallOption,
    CandidateCommand,
    ASROption,
    ErrorEvent,
    HangupCommand,
    HistoryCommand,
    IncomingEvent,
    InviteCommand,
    MetricsEvent,
    MuteCommand,
    OtherEvent,
    PlayCommand,
    ReferCommand,
    ReferOption,
    RejectCommand,
    RingingEvent,
    SimpleCommand,
    TtsCommand,
    TTSOption,
    UnmuteCommand,
    encode_command,
    event_from_json,
    to_wire,
)


def test_simple_command_wire_text():
    assert encode_command(SimpleCommand("interrupt")) == '{"command":"interrupt"}'


def test_invite_keeps_empty_option_object():
    assert to_wire(InviteCommand()) == {"command": "invite", "option": {}}


def test_invite_option_uses_wire_names():
    option = CallOption(offer="v=0", caller="frontend", callee="rust", asr=ASROption(provider="tencent", sample_rate=16000))
    wire = json.loads(encode_command(InviteCommand(option=option)))
    assert wire["option"]["offer"] == "v=0"
    assert wire["option"]["asr"] == {"provider": "tencent", "sampleRate": 16000}
    assert "tts" not in wire["option"]


def test_accept_command_name():
    assert to_wire(AcceptCommand())["command"] == "accept"


def test_tts_command_omits_empty_fields_but_keeps_text():
    assert to_wire(TtsCommand()) == {"command": "tts", "text": ""}


def test_tts_command_streaming_with_option():
    cmd = TtsCommand(text="hello", play_id="p1", streaming=True, end_of_stream=True, option=TTSOption(speaker="s1", speed=1.5))
    assert to_wire(cmd) == {
        "command": "tts",
        "text": "hello",
        "playId": "p1",
        "streaming": True,
        "endOfStream": True,
        "option": {"speed": 1.5, "speaker": "s1"},
    }


def test_mute_pointer_semantics():
    assert to_wire(MuteCommand()) == {"command": "mute"}
    assert to_wire(MuteCommand(track_id="")) == {"command": "mute", "trackId": ""}
    assert to_wire(UnmuteCommand(track_id="t1")) == {"command": "unmute", "trackId": "t1"}


def test_reject_code_omitted_when_zero():
    assert to_wire(RejectCommand(reason="busy")) == {"command": "reject", "reason": "busy"}
    assert to_wire(RejectCommand(reason="busy", code=486))["code"] == 486


def test_candidate_and_history_and_play():
    assert to_wire(CandidateCommand(candidates=["a", "b"]))["candidates"] == ["a", "b"]
    assert to_wire(HistoryCommand(speaker="user", text="hi")) == {"command": "history", "speaker": "user", "text": "hi"}
    assert to_wire(PlayCommand(url="http://localhost/a.wav", auto_hangup=True)) == {
        "command": "play",
        "url": "http://localhost/a.wav",
        "autoHangup": True,
    }


def test_refer_options_music_on_hold_key():
    cmd = ReferCommand(target="sip:bob@example.com", options=ReferOption(timeout=30, music_on_hold="hold.wav"))
    assert to_wire(cmd)["options"] == {"timeout": 30, "moh": "hold.wav"}


def test_hangup_command_fields():
    assert to_wire(HangupCommand(reason="bye", initiator="caller")) == {
        "command": "hangup",
        "reason": "bye",
        "initiator": "caller",
    }
    assert to_wire(HangupCommand()) == {"command": "hangup"}


def test_empty_extra_map_omitted():
    assert "extra" not in to_wire(CallOption(extra={}))
    assert to_wire(CallOption(extra={"k": "v"}))["extra"] == {"k": "v"}


def test_metrics_data_null_when_missing():
    assert to_wire(MetricsEvent())["data"] is None


def test_encode_rejects_non_command():
    with pytest.raises(TypeError):
        encode_command({"command": "x"})


def test_incoming_event_decoded():
    payload = json.dumps({"event": "incoming", "trackId": "t1", "timestamp": 5, "caller": "a", "callee": "b", "sdp": "v=0"})
    assert event_from_json("incoming", payload) == IncomingEvent(track_id="t1", timestamp=5, caller="a", callee="b", sdp="v=0")


def test_name_read_from_payload():
    event = event_from_json(None, b'{"event": "answer", "sdp": "x"}')
    assert event == AnswerEvent(sdp="x")


def test_unknown_event_returns_none():
    assert event_from_json(None, {"event": "mystery"}) is None
    assert event_from_json("eou", {"complete": True}) is None


def test_missing_fields_get_zero_values():
    assert event_from_json("ringing", {}) == RingingEvent()


def test_optional_times():
    with_times = event_from_json("asrFinal", {"text": "hi", "startTime": 0, "endTime": 9})
    assert with_times.start_time == 0
    assert with_times.end_time == 9
    without = event_from_json("asrFinal", {"text": "hi"})
    assert without.start_time is None
    assert "startTime" not in to_wire(without)


def test_error_code_optional():
    assert event_from_json("error", {"error": "boom", "code": 500}) == ErrorEvent(error="boom", code=500)
    assert event_from_json("error", {"error": "boom"}).code is None


def test_keys_match_case_insensitively():
    assert event_from_json("answer", {"TRACKID": "t9"}).track_id == "t9"


def test_wrong_types_raise():
    with pytest.raises(ValueError):
        event_from_json("answer", {"timestamp": "soon"})
    with pytest.raises(ValueError):
        event_from_json("ringing", {"earlyMedia": 1})
    with pytest.raises(ValueError):
        event_from_json("other", {"extra": {"k": 1}})


def test_invalid_json_raises():
    with pytest.raises(ValueError):
        event_from_json(None, "{not json")
    with pytest.raises(ValueError):
        event_from_json(None, "[1, 2]")
    with pytest.raises(ValueError):
        event_from_json(None, {"event": 3})


@pytest.mark.parametrize(
    "name, event",
    [
        ("asrFinal", AsrFinalEvent(track_id="t", timestamp=1, index=2, start_time=3, end_time=4, text="x")),
        ("metrics", MetricsEvent(timestamp=1, key="ttfb", duration=7, data={"a": [1, 2]})),
        ("other", OtherEvent(track_id="t", sender="s", extra={"k": "v"})),
    ],
)
def test_event_round_trip(name, event):
    assert event_from_json(name, json.dumps(to_wire(event))) == event