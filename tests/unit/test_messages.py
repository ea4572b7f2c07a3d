# pylint: disable=missing-module-docstring,missing-function-docstring

import base64

import pytest

from constants import (
    UPSTREAM_ERROR_FALLBACK_MESSAGE,
    UPSTREAM_TRANSCRIPT_COMPLETED,
    UPSTREAM_TRANSCRIPT_DELTA,
)
from protocol.messages import (
    MessageDecodeError,
    TranscriptEvent,
    UpstreamConfig,
    UpstreamError,
    build_audio_append,
    build_session_update,
    connection_closed_message,
    decode_json_object,
    error_message,
    parse_start,
    start_ack,
    translate_upstream_event,
)


# ---------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------

def test_decode_rejects_non_json():
    with pytest.raises(MessageDecodeError):
        decode_json_object("hello there")


def test_decode_rejects_non_object_json():
    with pytest.raises(MessageDecodeError):
        decode_json_object("[1, 2, 3]")


def test_decode_accepts_bytes():
    assert decode_json_object(b'{"type": "start"}') == {"type": "start"}


# ---------------------------------------------------------------------
# start
# ---------------------------------------------------------------------

def test_parse_start_uses_message_values():
    start = parse_start(
        {"type": "start", "apiKey": "sk-test", "model": "gpt-4o-mini-transcribe", "language": "en"},
        default_model="gpt-4o-transcribe",
        default_language="ja",
    )

    assert start.api_key == "sk-test"
    assert start.model == "gpt-4o-mini-transcribe"
    assert start.language == "en"


def test_parse_start_falls_back_to_defaults():
    start = parse_start(
        {"type": "start", "apiKey": "  ", "model": ""},
        default_model="gpt-4o-transcribe",
        default_language="ja",
    )

    assert start.api_key is None
    assert start.model == "gpt-4o-transcribe"
    assert start.language == "ja"


# ---------------------------------------------------------------------
# Upstream -> browser translation
# ---------------------------------------------------------------------

def test_delta_translates_to_partial():
    event = translate_upstream_event({"type": UPSTREAM_TRANSCRIPT_DELTA, "delta": "こん"})

    assert event == TranscriptEvent(text="こん", is_final=False)
    assert event.to_client() == {"text": "こん", "isFinal": False}


def test_completed_translates_to_final():
    event = translate_upstream_event({"type": UPSTREAM_TRANSCRIPT_COMPLETED, "transcript": " こんにちは "})

    assert event == TranscriptEvent(text="こんにちは", is_final=True)
    assert event.to_client() == {"text": "こんにちは", "isFinal": True}


@pytest.mark.parametrize(
    "data",
    [
        {"type": UPSTREAM_TRANSCRIPT_DELTA, "delta": "   "},
        {"type": UPSTREAM_TRANSCRIPT_DELTA},
        {"type": UPSTREAM_TRANSCRIPT_COMPLETED, "transcript": "\n"},
        {"type": UPSTREAM_TRANSCRIPT_COMPLETED, "transcript": None},
    ],
)
def test_blank_transcripts_are_suppressed(data):
    assert translate_upstream_event(data) is None


def test_error_uses_upstream_message():
    event = translate_upstream_event({"type": "error", "error": {"message": "invalid_api_key"}})

    assert event == UpstreamError(message="invalid_api_key")


def test_error_without_message_uses_fallback():
    event = translate_upstream_event({"type": "error"})

    assert event == UpstreamError(message=UPSTREAM_ERROR_FALLBACK_MESSAGE)


@pytest.mark.parametrize(
    "data",
    [
        {"type": "transcription_session.created"},
        {"type": "input_audio_buffer.speech_started"},
        {"no_type": True},
        {"type": 42},
    ],
)
def test_other_events_are_ignored(data):
    assert translate_upstream_event(data) is None


# ---------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------

def test_session_update_declares_format_model_language_and_vad():
    msg = build_session_update(UpstreamConfig(model="gpt-4o-transcribe", language="ja"))

    assert msg == {
        "type": "transcription_session.update",
        "session": {
            "input_audio_format": "pcm16",
            "input_audio_transcription": {"model": "gpt-4o-transcribe", "language": "ja"},
            "turn_detection": {
                "type": "server_vad",
                "threshold": 0.5,
                "prefix_padding_ms": 300,
                "silence_duration_ms": 500,
            },
        },
    }


def test_session_update_includes_noise_reduction_when_configured():
    msg = build_session_update(
        UpstreamConfig(model="gpt-4o-transcribe", language="ja", noise_reduction="near_field")
    )

    assert msg["session"]["input_audio_noise_reduction"] == {"type": "near_field"}


def test_audio_append_base64_encodes_pcm():
    pcm = b"\x01\x00\xff\x7f"

    msg = build_audio_append(pcm)

    assert msg["type"] == "input_audio_buffer.append"
    assert base64.b64decode(msg["audio"]) == pcm


def test_client_control_messages():
    assert start_ack() == {"type": "start_acknowledgement"}
    assert error_message("boom") == {"type": "error", "message": "boom"}
    assert connection_closed_message("bye") == {"type": "connection_closed", "message": "bye"}
