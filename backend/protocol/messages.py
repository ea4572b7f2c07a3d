# backend/protocol/messages.py
"""
JSON message helpers for both sides of the relay.

Browser → relay (text frames):
    {"type": "start", "apiKey": str, "model": str, "language"?: str}

Relay → browser (text frames):
    {"type": "start_acknowledgement"}
    {"text": str, "isFinal": bool}
    {"type": "error", "message": str}
    {"type": "connection_closed", "message": str}

Relay → upstream (text frames):
    {"type": "transcription_session.update", "session": {...}}
    {"type": "input_audio_buffer.append", "audio": <base64 PCM16>}

Upstream → relay (events of interest):
    conversation.item.input_audio_transcription.delta      (delta)
    conversation.item.input_audio_transcription.completed  (transcript)
    error                                                  (error.message)

Usage example:

    data = decode_json_object(payload)
    start = parse_start(data, default_model=..., default_language=...)

    event = translate_upstream_event(decode_json_object(raw))
    if isinstance(event, TranscriptEvent):
        await send(event.to_client())
"""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from constants import (
    CLIENT_CONNECTION_CLOSED,
    CLIENT_ERROR,
    CLIENT_START,
    CLIENT_START_ACK,
    UPSTREAM_AUDIO_APPEND,
    UPSTREAM_ERROR,
    UPSTREAM_ERROR_FALLBACK_MESSAGE,
    UPSTREAM_INPUT_AUDIO_FORMAT,
    UPSTREAM_SESSION_UPDATE,
    VAD_PREFIX_PADDING_MS,
    VAD_SILENCE_DURATION_MS,
    VAD_THRESHOLD,
    VAD_TYPE,
)


# -------------------------
# Exceptions
# -------------------------

class ProtocolError(Exception):
    """Base class for message protocol errors."""


class MessageDecodeError(ProtocolError):
    """
    Raised when a text frame is not a JSON object.

    The message is unsafe to route and must be dropped; the session itself
    stays up.
    """


# -------------------------
# Message types
# -------------------------

@dataclass(frozen=True)
class VadParams:
    """Server-side voice activity detection parameters."""
    type: str = VAD_TYPE
    threshold: float = VAD_THRESHOLD
    prefix_padding_ms: int = VAD_PREFIX_PADDING_MS
    silence_duration_ms: int = VAD_SILENCE_DURATION_MS


@dataclass(frozen=True)
class UpstreamConfig:
    """
    Configuration for one upstream transcription session.

    Immutable for the lifetime of the UpstreamSession it was given to.
    """
    model: str
    language: str
    vad: VadParams = field(default_factory=VadParams)
    noise_reduction: Optional[str] = None


@dataclass(frozen=True)
class StartRequest:
    """A parsed browser `start` control message."""
    api_key: Optional[str]
    model: str
    language: str


@dataclass(frozen=True)
class TranscriptEvent:
    """Transcript text translated from an upstream delta/completed event."""
    text: str
    is_final: bool

    def to_client(self) -> dict[str, Any]:
        return {"text": self.text, "isFinal": self.is_final}


@dataclass(frozen=True)
class UpstreamError:
    """An upstream-reported error, translated for the browser."""
    message: str


UpstreamEvent = Union[TranscriptEvent, UpstreamError]


# -------------------------
# Decoding
# -------------------------

def decode_json_object(payload: str | bytes) -> dict[str, Any]:
    """
    Parse a text frame into a JSON object.

    Raises:
        MessageDecodeError if the payload is not valid JSON or not an object.
    """
    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MessageDecodeError(f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MessageDecodeError(f"expected JSON object, got {type(data).__name__}")

    return data


def parse_start(
    data: dict[str, Any],
    *,
    default_model: str,
    default_language: str,
) -> StartRequest:
    """
    Extract credential, model and language from a `start` message.

    Missing or blank model/language fall back to the given defaults.
    A missing or blank apiKey yields api_key=None; the caller decides whether
    a server-side credential can stand in.
    """
    api_key = _non_blank(data.get("apiKey"))
    model = _non_blank(data.get("model")) or default_model
    language = _non_blank(data.get("language")) or default_language
    return StartRequest(api_key=api_key, model=model, language=language)


def translate_upstream_event(data: dict[str, Any]) -> Optional[UpstreamEvent]:
    """
    Map one upstream event to a relay-level event.

    Returns:
        TranscriptEvent for non-empty delta/completed text,
        UpstreamError for `error` events,
        None for anything else (including blank transcripts).
    """
    msg_type = data.get("type")
    if not isinstance(msg_type, str):
        return None

    if msg_type == UPSTREAM_ERROR:
        return UpstreamError(message=_upstream_error_message(data.get("error")))

    if msg_type.endswith(".delta"):
        text = _stripped(data.get("delta"))
        return TranscriptEvent(text=text, is_final=False) if text else None

    if msg_type.endswith(".completed"):
        text = _stripped(data.get("transcript"))
        return TranscriptEvent(text=text, is_final=True) if text else None

    return None


# -------------------------
# Builders
# -------------------------

def build_session_update(config: UpstreamConfig) -> dict[str, Any]:
    """The one session-configuration message sent after the upstream opens."""
    session: dict[str, Any] = {
        "input_audio_format": UPSTREAM_INPUT_AUDIO_FORMAT,
        "input_audio_transcription": {
            "model": config.model,
            "language": config.language,
        },
        "turn_detection": {
            "type": config.vad.type,
            "threshold": config.vad.threshold,
            "prefix_padding_ms": config.vad.prefix_padding_ms,
            "silence_duration_ms": config.vad.silence_duration_ms,
        },
    }
    if config.noise_reduction:
        session["input_audio_noise_reduction"] = {"type": config.noise_reduction}

    return {"type": UPSTREAM_SESSION_UPDATE, "session": session}


def build_audio_append(pcm_bytes: bytes) -> dict[str, Any]:
    """Wrap raw PCM bytes in the upstream append message."""
    return {
        "type": UPSTREAM_AUDIO_APPEND,
        "audio": base64.b64encode(pcm_bytes).decode("ascii"),
    }


def start_ack() -> dict[str, Any]:
    return {"type": CLIENT_START_ACK}


def error_message(message: str) -> dict[str, Any]:
    return {"type": CLIENT_ERROR, "message": message}


def connection_closed_message(message: str) -> dict[str, Any]:
    return {"type": CLIENT_CONNECTION_CLOSED, "message": message}


def is_start(data: dict[str, Any]) -> bool:
    return data.get("type") == CLIENT_START


# -------------------------
# Low-level helpers
# -------------------------

def _stripped(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _non_blank(value: Any) -> Optional[str]:
    text = _stripped(value)
    return text or None


def _upstream_error_message(error: Any) -> str:
    if isinstance(error, dict):
        message = _stripped(error.get("message"))
        if message:
            return message
    elif isinstance(error, str) and error.strip():
        return error.strip()
    return UPSTREAM_ERROR_FALLBACK_MESSAGE
