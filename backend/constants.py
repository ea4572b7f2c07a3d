"""
RELAY CONSTANTS
---------------
Single source of truth for protocol names and behavioral defaults.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Deployment-specific overrides live in config.AppConfig, which defaults to
  these values.
"""

from __future__ import annotations

from typing import Final

# =============================================================================
# Audio Format (PCM16 mono, sample rate agreed with the capture client)
# =============================================================================

AUDIO_SAMPLE_RATE_HZ: Final[int] = 16_000
AUDIO_CHANNELS: Final[int] = 1
AUDIO_SAMPLE_WIDTH_BYTES: Final[int] = 2  # PCM16 (signed 16-bit, little-endian)
AUDIO_BYTES_PER_SECOND: Final[int] = (
    AUDIO_SAMPLE_RATE_HZ * AUDIO_CHANNELS * AUDIO_SAMPLE_WIDTH_BYTES
)

# =============================================================================
# Pending audio (frames received before the upstream is ready)
# =============================================================================

PENDING_AUDIO_MAX_S: Final[float] = 30.0
PENDING_AUDIO_MAX_BYTES: Final[int] = int(PENDING_AUDIO_MAX_S * AUDIO_BYTES_PER_SECOND)

# =============================================================================
# Upstream (OpenAI Realtime transcription)
# =============================================================================

UPSTREAM_REALTIME_URL: Final[str] = "wss://api.openai.com/v1/realtime?intent=transcription"
UPSTREAM_BETA_HEADER: Final[str] = "realtime=v1"
UPSTREAM_HANDSHAKE_TIMEOUT_S: Final[float] = 10.0
UPSTREAM_MAX_MESSAGE_BYTES: Final[int] = 2**22

UPSTREAM_INPUT_AUDIO_FORMAT: Final[str] = "pcm16"

DEFAULT_TRANSCRIPTION_MODEL: Final[str] = "gpt-4o-transcribe"
DEFAULT_TRANSCRIPTION_LANGUAGE: Final[str] = "ja"

# Server-side voice activity detection
VAD_TYPE: Final[str] = "server_vad"
VAD_THRESHOLD: Final[float] = 0.5
VAD_PREFIX_PADDING_MS: Final[int] = 300
VAD_SILENCE_DURATION_MS: Final[int] = 500

# Upstream message types
UPSTREAM_SESSION_UPDATE: Final[str] = "transcription_session.update"
UPSTREAM_AUDIO_APPEND: Final[str] = "input_audio_buffer.append"
UPSTREAM_TRANSCRIPT_DELTA: Final[str] = "conversation.item.input_audio_transcription.delta"
UPSTREAM_TRANSCRIPT_COMPLETED: Final[str] = (
    "conversation.item.input_audio_transcription.completed"
)
UPSTREAM_ERROR: Final[str] = "error"

# =============================================================================
# Browser-facing protocol
# =============================================================================

CLIENT_START: Final[str] = "start"
CLIENT_START_ACK: Final[str] = "start_acknowledgement"
CLIENT_ERROR: Final[str] = "error"
CLIENT_CONNECTION_CLOSED: Final[str] = "connection_closed"

UPSTREAM_ERROR_FALLBACK_MESSAGE: Final[str] = "Transcription service returned an error"
UPSTREAM_CONNECT_FAILED_MESSAGE: Final[str] = (
    "Error while connecting to the transcription service"
)
UPSTREAM_CLOSED_MESSAGE: Final[str] = "Connection to the transcription service was closed"
MISSING_CREDENTIAL_MESSAGE: Final[str] = "No API key was provided"

# =============================================================================
# Batch transcription
# =============================================================================

BATCH_PROVIDER_OPENAI: Final[str] = "openai"
BATCH_PROVIDER_ELEVENLABS: Final[str] = "elevenlabs"

DEFAULT_OPENAI_BATCH_MODEL: Final[str] = "whisper-1"
DEFAULT_ELEVENLABS_BATCH_MODEL: Final[str] = "scribe_v1"

# =============================================================================
# Server
# =============================================================================

DEFAULT_PORT: Final[int] = 3001
LIVENESS_TEXT: Final[str] = "Audio Streaming Server is running"
