"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No relay logic
- No protocol constants (see constants.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    BATCH_PROVIDER_OPENAI,
    DEFAULT_PORT,
    DEFAULT_TRANSCRIPTION_LANGUAGE,
    DEFAULT_TRANSCRIPTION_MODEL,
    PENDING_AUDIO_MAX_BYTES,
    UPSTREAM_HANDSHAKE_TIMEOUT_S,
    UPSTREAM_REALTIME_URL,
)


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the relay server, gateways and batch transcribers.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    cors_origins: tuple[str, ...] = ("*",)
    # uvicorn auto-reload for the `transcription-relay` runner; opt-in only.
    reload: bool = False

    # ------------------------------------------------------------------
    # Streaming transcription (upstream)
    # ------------------------------------------------------------------

    # Server-side fallback; browsers normally forward their own key.
    openai_api_key: str | None = None
    realtime_url: str = UPSTREAM_REALTIME_URL
    transcription_model: str = DEFAULT_TRANSCRIPTION_MODEL
    transcription_language: str = DEFAULT_TRANSCRIPTION_LANGUAGE
    noise_reduction: str | None = None
    handshake_timeout_s: float = UPSTREAM_HANDSHAKE_TIMEOUT_S
    pending_audio_max_bytes: int = PENDING_AUDIO_MAX_BYTES

    # ------------------------------------------------------------------
    # Batch transcription
    # ------------------------------------------------------------------

    batch_provider: str = BATCH_PROVIDER_OPENAI
    batch_model: str | None = None
    elevenlabs_api_key: str | None = None

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a numeric variable cannot be parsed.
        """
        origins = os.environ.get("CORS_ORIGINS", "*")

        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            host=os.environ.get("HOST", "0.0.0.0"),
            port=int(os.environ.get("PORT", str(DEFAULT_PORT))),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
            reload=os.environ.get("RELOAD", "").strip().lower() in ("1", "true", "yes"),

            openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
            realtime_url=os.environ.get("REALTIME_URL", UPSTREAM_REALTIME_URL),
            transcription_model=os.environ.get(
                "TRANSCRIPTION_MODEL", DEFAULT_TRANSCRIPTION_MODEL
            ),
            transcription_language=os.environ.get(
                "TRANSCRIPTION_LANGUAGE", DEFAULT_TRANSCRIPTION_LANGUAGE
            ),
            noise_reduction=os.environ.get("NOISE_REDUCTION") or None,
            handshake_timeout_s=float(
                os.environ.get("UPSTREAM_HANDSHAKE_TIMEOUT_S", str(UPSTREAM_HANDSHAKE_TIMEOUT_S))
            ),
            pending_audio_max_bytes=int(
                os.environ.get("PENDING_AUDIO_MAX_BYTES", str(PENDING_AUDIO_MAX_BYTES))
            ),

            batch_provider=os.environ.get("BATCH_PROVIDER", BATCH_PROVIDER_OPENAI).lower(),
            batch_model=os.environ.get("BATCH_MODEL") or None,
            elevenlabs_api_key=os.environ.get("ELEVENLABS_API_KEY") or None,
        )
