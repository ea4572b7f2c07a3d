"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Initialize shared resources (relay server, batch transcription clients)
- Register routes
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from openai import AsyncOpenAI
from elevenlabs.client import AsyncElevenLabs

from adapters.asr.base import BatchTranscriber
from adapters.asr.elevenlabs_batch import ElevenLabsBatchTranscriber
from adapters.asr.openai_batch import OpenAIBatchTranscriber
from config import AppConfig
from constants import (
    BATCH_PROVIDER_ELEVENLABS,
    BATCH_PROVIDER_OPENAI,
    DEFAULT_ELEVENLABS_BATCH_MODEL,
    DEFAULT_OPENAI_BATCH_MODEL,
)
from observability import logger
from server.relay import RelayServer
from server.routes import register_routes
from session.gateway import UpstreamFactory


def create_app(
    config: AppConfig | None = None,
    *,
    upstream_factory: UpstreamFactory | None = None,
    batch_transcribers: dict[str, BatchTranscriber] | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with different configurations and fake upstreams
    - Environment-specific setup
    - ASGI server compatibility
    """
    config = config or AppConfig.load_from_env()
    logger.configure(config.log_level)

    app = FastAPI(title="Realtime Transcription Relay")

    app.state.config = config

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # One relay per process; sessions are per connection
    app.state.relay = RelayServer(config=config, upstream_factory=upstream_factory)

    app.state.batch_transcribers = (
        batch_transcribers if batch_transcribers is not None
        else build_batch_transcribers(config)
    )

    # Routes
    register_routes(app)

    return app


def build_batch_transcribers(config: AppConfig) -> dict[str, BatchTranscriber]:
    """
    Build a batch transcriber for every provider with a configured key.

    Providers without a key are simply absent; the route reports them as
    unavailable.
    """
    transcribers: dict[str, BatchTranscriber] = {}

    if config.openai_api_key:
        transcribers[BATCH_PROVIDER_OPENAI] = OpenAIBatchTranscriber(
            client=AsyncOpenAI(api_key=config.openai_api_key),
            default_model=_batch_model(config, BATCH_PROVIDER_OPENAI, DEFAULT_OPENAI_BATCH_MODEL),
            default_language=config.transcription_language,
        )

    if config.elevenlabs_api_key:
        transcribers[BATCH_PROVIDER_ELEVENLABS] = ElevenLabsBatchTranscriber(
            client=AsyncElevenLabs(api_key=config.elevenlabs_api_key),
            default_model=_batch_model(
                config, BATCH_PROVIDER_ELEVENLABS, DEFAULT_ELEVENLABS_BATCH_MODEL
            ),
            default_language=config.transcription_language,
        )

    return transcribers


def _batch_model(config: AppConfig, provider: str, fallback: str) -> str:
    # BATCH_MODEL only applies to the provider selected by BATCH_PROVIDER.
    if config.batch_model and config.batch_provider == provider:
        return config.batch_model
    return fallback
