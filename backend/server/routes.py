"""
Route registration for the transcription relay.

Responsibilities:
- Define HTTP and WebSocket endpoints
- Wire the relay server to the WebSocket lifecycle
- Pull dependencies from app.state
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, File, Form, HTTPException, UploadFile, WebSocket
from fastapi.responses import PlainTextResponse

from adapters.asr.base import BatchTranscriber, TranscriptionError
from constants import BATCH_PROVIDER_ELEVENLABS, BATCH_PROVIDER_OPENAI, LIVENESS_TEXT
from observability.logger import log_event, now_ms
from server.relay import RelayServer


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""

    @app.get("/", response_class=PlainTextResponse)
    async def liveness() -> str: # pyright: ignore[reportUnusedFunction]
        return LIVENESS_TEXT

    @app.get("/health")
    async def health() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        relay: RelayServer = app.state.relay
        return {"status": "ok", "clients": relay.active_count}

    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        relay: RelayServer = app.state.relay
        await relay.serve(ws)

    # Browser prototypes connect to the bare host.
    @app.websocket("/")
    async def websocket_root(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        relay: RelayServer = app.state.relay
        await relay.serve(ws)

    @app.post("/transcribe")
    async def transcribe( # pyright: ignore[reportUnusedFunction]
        file: UploadFile = File(...),
        model: str | None = Form(None),
        language: str | None = Form(None),
        provider: str | None = Form(None),
    ) -> dict[str, Any]:
        transcriber = _select_transcriber(app, provider)

        audio = await file.read()
        if not audio:
            raise HTTPException(status_code=400, detail="Uploaded audio is empty")

        try:
            result = await transcriber.transcribe(
                audio,
                filename=file.filename or "audio.webm",
                content_type=file.content_type,
                model=model or None,
                language=language or None,
            )
        except TranscriptionError as exc:
            log_event({
                "ts_ms": now_ms(),
                "level": "error",
                "event_type": "BATCH_TRANSCRIPTION_FAILED",
                "provider": transcriber.provider,
                "message": str(exc),
            })
            raise HTTPException(status_code=502, detail="Failed to transcribe audio") from exc

        log_event({
            "ts_ms": now_ms(),
            "event_type": "BATCH_TRANSCRIPTION_DONE",
            "provider": result.provider,
            "model": result.model,
            "bytes": len(audio),
            "chars": len(result.text),
        })
        return result.to_dict()


def _select_transcriber(app: FastAPI, provider: str | None) -> BatchTranscriber:
    transcribers: dict[str, BatchTranscriber] = app.state.batch_transcribers
    name = (provider or app.state.config.batch_provider).lower()

    if name not in (BATCH_PROVIDER_OPENAI, BATCH_PROVIDER_ELEVENLABS):
        raise HTTPException(status_code=400, detail=f"Unknown provider: {name}")

    transcriber = transcribers.get(name)
    if transcriber is None:
        raise HTTPException(status_code=503, detail=f"Provider not configured: {name}")
    return transcriber
