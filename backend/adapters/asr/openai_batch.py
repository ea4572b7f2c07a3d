"""
OpenAI batch transcription adapter.

One recorded clip in, one transcript out, via the audio transcriptions API.
The clip container is forwarded as-is; nothing is decoded locally.
"""

from __future__ import annotations

from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from adapters.asr.base import BatchTranscriber, BatchTranscript, TranscriptionError
from constants import (
    BATCH_PROVIDER_OPENAI,
    DEFAULT_OPENAI_BATCH_MODEL,
    DEFAULT_TRANSCRIPTION_LANGUAGE,
)
from observability.metrics import timed


class OpenAIBatchTranscriber(BatchTranscriber):
    """Batch transcriber backed by an injected AsyncOpenAI client."""

    provider = BATCH_PROVIDER_OPENAI

    def __init__(
        self,
        *,
        client: AsyncOpenAI,
        default_model: str = DEFAULT_OPENAI_BATCH_MODEL,
        default_language: str = DEFAULT_TRANSCRIPTION_LANGUAGE,
    ) -> None:
        self._client = client
        self._default_model = default_model
        self._default_language = default_language

    async def transcribe(
        self,
        audio: bytes,
        *,
        filename: str,
        content_type: Optional[str] = None,
        model: Optional[str] = None,
        language: Optional[str] = None,
    ) -> BatchTranscript:
        model = model or self._default_model
        language = language or self._default_language
        file = (filename, audio, content_type) if content_type else (filename, audio)

        try:
            with timed(
                "batch_transcription",
                details={"provider": self.provider, "model": model, "bytes": len(audio)},
            ):
                response = await self._client.audio.transcriptions.create(
                    model=model,
                    file=file,
                    language=language,
                )
        except OpenAIError as e:
            raise TranscriptionError(f"openai transcription failed: {e}") from e

        return BatchTranscript(
            text=(response.text or "").strip(),
            provider=self.provider,
            model=model,
        )
