"""
ElevenLabs batch transcription adapter (Scribe).

Returns the transcript plus per-word timings. Spacing and audio-event tokens
are filtered out of the word list.
"""

from __future__ import annotations

import math
from typing import Any, Optional

import httpx
from elevenlabs.client import AsyncElevenLabs
from elevenlabs.core.api_error import ApiError

from adapters.asr.base import (
    BatchTranscriber,
    BatchTranscript,
    TranscriptionError,
    WordTiming,
)
from constants import (
    BATCH_PROVIDER_ELEVENLABS,
    DEFAULT_ELEVENLABS_BATCH_MODEL,
    DEFAULT_TRANSCRIPTION_LANGUAGE,
)
from observability.metrics import timed


class ElevenLabsBatchTranscriber(BatchTranscriber):
    """Batch transcriber backed by an injected AsyncElevenLabs client."""

    provider = BATCH_PROVIDER_ELEVENLABS

    def __init__(
        self,
        *,
        client: AsyncElevenLabs,
        default_model: str = DEFAULT_ELEVENLABS_BATCH_MODEL,
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
                response = await self._client.speech_to_text.convert(
                    file=file,
                    model_id=model,
                    language_code=language,
                )
        except (ApiError, httpx.HTTPError) as e:
            raise TranscriptionError(f"elevenlabs transcription failed: {e}") from e

        return BatchTranscript(
            text=(getattr(response, "text", "") or "").strip(),
            provider=self.provider,
            model=model,
            words=tuple(_word_timings(getattr(response, "words", None) or ())),
        )


def _word_timings(words: Any) -> list[WordTiming]:
    out: list[WordTiming] = []
    for w in words:
        if getattr(w, "type", "word") != "word":
            continue
        logprob = getattr(w, "logprob", None)
        out.append(
            WordTiming(
                word=w.text,
                start=float(w.start or 0.0),
                end=float(w.end or 0.0),
                confidence=math.exp(logprob) if logprob is not None else None,
            )
        )
    return out
