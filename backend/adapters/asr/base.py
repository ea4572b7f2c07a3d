"""
Transcription capability contracts.

This module defines the *interfaces only*: no sockets, retries, buffering or
provider details live here.

Two variants of one capability:
- StreamingTranscriber: a long-lived upstream connection fed with PCM frames,
  emitting transcript events asynchronously through owner callbacks.
- BatchTranscriber: one complete recorded clip in, one transcript out.

Callers pick a variant by the shape of their input, never by branching on a
flag throughout the call stack.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from audio.frames import AudioFrame
from protocol.messages import UpstreamConfig


class TranscriptionError(Exception):
    """A transcription provider failed to produce a result."""


@dataclass(frozen=True)
class WordTiming:
    """Per-word timing returned by providers that support it."""
    word: str
    start: float
    end: float
    confidence: Optional[float] = None


@dataclass(frozen=True)
class BatchTranscript:
    """Result of a one-shot batch transcription."""
    text: str
    provider: str
    model: str
    words: tuple[WordTiming, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "text": self.text,
            "provider": self.provider,
            "model": self.model,
            "words": [
                {
                    "word": w.word,
                    "start": w.start,
                    "end": w.end,
                    "confidence": w.confidence,
                }
                for w in self.words
            ],
        }


class StreamingTranscriber(ABC):
    """
    Abstract interface for a streaming transcription session.

    Implementations are responsible for:
    - Opening and configuring one upstream connection via connect()
    - Accepting raw PCM16 frames via send_audio()
    - Reporting readiness, transcripts, errors and remote closure through the
      callbacks supplied by their owner
    - Idempotent close()

    Non-responsibilities:
    - No buffering of audio that arrives before readiness (owner's job)
    - No direct interaction with the browser connection
    """

    @property
    @abstractmethod
    def is_ready(self) -> bool:
        """True once the session is configured and accepts audio."""
        raise NotImplementedError

    @property
    @abstractmethod
    def is_closed(self) -> bool:
        """True once the session has reached its terminal state."""
        raise NotImplementedError

    @abstractmethod
    async def connect(self, config: UpstreamConfig, credential: str) -> None:
        """
        Open and configure the upstream connection.

        Readiness is signalled only after the configuration message is sent.
        Failures are reported to the owner, not raised.
        """
        raise NotImplementedError

    @abstractmethod
    async def send_audio(self, frame: AudioFrame) -> None:
        """
        Forward one raw audio frame upstream.

        Contract:
        - Must not raise if the session is not ready; log and drop instead.
        """
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        """
        Close the upstream connection.

        Contract:
        - close() MUST be idempotent.
        - A local close never triggers the owner's remote-closed callback.
        """
        raise NotImplementedError


class BatchTranscriber(ABC):
    """
    Abstract interface for one-shot clip transcription.

    The audio container (webm, wav, ...) is passed through to the provider
    untouched; nothing is decoded locally.
    """

    provider: str = ""

    @abstractmethod
    async def transcribe(
        self,
        audio: bytes,
        *,
        filename: str,
        content_type: Optional[str] = None,
        model: Optional[str] = None,
        language: Optional[str] = None,
    ) -> BatchTranscript:
        """
        Transcribe one complete clip.

        Raises:
            TranscriptionError if the provider call fails.
        """
        raise NotImplementedError
