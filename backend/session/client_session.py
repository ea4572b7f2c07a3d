"""
Client session container.

- One per inbound browser connection
- Owned by RelayServer, mutated by SessionGateway
- NOT a state machine (the upstream lifecycle lives in UpstreamSession)
- Contains no routing logic
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Optional

from adapters.asr.base import StreamingTranscriber
from audio.queues import PendingAudioQueue
from constants import (
    DEFAULT_TRANSCRIPTION_LANGUAGE,
    DEFAULT_TRANSCRIPTION_MODEL,
    PENDING_AUDIO_MAX_BYTES,
)


# ---------------------------------------------------------------------
# ClientSession
# ---------------------------------------------------------------------


@dataclass
class ClientSession:
    """Mutable runtime container for a single browser connection."""

    # ------------------------------------------------------------------
    # Identity / lifecycle
    # ------------------------------------------------------------------

    client_id: str
    created_at: float = field(default_factory=time.time)

    # ------------------------------------------------------------------
    # Inbound (browser) side
    # ------------------------------------------------------------------

    websocket: Any = None  # Type: fastapi.WebSocket in practice
    connected: bool = True

    # ------------------------------------------------------------------
    # Upstream side
    # ------------------------------------------------------------------

    upstream: Optional[StreamingTranscriber] = None
    transcription_model: str = DEFAULT_TRANSCRIPTION_MODEL
    language: str = DEFAULT_TRANSCRIPTION_LANGUAGE

    # True once the pending queue has been flushed to a ready upstream.
    # Audio is forwarded directly only while this is set.
    streaming: bool = False

    # ------------------------------------------------------------------
    # Audio received before the upstream is ready
    # ------------------------------------------------------------------

    pending_audio_max_bytes: int = PENDING_AUDIO_MAX_BYTES
    pending_audio: PendingAudioQueue = field(init=False)

    frames_received: int = 0

    def __post_init__(self) -> None:
        self.pending_audio = PendingAudioQueue(max_bytes=self.pending_audio_max_bytes)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def has_active_upstream(self) -> bool:
        """True while an upstream exists and has not reached CLOSED."""
        return self.upstream is not None and not self.upstream.is_closed

    def attach_upstream(self, upstream: StreamingTranscriber) -> None:
        """
        Attach a fresh upstream session.

        Called by SessionGateway on `start`. Resets the streaming flag so
        audio is buffered until the new upstream reports ready.
        """
        self.upstream = upstream
        self.streaming = False

    def log_context(self) -> dict[str, Any]:
        """
        Return standard logging context for this session.
        """
        upstream_state = getattr(self.upstream, "state", None)
        return {
            "client_id": self.client_id,
            "connected": self.connected,
            "streaming": self.streaming,
            "upstream_state": getattr(upstream_state, "value", upstream_state),
            "pending_audio": self.pending_audio.snapshot(),
        }
