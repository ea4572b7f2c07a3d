"""
Session gateway (one per browser connection).

Responsibilities:
- Owns the ClientSession routing for one inbound connection
- Routes inbound JSON control messages (`start`) -> upstream creation
- Routes inbound binary audio frames -> upstream, or the pending queue while
  the upstream is not ready
- Flushes the pending queue exactly once when the upstream reports ready
- Writes transcripts, errors and closed notices back to the browser
- Tears the upstream down when the browser goes away

NOT responsible for:
- Accepting connections or the ClientId table (RelayServer)
- Upstream protocol details (UpstreamSession)
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Optional, TYPE_CHECKING

from adapters.asr.base import StreamingTranscriber
from adapters.asr.openai_realtime import UpstreamSession
from audio.frames import AudioFrame
from constants import MISSING_CREDENTIAL_MESSAGE, UPSTREAM_CLOSED_MESSAGE
from observability.logger import log_event, now_ms
from observability.metrics import start_timer, stop_timer
from protocol.messages import (
    MessageDecodeError,
    TranscriptEvent,
    UpstreamConfig,
    connection_closed_message,
    decode_json_object,
    error_message,
    is_start,
    parse_start,
    start_ack,
)
from session.client_session import ClientSession

if TYPE_CHECKING:
    from config import AppConfig


# Builds one StreamingTranscriber from keyword arguments:
# client_id, on_ready, on_transcript, on_error, on_closed.
UpstreamFactory = Callable[..., StreamingTranscriber]


# ------------------------------------------------------------------
# SessionGateway
# ------------------------------------------------------------------

class SessionGateway:
    """
    One gateway == one browser connection == at most one active upstream.

    Browser writes are serialized through a per-connection lock, so messages
    reach the browser in the order they were produced.
    """

    def __init__(
        self,
        *,
        config: AppConfig,
        session: ClientSession,
        upstream_factory: UpstreamFactory | None = None,
    ) -> None:
        self._config = config
        self.session = session
        self._upstream_factory = upstream_factory or self._build_upstream

        self._send_lock = asyncio.Lock()
        self._connect_task: Optional[asyncio.Task[None]] = None
        self._flushing = False
        self._torn_down = False

    # ------------------------------------------------------------------
    # Inbound: browser -> relay
    # ------------------------------------------------------------------

    async def on_json_message(self, payload: str) -> None:
        """Route one inbound text frame."""
        try:
            data = decode_json_object(payload)
        except MessageDecodeError as e:
            log_event({
                "ts_ms": now_ms(),
                "level": "warning",
                "event_type": "JSON_DECODE_ERROR",
                "client_id": self.session.client_id,
                "error": str(e),
                "payload_preview": payload[:100],
            })
            await self._send(error_message(f"Invalid control message: {e}"))
            return

        if is_start(data):
            await self._handle_start(data)
            return

        log_event({
            "ts_ms": now_ms(),
            "level": "warning",
            "event_type": "UNKNOWN_MESSAGE_TYPE",
            "client_id": self.session.client_id,
            "msg_type": data.get("type"),
        })

    async def on_binary_message(self, payload: bytes) -> None:
        """
        Handle one inbound binary audio frame.

        - Streaming (queue already flushed, upstream ready): forward now
        - Otherwise: append to the pending queue in arrival order
        """
        if not self.session.connected:
            log_event({
                "ts_ms": now_ms(),
                "level": "warning",
                "event_type": "BINARY_AFTER_DISCONNECT",
                "client_id": self.session.client_id,
                "payload_len": len(payload),
            })
            return

        self.session.frames_received += 1
        frame = AudioFrame(
            pcm_bytes=bytes(payload),
            sequence_num=self.session.frames_received,
            ts_ms=now_ms(),
        )

        upstream = self.session.upstream
        if self.session.streaming and upstream is not None and upstream.is_ready:
            await upstream.send_audio(frame)
            return

        dropped = self.session.pending_audio.enqueue(frame)
        if dropped:
            log_event({
                "ts_ms": now_ms(),
                "level": "warning",
                "event_type": "PENDING_AUDIO_DROPPED",
                "client_id": self.session.client_id,
                "seq_num": frame.sequence_num,
                "dropped_frames": dropped,
                "queue": self.session.pending_audio.snapshot(),
            })

    async def on_disconnect(self, reason: str | None = None) -> None:
        """
        Tear down the per-client pipeline.

        Closes the upstream (if any) in the same step. Idempotent.
        """
        if self._torn_down:
            return
        self._torn_down = True
        self.session.connected = False

        task = self._connect_task
        self._connect_task = None
        if task is not None and not task.done():
            task.cancel()

        queued = len(self.session.pending_audio)
        self.session.pending_audio.clear()
        self.session.streaming = False

        upstream = self.session.upstream
        if upstream is not None and not upstream.is_closed:
            await upstream.close()

        log_event({
            "ts_ms": now_ms(),
            "event_type": "CLIENT_TORN_DOWN",
            "client_id": self.session.client_id,
            "reason": reason,
            "frames_received": self.session.frames_received,
            "pending_frames_discarded": queued,
        })

    # ------------------------------------------------------------------
    # Control handling
    # ------------------------------------------------------------------

    async def _handle_start(self, data: dict[str, Any]) -> None:
        start = parse_start(
            data,
            default_model=self._config.transcription_model,
            default_language=self._config.transcription_language,
        )

        if self.session.has_active_upstream():
            log_event({
                "ts_ms": now_ms(),
                "event_type": "START_IGNORED_UPSTREAM_ACTIVE",
                "client_id": self.session.client_id,
            })
            await self._send(start_ack())
            return

        credential = start.api_key or self._config.openai_api_key
        if not credential:
            log_event({
                "ts_ms": now_ms(),
                "level": "warning",
                "event_type": "START_WITHOUT_CREDENTIAL",
                "client_id": self.session.client_id,
            })
            await self._send(start_ack())
            await self._send(error_message(MISSING_CREDENTIAL_MESSAGE))
            return

        self.session.transcription_model = start.model
        self.session.language = start.language
        upstream_config = UpstreamConfig(
            model=start.model,
            language=start.language,
            noise_reduction=self._config.noise_reduction,
        )

        upstream = self._upstream_factory(
            client_id=self.session.client_id,
            on_ready=self._on_upstream_ready,
            on_transcript=self._on_upstream_transcript,
            on_error=self._on_upstream_error,
            on_closed=self._on_upstream_closed,
        )
        self.session.attach_upstream(upstream)

        log_event({
            "ts_ms": now_ms(),
            "event_type": "UPSTREAM_REQUESTED",
            "client_id": self.session.client_id,
            "model": start.model,
            "language": start.language,
            "credential_source": "client" if start.api_key else "server",
        })

        # Ack before connecting so it always precedes any handshake error.
        await self._send(start_ack())

        self._connect_task = asyncio.create_task(upstream.connect(upstream_config, credential))
        self._connect_task.add_done_callback(self._log_connect_task_failure)

    def _build_upstream(self, **callbacks: Any) -> StreamingTranscriber:
        return UpstreamSession(
            url=self._config.realtime_url,
            handshake_timeout_s=self._config.handshake_timeout_s,
            **callbacks,
        )

    def _log_connect_task_failure(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log_event({
                "ts_ms": now_ms(),
                "level": "error",
                "event_type": "UPSTREAM_CONNECT_TASK_FAILED",
                "client_id": self.session.client_id,
                "exception": type(exc).__name__,
                "message": str(exc),
            })

    # ------------------------------------------------------------------
    # Upstream callbacks
    # ------------------------------------------------------------------

    async def _on_upstream_ready(self) -> None:
        """
        Flush the pending queue in arrival order, then start streaming.

        Frames that arrive while the flush awaits are appended to the queue
        and drained by the same loop, so nothing received later can overtake
        a queued frame. A repeated readiness signal is a no-op.
        """
        if self.session.streaming or self._flushing:
            log_event({
                "ts_ms": now_ms(),
                "level": "debug",
                "event_type": "DUPLICATE_READY_IGNORED",
                "client_id": self.session.client_id,
            })
            return

        upstream = self.session.upstream
        if upstream is None or not upstream.is_ready:
            return

        self._flushing = True
        flushed = 0
        timer_id = start_timer("pending_audio_flush", client_id=self.session.client_id)
        try:
            while True:
                frame = self.session.pending_audio.dequeue()
                if frame is None:
                    break
                await upstream.send_audio(frame)
                flushed += 1

            if upstream.is_ready and self.session.upstream is upstream:
                self.session.streaming = True
        finally:
            self._flushing = False
            stop_timer(timer_id, details={"frames": flushed})

        log_event({
            "ts_ms": now_ms(),
            "event_type": "PENDING_AUDIO_FLUSHED",
            "client_id": self.session.client_id,
            "frames": flushed,
            "streaming": self.session.streaming,
        })

    async def _on_upstream_transcript(self, event: TranscriptEvent) -> None:
        await self._send(event.to_client())

    async def _on_upstream_error(self, message: str) -> None:
        await self._send(error_message(message))

    async def _on_upstream_closed(self) -> None:
        self.session.streaming = False
        log_event({
            "ts_ms": now_ms(),
            "level": "warning",
            "event_type": "UPSTREAM_DROPPED",
            **self.session.log_context(),
        })
        await self._send(connection_closed_message(UPSTREAM_CLOSED_MESSAGE))

    # ------------------------------------------------------------------
    # Outbound: relay -> browser
    # ------------------------------------------------------------------

    async def _send(self, msg: dict[str, Any]) -> bool:
        """
        Write one JSON message to the browser.

        Returns False (and drops the message) if the browser is gone.
        """
        if not self.session.connected or self.session.websocket is None:
            log_event({
                "ts_ms": now_ms(),
                "level": "debug",
                "event_type": "CLIENT_SEND_SKIPPED",
                "client_id": self.session.client_id,
                "msg_type": msg.get("type", "transcript"),
            })
            return False

        async with self._send_lock:
            try:
                await self.session.websocket.send_text(json.dumps(msg, ensure_ascii=False))
            except Exception as e:  # pylint: disable=broad-exception-caught
                log_event({
                    "ts_ms": now_ms(),
                    "level": "warning",
                    "event_type": "CLIENT_SEND_FAILED",
                    "client_id": self.session.client_id,
                    "exception": type(e).__name__,
                    "message": str(e),
                })
                return False
        return True
