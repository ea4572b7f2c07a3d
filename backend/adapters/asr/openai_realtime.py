"""
OpenAI Realtime transcription session (one per browser client).

Core model:
- The upstream WebSocket is CLIENT-scoped: opened on the browser's `start`,
  closed when the browser goes away.
- Exactly one `transcription_session.update` is sent after the socket opens.
  Readiness is signalled only after that message is out; the upstream rejects
  audio appended before its session is configured.
- Audio frames are re-encoded as base64 `input_audio_buffer.append` messages.
- Upstream events are translated into TranscriptEvent / UpstreamError and
  handed to the owner through awaited callbacks, in arrival order.

Design constraints:
- The session never talks to the browser connection directly.
- The session never buffers audio; the owner queues frames until ready.
- Upstream-reported errors do not close the connection; the owner decides.
- A local close() never fires on_closed; only a remote drop does.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable, Optional

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed

from adapters.asr.base import StreamingTranscriber
from adapters.asr.upstream_state import UpstreamState, check_transition
from audio.frames import AudioFrame
from constants import (
    UPSTREAM_BETA_HEADER,
    UPSTREAM_CONNECT_FAILED_MESSAGE,
    UPSTREAM_HANDSHAKE_TIMEOUT_S,
    UPSTREAM_MAX_MESSAGE_BYTES,
    UPSTREAM_REALTIME_URL,
)
from observability.logger import log_event, now_ms
from observability.metrics import timed
from protocol.messages import (
    MessageDecodeError,
    TranscriptEvent,
    UpstreamConfig,
    UpstreamError,
    build_audio_append,
    build_session_update,
    decode_json_object,
    translate_upstream_event,
)


ReadyCallback = Callable[[], Awaitable[None]]
TranscriptCallback = Callable[[TranscriptEvent], Awaitable[None]]
ErrorCallback = Callable[[str], Awaitable[None]]
ClosedCallback = Callable[[], Awaitable[None]]


class UpstreamSession(StreamingTranscriber):
    """
    Outbound Realtime transcription connection for a single browser client.

    Public interface:
    - connect(config, credential): open + configure, then signal ready
    - send_audio(frame): append one PCM frame
    - close(): idempotent teardown

    Owner callbacks (all awaited, never fire-and-forget):
    - on_ready(): after the session update is sent
    - on_transcript(event): non-empty delta / completed text
    - on_error(message): upstream `error` events and handshake failures
    - on_closed(): remote disconnect while READY
    """

    def __init__(
        self,
        *,
        client_id: str,
        on_ready: ReadyCallback,
        on_transcript: TranscriptCallback,
        on_error: ErrorCallback,
        on_closed: ClosedCallback,
        url: str = UPSTREAM_REALTIME_URL,
        handshake_timeout_s: float = UPSTREAM_HANDSHAKE_TIMEOUT_S,
        connector: Callable[..., Any] = ws_connect,
    ) -> None:
        self._client_id = client_id
        self._on_ready = on_ready
        self._on_transcript = on_transcript
        self._on_error = on_error
        self._on_closed = on_closed

        self._url = url
        self._handshake_timeout_s = handshake_timeout_s
        self._connector = connector

        self._state: UpstreamState = UpstreamState.IDLE
        self._ws: Any = None  # Type: websockets ClientConnection in practice
        self._recv_task: Optional[asyncio.Task[None]] = None

        self.frames_sent: int = 0

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> UpstreamState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is UpstreamState.READY

    @property
    def is_closed(self) -> bool:
        return self._state is UpstreamState.CLOSED

    def _transition(self, target: UpstreamState) -> None:
        previous = self._state
        self._state = check_transition(previous, target)
        log_event({
            "ts_ms": now_ms(),
            "level": "debug",
            "event_type": "UPSTREAM_STATE",
            "client_id": self._client_id,
            "from": previous.value,
            "to": target.value,
        })

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def connect(self, config: UpstreamConfig, credential: str) -> None:
        """
        Open the upstream socket, send the session update, signal ready.

        Connect and configure share one handshake deadline. On failure the
        session ends CLOSED and the owner receives on_error(); nothing is
        raised except cancellation.
        """
        if self.is_closed:
            return

        self._transition(UpstreamState.CONNECTING)

        try:
            with timed("upstream_handshake", client_id=self._client_id):
                await asyncio.wait_for(
                    self._open_and_configure(config, credential),
                    timeout=self._handshake_timeout_s,
                )
        except asyncio.CancelledError:
            await self._force_close()
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            if self.is_closed:
                # close() won the race; nothing to report.
                await self._drop_connection()
                return

            log_event({
                "ts_ms": now_ms(),
                "level": "error",
                "event_type": "UPSTREAM_CONNECT_FAILED",
                "client_id": self._client_id,
                "exception": type(e).__name__,
                "message": str(e),
            })
            await self._force_close()
            await self._on_error(UPSTREAM_CONNECT_FAILED_MESSAGE)
            return

        if self.is_closed:
            await self._drop_connection()
            return

        log_event({
            "ts_ms": now_ms(),
            "event_type": "UPSTREAM_READY",
            "client_id": self._client_id,
            "model": config.model,
            "language": config.language,
        })

        self._recv_task = asyncio.create_task(self._recv_loop())
        await self._on_ready()

    async def send_audio(self, frame: AudioFrame) -> None:
        """
        Append one PCM frame upstream.

        If the session is not READY, or the send fails, the frame is dropped
        and logged. Remote closure is detected by the receive loop.
        """
        ws = self._ws
        if self._state is not UpstreamState.READY or ws is None:
            log_event({
                "ts_ms": now_ms(),
                "level": "warning",
                "event_type": "UPSTREAM_NOT_READY_AUDIO_DROPPED",
                "client_id": self._client_id,
                "state": self._state.value,
                "seq_num": frame.sequence_num,
                "payload_len": len(frame),
            })
            return

        try:
            await ws.send(json.dumps(build_audio_append(frame.pcm_bytes)))
            self.frames_sent += 1
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": now_ms(),
                "level": "warning",
                "event_type": "UPSTREAM_SEND_FAILED",
                "client_id": self._client_id,
                "seq_num": frame.sequence_num,
                "exception": type(e).__name__,
                "message": str(e),
            })

    async def close(self) -> None:
        """Close the upstream connection. Idempotent."""
        if self.is_closed:
            return

        self._transition(UpstreamState.CLOSED)
        await self._drop_connection()

        log_event({
            "ts_ms": now_ms(),
            "event_type": "UPSTREAM_CLOSED",
            "client_id": self._client_id,
            "reason": "local_close",
            "frames_sent": self.frames_sent,
        })

    # -------------------------------------------------------------------------
    # Connection management
    # -------------------------------------------------------------------------

    async def _open_and_configure(self, config: UpstreamConfig, credential: str) -> None:
        headers = {
            "Authorization": f"Bearer {credential}",
            "OpenAI-Beta": UPSTREAM_BETA_HEADER,
        }

        self._ws = await self._connector(
            self._url,
            additional_headers=headers,
            max_size=UPSTREAM_MAX_MESSAGE_BYTES,
        )
        if self.is_closed:
            return

        self._transition(UpstreamState.CONFIGURING)
        await self._ws.send(json.dumps(build_session_update(config)))

        if self.is_closed:
            return
        self._transition(UpstreamState.READY)

    async def _force_close(self) -> None:
        if not self.is_closed:
            self._transition(UpstreamState.CLOSED)
        await self._drop_connection()

    async def _drop_connection(self) -> None:
        ws = self._ws
        self._ws = None

        rt = self._recv_task
        self._recv_task = None
        if rt is not None and not rt.done() and rt is not asyncio.current_task():
            rt.cancel()

        if ws is not None:
            try:
                await ws.close()
            except Exception:  # pylint: disable=broad-exception-caught
                pass

    # -------------------------------------------------------------------------
    # Background loop
    # -------------------------------------------------------------------------

    async def _recv_loop(self) -> None:
        """
        Receive upstream events until the socket ends.

        A socket ending while the session is not CLOSED is a remote drop:
        transition to CLOSED and notify the owner once.
        """
        ws = self._ws
        if ws is None:
            return

        try:
            async for raw in ws:
                await self._handle_raw(raw)
        except asyncio.CancelledError:
            return
        except ConnectionClosed as e:
            log_event({
                "ts_ms": now_ms(),
                "level": "warning",
                "event_type": "UPSTREAM_CONNECTION_LOST",
                "client_id": self._client_id,
                "message": str(e),
            })
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": now_ms(),
                "level": "error",
                "event_type": "UPSTREAM_RECV_FAILED",
                "client_id": self._client_id,
                "exception": type(e).__name__,
                "message": str(e),
            })

        if self.is_closed:
            return

        self._transition(UpstreamState.CLOSED)
        self._recv_task = None
        await self._drop_connection()

        log_event({
            "ts_ms": now_ms(),
            "event_type": "UPSTREAM_CLOSED",
            "client_id": self._client_id,
            "reason": "remote_close",
            "frames_sent": self.frames_sent,
        })
        await self._on_closed()

    async def _handle_raw(self, raw: str | bytes) -> None:
        try:
            data = decode_json_object(raw)
        except MessageDecodeError as e:
            preview = raw[:200] if isinstance(raw, str) else repr(raw[:200])
            log_event({
                "ts_ms": now_ms(),
                "level": "warning",
                "event_type": "UPSTREAM_MESSAGE_DECODE_ERROR",
                "client_id": self._client_id,
                "error": str(e),
                "payload_preview": preview,
            })
            return

        event = translate_upstream_event(data)

        if event is None:
            log_event({
                "ts_ms": now_ms(),
                "level": "debug",
                "event_type": "UPSTREAM_EVENT_IGNORED",
                "client_id": self._client_id,
                "msg_type": data.get("type"),
            })
            return

        if isinstance(event, UpstreamError):
            log_event({
                "ts_ms": now_ms(),
                "level": "error",
                "event_type": "UPSTREAM_ERROR_EVENT",
                "client_id": self._client_id,
                "message": event.message,
            })
            await self._on_error(event.message)
            return

        await self._on_transcript(event)
