"""
Relay server: the ClientId -> session table and the per-connection loop.

Responsibilities:
- Accept inbound WebSocket connections
- Assign each a unique ClientId and create its ClientSession + SessionGateway
- Run the receive loop, routing text frames and binary frames to the gateway
- Tear down the gateway (and with it the upstream) when the browser leaves

The table is mutated only from the event loop thread; no locking. With
several uvicorn workers each worker owns its own RelayServer.
"""

from __future__ import annotations

from typing import Optional, TYPE_CHECKING
from uuid import uuid4

from fastapi import WebSocket, WebSocketDisconnect

from observability.logger import log_event, now_ms
from session.client_session import ClientSession
from session.gateway import SessionGateway, UpstreamFactory

if TYPE_CHECKING:
    from config import AppConfig


def _new_client_id() -> str:
    return f"client_{uuid4().hex[:12]}"


class RelayServer:
    """Owns every live browser connection handled by this process."""

    def __init__(
        self,
        *,
        config: AppConfig,
        upstream_factory: UpstreamFactory | None = None,
    ) -> None:
        self._config = config
        self._upstream_factory = upstream_factory
        self._gateways: dict[str, SessionGateway] = {}

    # ------------------------------------------------------------------
    # Table
    # ------------------------------------------------------------------

    @property
    def active_count(self) -> int:
        return len(self._gateways)

    def client_ids(self) -> tuple[str, ...]:
        return tuple(self._gateways)

    def get(self, client_id: str) -> Optional[ClientSession]:
        gateway = self._gateways.get(client_id)
        return gateway.session if gateway is not None else None

    def on_connect(self, websocket: WebSocket | None = None) -> SessionGateway:
        """
        Register a new inbound connection.

        Bookkeeping only: no upstream is opened until the browser sends
        `start`.
        """
        client_id = _new_client_id()
        while client_id in self._gateways:
            client_id = _new_client_id()

        session = ClientSession(
            client_id=client_id,
            websocket=websocket,
            transcription_model=self._config.transcription_model,
            language=self._config.transcription_language,
            pending_audio_max_bytes=self._config.pending_audio_max_bytes,
        )
        gateway = SessionGateway(
            config=self._config,
            session=session,
            upstream_factory=self._upstream_factory,
        )
        self._gateways[client_id] = gateway

        log_event({
            "ts_ms": now_ms(),
            "event_type": "CLIENT_CONNECTED",
            "client_id": client_id,
            "active_clients": len(self._gateways),
        })
        return gateway

    async def on_disconnect(self, client_id: str, reason: str | None = None) -> None:
        """
        Close the client's upstream (if open) and forget the client.

        Idempotent: an unknown or already-removed ClientId is a logged no-op.
        """
        gateway = self._gateways.pop(client_id, None)
        if gateway is None:
            log_event({
                "ts_ms": now_ms(),
                "level": "debug",
                "event_type": "DISCONNECT_UNKNOWN_CLIENT",
                "client_id": client_id,
                "reason": reason,
            })
            return

        await gateway.on_disconnect(reason=reason)

        log_event({
            "ts_ms": now_ms(),
            "event_type": "CLIENT_DISCONNECTED",
            "client_id": client_id,
            "reason": reason,
            "active_clients": len(self._gateways),
        })

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    async def dispatch_text(self, client_id: str, payload: str) -> None:
        gateway = self._lookup(client_id, kind="text", size=len(payload))
        if gateway is not None:
            await gateway.on_json_message(payload)

    async def dispatch_binary(self, client_id: str, payload: bytes) -> None:
        gateway = self._lookup(client_id, kind="binary", size=len(payload))
        if gateway is not None:
            await gateway.on_binary_message(payload)

    def _lookup(self, client_id: str, *, kind: str, size: int) -> Optional[SessionGateway]:
        gateway = self._gateways.get(client_id)
        if gateway is None:
            log_event({
                "ts_ms": now_ms(),
                "level": "warning",
                "event_type": "UNKNOWN_CLIENT",
                "client_id": client_id,
                "kind": kind,
                "payload_len": size,
            })
        return gateway

    # ------------------------------------------------------------------
    # Connection loop
    # ------------------------------------------------------------------

    async def serve(self, ws: WebSocket) -> None:
        """
        Handle one browser connection from accept to teardown.

        One connection = one ClientSession = one gateway.
        """
        await ws.accept()
        gateway = self.on_connect(ws)
        client_id = gateway.session.client_id
        reason = "client_disconnect"

        try:
            while True:
                msg = await ws.receive()

                if msg["type"] == "websocket.disconnect":
                    break

                if msg.get("text") is not None:
                    await self.dispatch_text(client_id, msg["text"])
                elif msg.get("bytes") is not None:
                    await self.dispatch_binary(client_id, msg["bytes"])

        except WebSocketDisconnect:
            pass

        except Exception as exc:  # pylint: disable=broad-exception-caught
            reason = "server_error"
            log_event({
                "ts_ms": now_ms(),
                "level": "error",
                "event_type": "WS_FATAL_ERROR",
                "client_id": client_id,
                "exception": type(exc).__name__,
                "message": str(exc),
            })

        finally:
            await self.on_disconnect(client_id, reason=reason)
