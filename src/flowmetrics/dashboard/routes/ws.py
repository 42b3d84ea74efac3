"""WebSocket push of metrics and open interest snapshots."""

from __future__ import annotations

import json
from typing import Any

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from flowmetrics.dashboard.routes.api import build_payload

log = structlog.get_logger(__name__)

router = APIRouter()


class SnapshotHub:
    """Tracks subscribed WebSocket clients and fans out snapshot payloads.

    Each payload is serialized once per broadcast. A client whose send fails
    is dropped; it can reconnect and will receive the current snapshot
    immediately.
    """

    def __init__(self) -> None:
        self.clients: set[WebSocket] = set()

    @property
    def client_count(self) -> int:
        return len(self.clients)

    async def subscribe(self, ws: WebSocket, initial: dict[str, Any] | None = None) -> None:
        """Accept the socket and optionally send it the current snapshot."""
        await ws.accept()
        self.clients.add(ws)
        log.info("snapshot_ws_subscribed", clients=self.client_count)
        if initial is not None:
            await ws.send_text(json.dumps(initial))

    def unsubscribe(self, ws: WebSocket) -> None:
        self.clients.discard(ws)
        log.info("snapshot_ws_unsubscribed", clients=self.client_count)

    async def broadcast(self, payload: dict[str, Any]) -> int:
        """Send payload to every client.

        Returns:
            Number of clients dropped because the send failed.
        """
        message = json.dumps(payload)
        dropped = 0
        for ws in list(self.clients):
            try:
                await ws.send_text(message)
            except Exception:
                self.clients.discard(ws)
                dropped += 1
        if dropped:
            log.warning("snapshot_ws_clients_dropped", dropped=dropped, clients=self.client_count)
        return dropped


@router.websocket("/ws")
async def snapshot_stream(websocket: WebSocket) -> None:
    """Stream ``{symbol, metrics, open_interest}`` payloads to the client."""
    hub: SnapshotHub = websocket.app.state.hub
    session = getattr(websocket.app.state, "session", None)
    initial = build_payload(session) if session is not None else None
    await hub.subscribe(websocket, initial)
    try:
        while True:
            # Inbound messages are ignored; reading detects the disconnect
            await websocket.receive_text()
    except WebSocketDisconnect:
        hub.unsubscribe(websocket)
