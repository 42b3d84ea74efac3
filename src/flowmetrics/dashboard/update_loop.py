"""Background task pushing the latest snapshots to WebSocket subscribers."""

from __future__ import annotations

import asyncio

import structlog
from fastapi import FastAPI

from flowmetrics.dashboard.routes.api import build_payload

log = structlog.get_logger(__name__)


async def dashboard_update_loop(app: FastAPI) -> None:
    """Broadcast ``build_payload(session)`` every ``update_interval`` seconds.

    Runs until cancelled. Ticks with no subscribers skip building the
    payload. Errors are logged and the loop keeps going.

    Args:
        app: The FastAPI application with ``hub``, ``session`` and
             ``update_interval`` on its state.
    """
    update_interval = getattr(app.state, "update_interval", 1.0)
    log.info("snapshot_push_started", interval=update_interval)

    while True:
        try:
            await asyncio.sleep(update_interval)
            hub = app.state.hub
            if hub.client_count == 0:
                continue
            await hub.broadcast(build_payload(app.state.session))
        except asyncio.CancelledError:
            log.info("snapshot_push_stopped")
            raise
        except Exception:
            log.warning("snapshot_push_error", exc_info=True)
