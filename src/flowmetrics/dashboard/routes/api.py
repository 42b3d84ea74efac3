"""JSON API endpoints exposing the latest metrics and open interest snapshots."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from flowmetrics.session import InstrumentSession

log = structlog.get_logger(__name__)

router = APIRouter()


def build_payload(session: InstrumentSession) -> dict[str, Any]:
    """Combined metrics + open interest payload, shared with the WebSocket push."""
    metrics = session.latest_metrics()
    open_interest = session.open_interest()
    return {
        "symbol": session.symbol,
        "metrics": metrics.to_dict() if metrics is not None else None,
        "open_interest": open_interest.to_dict() if open_interest is not None else None,
    }


@router.get("/metrics")
async def get_metrics(request: Request) -> JSONResponse:
    """Latest MetricsSnapshot, or 503 until the first compute pass completes."""
    session: InstrumentSession = request.app.state.session
    snapshot = session.latest_metrics()
    if snapshot is None:
        log.debug("metrics_not_ready", symbol=session.symbol)
        return JSONResponse(
            status_code=503,
            content={"status": "warming_up", "symbol": session.symbol},
        )
    return JSONResponse(content={"symbol": session.symbol, **snapshot.to_dict()})


@router.get("/open-interest")
async def get_open_interest(request: Request) -> JSONResponse:
    """Current OpenInterestSnapshot, or 404 when open interest tracking is disabled."""
    session: InstrumentSession = request.app.state.session
    snapshot = session.open_interest()
    if snapshot is None:
        return JSONResponse(
            status_code=404,
            content={"status": "disabled", "symbol": session.symbol},
        )
    return JSONResponse(content={"symbol": session.symbol, **snapshot.to_dict()})


@router.get("/snapshot")
async def get_snapshot(request: Request) -> JSONResponse:
    """Metrics and open interest in one payload (same shape as the WebSocket push)."""
    return JSONResponse(content=build_payload(request.app.state.session))


@router.get("/health")
async def get_health(request: Request) -> JSONResponse:
    """Liveness of the feed and open interest monitor."""
    session: InstrumentSession = request.app.state.session
    feed = getattr(request.app.state, "feed", None)
    oi_monitor = session.oi_monitor
    return JSONResponse(
        content={
            "symbol": session.symbol,
            "feed_running": bool(feed is not None and feed.is_running),
            "open_interest_running": bool(oi_monitor is not None and oi_monitor.is_running),
            "trade_count": session.engine.buffer.trade_count,
            "dropped_trades": session.dropped_trades,
        }
    )
