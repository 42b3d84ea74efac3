"""FastAPI application factory for the metrics JSON API and snapshot stream."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from flowmetrics.dashboard.routes import api, ws
from flowmetrics.dashboard.routes.ws import SnapshotHub


def create_dashboard_app(lifespan: Any = None) -> FastAPI:
    """Build the app with ``/api/*`` routes and the ``/ws`` stream.

    ``lifespan`` is injected by main.py and must put the InstrumentSession on
    ``app.state.session`` before requests are served.
    """
    app = FastAPI(title="Order Flow Metrics", lifespan=lifespan)

    app.state.hub = SnapshotHub()
    app.state.feed = None

    app.include_router(api.router, prefix="/api")
    app.include_router(ws.router)
    return app
