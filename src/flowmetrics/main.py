"""Entry point for the order flow metrics service.

Wires all components together, optionally embeds the FastAPI server, and
starts the market feed and open interest monitor. When the server is enabled
(default), the feed and the API share a single asyncio event loop via
uvicorn's programmatic API and FastAPI's lifespan context manager.

Component wiring order (in build_components):
1. ExchangeClient (ccxt)
2. OpenInterestTracker + OpenInterestMonitor (optional)
3. MetricsEngine
4. InstrumentSession
5. MarketFeed
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from flowmetrics.config import AppSettings
from flowmetrics.exchange.ccxt_client import CcxtExchangeClient
from flowmetrics.logging import bind_instrument, get_logger, setup_logging
from flowmetrics.market_data.feed import MarketFeed
from flowmetrics.market_data.open_interest import (
    OpenInterestMonitor,
    OpenInterestTracker,
    RandomWalkOpenInterest,
)
from flowmetrics.metrics.engine import MetricsEngine
from flowmetrics.models import OISource
from flowmetrics.session import InstrumentSession


def build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all service components from settings.

    Does NOT connect the exchange client -- that happens in the lifespan
    (server mode) or run() (headless mode).

    Args:
        settings: Application-wide settings.

    Returns:
        Dict mapping component names to instances.
    """
    symbol = settings.exchange.symbol
    exchange_client = CcxtExchangeClient(settings.exchange)

    oi_monitor: OpenInterestMonitor | None = None
    oi_settings = settings.open_interest
    if oi_settings.enabled:
        if oi_settings.mock:
            tracker = OpenInterestTracker(
                symbol, RandomWalkOpenInterest(), oi_settings, source=OISource.MOCK
            )
        else:
            tracker = OpenInterestTracker(
                symbol, exchange_client.fetch_open_interest, oi_settings
            )
        oi_monitor = OpenInterestMonitor(tracker, poll_interval=oi_settings.poll_interval)

    engine = MetricsEngine(settings.metrics, settings.signal)
    session = InstrumentSession(symbol, engine, oi_monitor)
    feed = MarketFeed(exchange_client, session, settings.feed)

    return {
        "exchange_client": exchange_client,
        "oi_monitor": oi_monitor,
        "engine": engine,
        "session": session,
        "feed": feed,
    }


async def _start_background(components: dict[str, Any]) -> None:
    await components["exchange_client"].connect()
    await components["feed"].start()
    if components["oi_monitor"] is not None:
        await components["oi_monitor"].start()


async def _stop_background(components: dict[str, Any]) -> None:
    await components["feed"].stop()
    if components["oi_monitor"] is not None:
        await components["oi_monitor"].stop()
    await components["exchange_client"].close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage component lifecycle within the FastAPI application.

    On startup: connects to the exchange, starts the feed, the open interest
    monitor and the WebSocket update loop.
    On shutdown: cancels them in reverse order and closes the exchange.
    """
    from flowmetrics.dashboard.update_loop import dashboard_update_loop

    logger = get_logger("flowmetrics.main")
    components = app.state.components

    app.state.session = components["session"]
    app.state.feed = components["feed"]
    app.state.update_interval = app.state.settings.dashboard.update_interval

    await _start_background(components)
    update_task = asyncio.create_task(dashboard_update_loop(app))

    logger.info("lifespan_started", symbol=components["session"].symbol)

    yield

    update_task.cancel()
    try:
        await update_task
    except asyncio.CancelledError:
        pass

    await _stop_background(components)
    logger.info("flowmetrics_stopped")


async def run() -> None:
    """Run the metrics service.

    With the server enabled (DASHBOARD_ENABLED=true, the default) the feed
    runs inside the uvicorn lifespan. Otherwise the feed runs headless until
    SIGINT/SIGTERM.
    """
    settings = AppSettings()
    setup_logging(settings.log_level)
    bind_instrument(settings.exchange.symbol)
    logger = get_logger("flowmetrics.main")

    components = build_components(settings)

    if settings.dashboard.enabled:
        from flowmetrics.dashboard.app import create_dashboard_app

        app = create_dashboard_app(lifespan=lifespan)
        app.state.settings = settings
        app.state.components = components

        logger.info(
            "starting_with_dashboard",
            host=settings.dashboard.host,
            port=settings.dashboard.port,
            exchange=settings.exchange.exchange_id,
        )

        config = uvicorn.Config(
            app,
            host=settings.dashboard.host,
            port=settings.dashboard.port,
            log_level="warning",  # Suppress uvicorn access logs
        )
        server = uvicorn.Server(config)
        await server.serve()
        return

    logger.info("starting_headless", exchange=settings.exchange.exchange_id)
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        await _start_background(components)
        await stop_event.wait()
        logger.info("graceful_shutdown_signal")
    finally:
        await _stop_background(components)
        logger.info("flowmetrics_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
