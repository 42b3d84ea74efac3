"""Per-instrument session: the single writer for one instrument's metrics state.

Serializes trade ingestion and metrics computation behind an asyncio.Lock so
a compute pass never observes a half-applied trade, and caches the latest
snapshot for readers (dashboard routes, WebSocket pushes).

Instruments never share a session; each can run on its own task.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from flowmetrics.logging import get_logger
from flowmetrics.metrics.engine import MetricsEngine
from flowmetrics.models import MetricsSnapshot, OpenInterestSnapshot, OrderbookSnapshot, TradeRecord

if TYPE_CHECKING:
    from flowmetrics.market_data.open_interest import OpenInterestMonitor

logger = get_logger(__name__)


class InstrumentSession:
    """Owns the metrics engine and open interest monitor for one instrument.

    Args:
        symbol: Instrument symbol (e.g., "BTC/USDT:USDT").
        engine: Metrics engine holding the trade buffer.
        oi_monitor: Open interest monitor, or None when open interest is disabled.
    """

    def __init__(
        self,
        symbol: str,
        engine: MetricsEngine,
        oi_monitor: OpenInterestMonitor | None = None,
    ) -> None:
        self._symbol = symbol
        self._engine = engine
        self._oi_monitor = oi_monitor
        self._lock = asyncio.Lock()
        self._latest: MetricsSnapshot | None = None
        self._dropped = 0

    @property
    def symbol(self) -> str:
        return self._symbol

    @property
    def engine(self) -> MetricsEngine:
        return self._engine

    @property
    def oi_monitor(self) -> OpenInterestMonitor | None:
        return self._oi_monitor

    @property
    def dropped_trades(self) -> int:
        """Count of malformed trades, rejected at parse time or by the buffer."""
        return self._dropped

    def record_dropped(self) -> None:
        """Count one malformed trade that was not ingested."""
        self._dropped += 1

    async def ingest(self, trade: TradeRecord) -> bool:
        """Feed one trade into the engine under the session lock."""
        async with self._lock:
            accepted = self._engine.ingest(trade)
        if not accepted:
            self.record_dropped()
        return accepted

    async def compute(self, book: OrderbookSnapshot) -> MetricsSnapshot:
        """Run a metrics pass under the session lock and cache the result."""
        async with self._lock:
            snapshot = self._engine.compute(book)
            self._latest = snapshot
        return snapshot

    def latest_metrics(self) -> MetricsSnapshot | None:
        """Most recent snapshot, or None before the first compute pass."""
        return self._latest

    def open_interest(self) -> OpenInterestSnapshot | None:
        """Current open interest snapshot, or None when open interest is disabled."""
        if self._oi_monitor is None:
            return None
        return self._oi_monitor.snapshot()
