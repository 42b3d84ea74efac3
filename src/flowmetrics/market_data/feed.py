"""Market feed -- polls trades and the order book and drives a session.

Uses REST polling through the exchange client. Each cycle fetches the trades
printed since the last cycle, ingests the new ones in timestamp order, then
fetches a fresh order book and runs one metrics pass.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from flowmetrics.config import FeedSettings
from flowmetrics.exceptions import MalformedTradeError
from flowmetrics.logging import get_logger
from flowmetrics.models import MetricsSnapshot, OrderbookSnapshot, TradeRecord

if TYPE_CHECKING:
    from flowmetrics.exchange.client import ExchangeClient
    from flowmetrics.session import InstrumentSession

logger = get_logger(__name__)


def parse_trade(raw: Mapping[str, Any]) -> TradeRecord | None:
    """Parse a ccxt trade dict, returning None for malformed payloads."""
    try:
        return TradeRecord.from_ccxt(raw)
    except MalformedTradeError as e:
        logger.debug("trade_dropped_malformed", error=str(e), trade_id=raw.get("id"))
        return None


class MarketFeed:
    """Background polling loop feeding one InstrumentSession.

    Trades are deduplicated across overlapping fetches by timestamp and id;
    trades older than the newest one already ingested are skipped so the
    buffer only ever sees non-decreasing timestamps.
    """

    def __init__(
        self,
        exchange: ExchangeClient,
        session: InstrumentSession,
        settings: FeedSettings | None = None,
    ) -> None:
        self._exchange = exchange
        self._session = session
        self._settings = settings or FeedSettings()
        self._last_timestamp: int | None = None
        self._ids_at_last_timestamp: set[str] = set()
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Begin polling in the background."""
        if self._running:
            logger.warning("market_feed_already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._stream_loop())
        logger.info(
            "market_feed_started",
            symbol=self._session.symbol,
            poll_interval=self._settings.poll_interval,
        )

    async def stop(self) -> None:
        """Stop the feed gracefully."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("market_feed_stopped", symbol=self._session.symbol)

    async def _stream_loop(self) -> None:
        while self._running:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("market_feed_poll_error", exc_info=True)
            if self._running:
                await asyncio.sleep(self._settings.poll_interval)

    async def poll_once(self) -> MetricsSnapshot:
        """Execute a single cycle: ingest new trades, then compute metrics."""
        symbol = self._session.symbol
        raw_trades = await self._exchange.fetch_trades(
            symbol, since=self._last_timestamp, limit=self._settings.trade_limit
        )

        ingested = 0
        for raw in raw_trades:
            trade = parse_trade(raw)
            if trade is None:
                self._session.record_dropped()
                continue
            if not self._is_new(trade, raw.get("id")):
                continue
            if await self._session.ingest(trade):
                ingested += 1

        raw_book = await self._exchange.fetch_order_book(
            symbol, limit=self._settings.orderbook_depth
        )
        book = OrderbookSnapshot.from_levels(raw_book.get("bids", []), raw_book.get("asks", []))
        snapshot = await self._session.compute(book)

        logger.debug(
            "feed_cycle_complete",
            ingested=ingested,
            trade_count=snapshot.trade_count,
            price=snapshot.price,
            signal=snapshot.trade_signal.name,
        )
        return snapshot

    def _is_new(self, trade: TradeRecord, trade_id: Any) -> bool:
        """Record the trade as seen and report whether it was new."""
        if trade_id is not None:
            key = str(trade_id)
        else:
            key = f"{trade.timestamp}:{trade.price}:{trade.quantity}:{trade.side.value}"
        if self._last_timestamp is None or trade.timestamp > self._last_timestamp:
            self._last_timestamp = trade.timestamp
            self._ids_at_last_timestamp = {key}
            return True
        if trade.timestamp == self._last_timestamp and key not in self._ids_at_last_timestamp:
            self._ids_at_last_timestamp.add(key)
            return True
        return False
