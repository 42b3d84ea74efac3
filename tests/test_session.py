"""Tests for InstrumentSession."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from flowmetrics.market_data.open_interest import OpenInterestMonitor, OpenInterestTracker
from flowmetrics.metrics.engine import MetricsEngine
from flowmetrics.models import OrderbookSnapshot, TradeRecord, TradeSide
from flowmetrics.session import InstrumentSession

SYMBOL = "ETH/USDT:USDT"
T0 = 1_700_000_000_000


def _make_trade(price: float = 2000.0, offset_ms: int = 0) -> TradeRecord:
    return TradeRecord(price=price, quantity=1.0, side=TradeSide.BUY, timestamp=T0 + offset_ms)


BOOK = OrderbookSnapshot(bids={1999.0: 3.0}, asks={2001.0: 1.0})


class TestInstrumentSession:
    """Tests for serialized ingest/compute and snapshot caching."""

    @pytest.mark.asyncio
    async def test_latest_metrics_none_before_compute(self) -> None:
        session = InstrumentSession(SYMBOL, MetricsEngine())
        await session.ingest(_make_trade())
        assert session.latest_metrics() is None

    @pytest.mark.asyncio
    async def test_compute_caches_snapshot(self) -> None:
        session = InstrumentSession(SYMBOL, MetricsEngine())
        await session.ingest(_make_trade())
        snapshot = await session.compute(BOOK)

        assert session.latest_metrics() is snapshot
        assert snapshot.trade_count == 1
        assert snapshot.price == pytest.approx(2000.0)

    @pytest.mark.asyncio
    async def test_dropped_trades_counted(self) -> None:
        session = InstrumentSession(SYMBOL, MetricsEngine())
        assert await session.ingest(_make_trade(price=float("inf"))) is False
        assert await session.ingest(_make_trade()) is True
        assert session.dropped_trades == 1

    @pytest.mark.asyncio
    async def test_concurrent_ingest_and_compute(self) -> None:
        """Interleaved writers never lose trades."""
        session = InstrumentSession(SYMBOL, MetricsEngine())

        async def writer(start: int) -> None:
            for i in range(50):
                await session.ingest(_make_trade(offset_ms=start + i))
                await asyncio.sleep(0)

        async def reader() -> None:
            for _ in range(20):
                await session.compute(BOOK)
                await asyncio.sleep(0)

        await asyncio.gather(writer(0), writer(0), reader())

        assert session.engine.buffer.total_volume == pytest.approx(100.0)
        final = await session.compute(BOOK)
        assert final.total_volume == pytest.approx(100.0)

    def test_open_interest_disabled(self) -> None:
        session = InstrumentSession(SYMBOL, MetricsEngine())
        assert session.oi_monitor is None
        assert session.open_interest() is None

    @pytest.mark.asyncio
    async def test_open_interest_from_monitor(self) -> None:
        tracker = OpenInterestTracker(SYMBOL, AsyncMock(return_value=5000.0))
        monitor = OpenInterestMonitor(tracker)
        session = InstrumentSession(SYMBOL, MetricsEngine(), monitor)

        await monitor.poll_once()
        snapshot = session.open_interest()

        assert snapshot is not None
        assert snapshot.open_interest == 5000.0
