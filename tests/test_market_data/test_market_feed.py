"""Tests for MarketFeed and trade parsing.

All tests use a mocked exchange client to avoid real API calls.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from flowmetrics.config import FeedSettings
from flowmetrics.market_data.feed import MarketFeed, parse_trade
from flowmetrics.metrics.engine import MetricsEngine
from flowmetrics.models import TradeSide, TradeSignal
from flowmetrics.session import InstrumentSession

SYMBOL = "BTC/USDT:USDT"
T0 = 1_700_000_000_000

MOCK_ORDER_BOOK = {
    "symbol": SYMBOL,
    "bids": [[100.0, 5.0], [99.5, 3.0]],
    "asks": [[100.5, 4.0], [101.0, 2.0]],
    "timestamp": T0,
}


def _ccxt_trade(
    trade_id: str | None,
    price: float = 100.0,
    amount: float = 1.0,
    side: str = "buy",
    offset_ms: int = 0,
) -> dict:
    """Mimic a ccxt unified trade structure."""
    return {
        "id": trade_id,
        "symbol": SYMBOL,
        "timestamp": T0 + offset_ms,
        "price": price,
        "amount": amount,
        "side": side,
        "info": {},
    }


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_exchange() -> AsyncMock:
    """Mock ExchangeClient returning an empty trade list and a static book."""
    exchange = AsyncMock()
    exchange.fetch_trades = AsyncMock(return_value=[])
    exchange.fetch_order_book = AsyncMock(return_value=MOCK_ORDER_BOOK)
    return exchange


@pytest.fixture
def session() -> InstrumentSession:
    return InstrumentSession(SYMBOL, MetricsEngine())


@pytest.fixture
def feed(mock_exchange: AsyncMock, session: InstrumentSession) -> MarketFeed:
    return MarketFeed(mock_exchange, session, FeedSettings(poll_interval=0.01))


# ---------------------------------------------------------------------------
# parse_trade
# ---------------------------------------------------------------------------


class TestParseTrade:
    """Tests for ccxt trade parsing."""

    def test_valid_trade(self) -> None:
        trade = parse_trade(_ccxt_trade("1", price=101.5, amount=0.25, side="sell"))
        assert trade is not None
        assert trade.price == 101.5
        assert trade.quantity == 0.25
        assert trade.side is TradeSide.SELL
        assert trade.timestamp == T0

    def test_uppercase_side(self) -> None:
        trade = parse_trade(_ccxt_trade("1", side="BUY"))
        assert trade is not None
        assert trade.side is TradeSide.BUY

    @pytest.mark.parametrize(
        "overrides",
        [
            {"price": None},
            {"amount": "abc"},
            {"side": "unknown"},
            {"timestamp": None},
            {"price": float("nan")},
            {"amount": -1.0},
        ],
    )
    def test_malformed_returns_none(self, overrides: dict) -> None:
        raw = {**_ccxt_trade("1"), **overrides}
        assert parse_trade(raw) is None

    def test_missing_field_returns_none(self) -> None:
        raw = _ccxt_trade("1")
        del raw["price"]
        assert parse_trade(raw) is None


# ---------------------------------------------------------------------------
# poll_once
# ---------------------------------------------------------------------------


class TestPollOnce:
    """Tests for a single feed cycle."""

    @pytest.mark.asyncio
    async def test_ingests_and_computes(
        self, feed: MarketFeed, mock_exchange: AsyncMock, session: InstrumentSession
    ) -> None:
        mock_exchange.fetch_trades.return_value = [
            _ccxt_trade("1", amount=2.0),
            _ccxt_trade("2", amount=1.0, side="sell", offset_ms=10),
        ]

        snapshot = await feed.poll_once()

        assert snapshot.trade_count == 2
        assert snapshot.cvd_session == pytest.approx(1.0)
        assert snapshot.price == pytest.approx(100.25)
        assert session.latest_metrics() is snapshot
        mock_exchange.fetch_trades.assert_awaited_once_with(SYMBOL, since=None, limit=200)
        mock_exchange.fetch_order_book.assert_awaited_once_with(SYMBOL, limit=50)

    @pytest.mark.asyncio
    async def test_overlapping_fetches_deduplicated(
        self, feed: MarketFeed, mock_exchange: AsyncMock
    ) -> None:
        mock_exchange.fetch_trades.return_value = [
            _ccxt_trade("1"),
            _ccxt_trade("2", offset_ms=10),
            _ccxt_trade("3", offset_ms=10),
        ]
        await feed.poll_once()

        mock_exchange.fetch_trades.return_value = [
            _ccxt_trade("2", offset_ms=10),
            _ccxt_trade("3", offset_ms=10),
            _ccxt_trade("4", offset_ms=10),
            _ccxt_trade("5", offset_ms=20),
        ]
        snapshot = await feed.poll_once()

        assert snapshot.trade_count == 5
        assert snapshot.total_volume == pytest.approx(5.0)
        # Second fetch resumes from the newest ingested timestamp
        assert mock_exchange.fetch_trades.await_args.kwargs["since"] == T0 + 10

    @pytest.mark.asyncio
    async def test_out_of_order_trade_skipped(
        self, feed: MarketFeed, mock_exchange: AsyncMock
    ) -> None:
        mock_exchange.fetch_trades.return_value = [
            _ccxt_trade("1", offset_ms=100),
            _ccxt_trade("0", offset_ms=50),
        ]
        snapshot = await feed.poll_once()
        assert snapshot.trade_count == 1

    @pytest.mark.asyncio
    async def test_trades_without_id(self, feed: MarketFeed, mock_exchange: AsyncMock) -> None:
        mock_exchange.fetch_trades.return_value = [
            _ccxt_trade(None, price=100.0),
            _ccxt_trade(None, price=100.5),
        ]
        assert (await feed.poll_once()).trade_count == 2
        # Same payload again adds nothing
        assert (await feed.poll_once()).trade_count == 2

    @pytest.mark.asyncio
    async def test_malformed_trades_skipped(
        self, feed: MarketFeed, mock_exchange: AsyncMock
    ) -> None:
        mock_exchange.fetch_trades.return_value = [
            _ccxt_trade("1"),
            {**_ccxt_trade("2", offset_ms=5), "price": None},
            _ccxt_trade("3", offset_ms=10),
        ]
        snapshot = await feed.poll_once()
        assert snapshot.trade_count == 2

    @pytest.mark.asyncio
    async def test_unparseable_trades_counted_as_dropped(
        self, feed: MarketFeed, mock_exchange: AsyncMock, session: InstrumentSession
    ) -> None:
        """Payloads rejected by parse_trade show up in the session's dropped count."""
        mock_exchange.fetch_trades.return_value = [
            _ccxt_trade("1"),
            _ccxt_trade("2", price=float("nan"), offset_ms=5),
            _ccxt_trade("3", amount=-5.0, offset_ms=10),
        ]
        snapshot = await feed.poll_once()

        assert snapshot.trade_count == 1
        assert session.dropped_trades == 2

    @pytest.mark.asyncio
    async def test_empty_book(self, feed: MarketFeed, mock_exchange: AsyncMock) -> None:
        mock_exchange.fetch_order_book.return_value = {"bids": [], "asks": []}
        snapshot = await feed.poll_once()

        assert snapshot.price == 0.0
        assert snapshot.obi_weighted == 0.0
        assert snapshot.trade_signal is TradeSignal.NEUTRAL


# ---------------------------------------------------------------------------
# Background loop
# ---------------------------------------------------------------------------


class TestFeedLifecycle:
    """Tests for start/stop of the polling task."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, feed: MarketFeed, mock_exchange: AsyncMock) -> None:
        await feed.start()
        assert feed.is_running
        await asyncio.sleep(0.05)
        await feed.stop()

        assert not feed.is_running
        assert mock_exchange.fetch_order_book.await_count >= 1

    @pytest.mark.asyncio
    async def test_loop_survives_exchange_errors(
        self, feed: MarketFeed, mock_exchange: AsyncMock
    ) -> None:
        mock_exchange.fetch_trades.side_effect = RuntimeError("rate limited")

        await feed.start()
        await asyncio.sleep(0.05)
        assert feed.is_running
        await feed.stop()

        assert mock_exchange.fetch_trades.await_count >= 2
