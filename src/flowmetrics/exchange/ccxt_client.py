"""Market data client implementation via ccxt async.

Wraps any ``ccxt.async_support`` exchange (Binance USD-M futures by default)
with market loading, open interest extraction and async cleanup.
"""

import ccxt.async_support as ccxt_async

from flowmetrics.config import ExchangeSettings
from flowmetrics.exceptions import ExchangeNotConnected, OpenInterestFetchError
from flowmetrics.exchange.client import ExchangeClient
from flowmetrics.logging import get_logger

logger = get_logger(__name__)


def _extract_open_interest(payload: dict) -> float:
    """Pull the open interest amount out of a ccxt open interest structure.

    ccxt normalizes to ``openInterestAmount``; some exchanges only fill the
    raw ``info.openInterest`` field.
    """
    raw = payload.get("openInterestAmount")
    if raw is None:
        raw = (payload.get("info") or {}).get("openInterest")
    if raw is None:
        raise OpenInterestFetchError("Open interest missing from exchange response")
    try:
        return float(raw)
    except (TypeError, ValueError) as e:
        raise OpenInterestFetchError(f"Unparseable open interest value: {raw!r}") from e


class CcxtExchangeClient(ExchangeClient):
    """Concrete market data client backed by ccxt async."""

    def __init__(self, settings: ExchangeSettings) -> None:
        self._settings = settings

        exchange_cls = getattr(ccxt_async, settings.exchange_id)
        config: dict = {"enableRateLimit": True}
        api_key = settings.api_key.get_secret_value()
        if api_key:
            config["apiKey"] = api_key
            config["secret"] = settings.api_secret.get_secret_value()

        self._exchange = exchange_cls(config)
        self._markets: dict = {}

    @property
    def exchange(self):
        """Access the underlying ccxt exchange instance."""
        return self._exchange

    async def connect(self) -> None:
        """Initialize connection by loading markets."""
        logger.info("connecting_to_exchange", exchange=self._settings.exchange_id)
        self._markets = await self._exchange.load_markets()
        logger.info(
            "exchange_connected",
            exchange=self._settings.exchange_id,
            market_count=len(self._markets),
        )

    async def close(self) -> None:
        """Clean up ccxt async resources. CRITICAL: must be called to avoid resource leaks."""
        logger.info("closing_exchange_connection", exchange=self._settings.exchange_id)
        await self._exchange.close()

    def _require_market(self, symbol: str) -> None:
        if not self._markets:
            raise ExchangeNotConnected("connect() must be awaited before fetching data")
        if symbol not in self._markets:
            raise ValueError(f"Symbol {symbol} not found in loaded markets")

    async def fetch_trades(
        self, symbol: str, since: int | None = None, limit: int | None = None
    ) -> list[dict]:
        """Fetch recent public trades, oldest first."""
        self._require_market(symbol)
        trades = await self._exchange.fetch_trades(symbol, since=since, limit=limit)
        return sorted(trades, key=lambda t: t.get("timestamp") or 0)

    async def fetch_order_book(self, symbol: str, limit: int | None = None) -> dict:
        """Fetch an order book snapshot."""
        self._require_market(symbol)
        return await self._exchange.fetch_order_book(symbol, limit=limit)

    async def fetch_open_interest(self, symbol: str) -> float:
        """Fetch current open interest via ccxt's unified fetch_open_interest."""
        self._require_market(symbol)
        payload = await self._exchange.fetch_open_interest(symbol)
        value = _extract_open_interest(payload)
        logger.debug("open_interest_fetched", value=value)
        return value
