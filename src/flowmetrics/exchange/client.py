"""Abstract exchange client interface.

Defines the read-only market data contract the feed and open interest
monitor depend on, keeping ccxt-specific details in the concrete client.
"""

from abc import ABC, abstractmethod


class ExchangeClient(ABC):
    """Abstract base class for market data clients."""

    @abstractmethod
    async def connect(self) -> None:
        """Initialize connection and load markets."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources (CRITICAL for ccxt async)."""
        ...

    @abstractmethod
    async def fetch_trades(
        self, symbol: str, since: int | None = None, limit: int | None = None
    ) -> list[dict]:
        """Fetch recent public trades as ccxt unified trade dicts, oldest first."""
        ...

    @abstractmethod
    async def fetch_order_book(self, symbol: str, limit: int | None = None) -> dict:
        """Fetch an order book as ``{"bids": [[price, qty], ...], "asks": [...]}``."""
        ...

    @abstractmethod
    async def fetch_open_interest(self, symbol: str) -> float:
        """Return current open interest (contracts) for a derivatives symbol."""
        ...
