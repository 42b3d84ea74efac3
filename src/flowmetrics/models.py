"""Shared data models for the order flow metrics service.

Prices, quantities and scores are floats: the engine computes statistical
features (standard deviations, regressions, ratios) guarded by an epsilon,
not monetary balances.
"""

import math
import time
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, field
from enum import Enum, IntEnum
from typing import Any

from flowmetrics.exceptions import MalformedTradeError


class TradeSide(str, Enum):
    """Aggressor side of an executed trade."""

    BUY = "buy"
    SELL = "sell"


class TradeSignal(IntEnum):
    """Composite directional signal."""

    SELL = -1
    NEUTRAL = 0
    BUY = 1


class OITrend(str, Enum):
    """Open interest direction between the last two fetches."""

    UP = "up"
    DOWN = "down"
    FLAT = "flat"


class OISignal(str, Enum):
    """Open interest classification."""

    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class OISource(str, Enum):
    """Where open interest values come from."""

    REAL = "real"
    MOCK = "mock"


@dataclass(frozen=True)
class TradeRecord:
    """A single executed trade."""

    price: float
    quantity: float
    side: TradeSide
    timestamp: int  # Unix milliseconds

    @property
    def signed_quantity(self) -> float:
        """Quantity signed by aggressor side (buy positive, sell negative)."""
        return self.quantity if self.side is TradeSide.BUY else -self.quantity

    @property
    def is_well_formed(self) -> bool:
        """True if price and quantity are finite and non-negative."""
        return (
            math.isfinite(self.price)
            and math.isfinite(self.quantity)
            and self.price >= 0
            and self.quantity >= 0
        )

    @classmethod
    def from_ccxt(cls, raw: Mapping[str, Any]) -> "TradeRecord":
        """Build a TradeRecord from a ccxt unified trade dict.

        Raises:
            MalformedTradeError: if a field is missing, unparseable or not finite.
        """
        try:
            price = float(raw["price"])
            quantity = float(raw["amount"])
            side = TradeSide(str(raw["side"]).lower())
            timestamp = int(raw["timestamp"])
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedTradeError(f"Unparseable trade payload: {e}") from e

        trade = cls(price=price, quantity=quantity, side=side, timestamp=timestamp)
        if not trade.is_well_formed:
            raise MalformedTradeError(
                f"Non-finite or negative trade values: price={price} quantity={quantity}"
            )
        return trade


@dataclass(frozen=True)
class OrderbookSnapshot:
    """Read-only view of an order book at one instant.

    Bids and asks map price to resting quantity.
    """

    bids: Mapping[float, float] = field(default_factory=dict)
    asks: Mapping[float, float] = field(default_factory=dict)

    def best_bid(self) -> float | None:
        """Highest bid price, or None when the bid side is empty."""
        return max(self.bids) if self.bids else None

    def best_ask(self) -> float | None:
        """Lowest ask price, or None when the ask side is empty."""
        return min(self.asks) if self.asks else None

    @classmethod
    def from_levels(
        cls,
        bids: Iterable[Iterable[float]],
        asks: Iterable[Iterable[float]],
    ) -> "OrderbookSnapshot":
        """Build a snapshot from ccxt-style ``[[price, qty], ...]`` level lists.

        Extra columns (some exchanges append a count) are ignored, as are
        levels with a non-positive quantity.
        """
        return cls(bids=_levels_to_map(bids), asks=_levels_to_map(asks))


def _levels_to_map(levels: Iterable[Iterable[float]]) -> dict[float, float]:
    book: dict[float, float] = {}
    for level in levels:
        price, qty = (float(v) for v in list(level)[:2])
        if qty > 0:
            book[price] = qty
    return book


@dataclass(frozen=True)
class MetricsSnapshot:
    """Output of one metrics computation pass for a single instrument."""

    price: float
    obi_weighted: float  # [-1, 1]
    obi_deep: float  # [-1, 1]
    obi_divergence: float  # [-2, 2]
    delta1s: float
    delta5s: float
    delta_z: float
    cvd_session: float
    cvd_slope: float
    vwap: float
    total_volume: float
    total_notional: float
    absorption_score: float  # [0, 1]
    sweep_fade_score: float  # [-1, 1]
    breakout_score: float  # [-1, 1]
    regime_weight: float  # [0, 1]
    trade_count: int
    trade_signal: TradeSignal
    exhaustion: bool

    def to_dict(self) -> dict[str, Any]:
        """Plain dict for JSON serialization."""
        data = asdict(self)
        data["trade_signal"] = int(self.trade_signal)
        return data


@dataclass(frozen=True)
class OpenInterestSample:
    """One successful open interest fetch."""

    value: float
    timestamp: int  # Unix milliseconds


@dataclass(frozen=True)
class OpenInterestSnapshot:
    """Open interest view derived from the last two fetches and recent history."""

    open_interest: float
    delta: float
    delta_percent: float
    trend: OITrend
    signal: OISignal
    volatility: float  # [0, 1]
    strength: float  # [-1, 1]
    last_update: int  # Unix milliseconds
    source: OISource

    def to_dict(self) -> dict[str, Any]:
        """Plain dict for JSON serialization."""
        data = asdict(self)
        data["trend"] = self.trend.value
        data["signal"] = self.signal.value
        data["source"] = self.source.value
        return data


def now_ms() -> int:
    """Current wall clock time in Unix milliseconds."""
    return int(time.time() * 1000)
