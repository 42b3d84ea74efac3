"""Order book imbalance (OBI) at near and deep depth.

OBI = (bid_volume - ask_volume) / (bid_volume + ask_volume), in [-1, 1].
Positive values mean resting bids outweigh resting asks.
"""

from collections.abc import Mapping
from dataclasses import dataclass

from flowmetrics.metrics.statistics import EPSILON
from flowmetrics.models import OrderbookSnapshot

#: Levels counted for the near-touch imbalance.
NEAR_DEPTH = 10
#: Levels counted for the deep-book imbalance.
DEEP_DEPTH = 50


@dataclass(frozen=True)
class OrderbookImbalance:
    """Near, deep and divergence imbalance for one snapshot."""

    weighted: float  # [-1, 1]
    deep: float  # [-1, 1]
    divergence: float  # [-2, 2]


def volume_at_depth(levels: Mapping[float, float], depth: int, ascending: bool) -> float:
    """Sum quantity over the best ``depth`` price levels.

    Args:
        levels: Price to quantity mapping for one side of the book.
        depth: Number of levels to include.
        ascending: True for asks (lowest price first), False for bids.

    Returns:
        Total quantity over the selected levels.
    """
    prices = sorted(levels, reverse=not ascending)
    return sum(levels[p] for p in prices[:depth])


def _ratio(bid_volume: float, ask_volume: float) -> float:
    denom = bid_volume + ask_volume
    if denom <= EPSILON:
        return 0.0
    return (bid_volume - ask_volume) / denom


def compute_imbalance(
    book: OrderbookSnapshot,
    near_depth: int = NEAR_DEPTH,
    deep_depth: int = DEEP_DEPTH,
) -> OrderbookImbalance:
    """Compute weighted (near), deep and divergence OBI for a snapshot.

    An empty book on both sides yields all zeros.
    """
    weighted = _ratio(
        volume_at_depth(book.bids, near_depth, ascending=False),
        volume_at_depth(book.asks, near_depth, ascending=True),
    )
    deep = _ratio(
        volume_at_depth(book.bids, deep_depth, ascending=False),
        volume_at_depth(book.asks, deep_depth, ascending=True),
    )
    return OrderbookImbalance(weighted=weighted, deep=deep, divergence=weighted - deep)
