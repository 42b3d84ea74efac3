"""Market data layer -- trade/order book polling and open interest tracking."""

from flowmetrics.market_data.feed import MarketFeed, parse_trade
from flowmetrics.market_data.open_interest import (
    OpenInterestMonitor,
    OpenInterestTracker,
    RandomWalkOpenInterest,
)

__all__ = [
    "MarketFeed",
    "OpenInterestMonitor",
    "OpenInterestTracker",
    "RandomWalkOpenInterest",
    "parse_trade",
]
