"""Stateless numeric helpers shared by the metrics modules.

All functions accept any sequence of floats and return 0.0 instead of raising
when the input is too short to be meaningful.
"""

import math
from collections.abc import Sequence

#: Guard for divisions whose denominator can collapse to zero.
EPSILON = 1e-12


def clamp(value: float, lower: float, upper: float) -> float:
    """Clamp value into [lower, upper]."""
    return max(lower, min(upper, value))


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean, 0.0 for empty input."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def stddev(values: Sequence[float]) -> float:
    """Population standard deviation (divides by n, not n-1).

    Returns 0.0 for empty input.
    """
    if not values:
        return 0.0
    m = mean(values)
    variance = sum((v - m) ** 2 for v in values) / len(values)
    return math.sqrt(variance)


def ols_slope(values: Sequence[float]) -> float:
    """Least-squares slope of values against their index 0..n-1.

    Closed form:
        slope = (n*Sxy - Sx*Sy) / (n*Sxx - Sx^2)

    The denominator depends only on n, so the epsilon guard only fires for
    n < 2; it is kept so callers never see a ZeroDivisionError.

    Args:
        values: Ordered samples, oldest first.

    Returns:
        Slope per index step, or 0.0 if fewer than 2 samples.
    """
    n = len(values)
    if n < 2:
        return 0.0

    sum_x = n * (n - 1) / 2
    sum_xx = (n - 1) * n * (2 * n - 1) / 6
    sum_y = sum(values)
    sum_xy = sum(i * y for i, y in enumerate(values))

    denom = n * sum_xx - sum_x * sum_x
    if abs(denom) < EPSILON:
        return 0.0
    return (n * sum_xy - sum_x * sum_y) / denom


def atr(prices: Sequence[float], window: int = 14) -> float:
    """Simplified Average True Range over consecutive trade prices.

    Mean absolute difference between consecutive prices over the last
    ``min(window, len(prices) - 1)`` differences.

    Args:
        prices: Trade prices, oldest first.
        window: Maximum number of differences to average.

    Returns:
        ATR value, or 0.0 if fewer than 2 prices.
    """
    if len(prices) < 2:
        return 0.0

    ranges = [abs(prices[i] - prices[i - 1]) for i in range(1, len(prices))]
    size = min(window, len(ranges))
    return sum(ranges[-size:]) / size


def simple_returns(prices: Sequence[float]) -> list[float]:
    """Period-over-period simple returns; zero-priced bars contribute 0.0."""
    returns = []
    for i in range(1, len(prices)):
        prev = prices[i - 1]
        returns.append((prices[i] - prev) / prev if abs(prev) > EPSILON else 0.0)
    return returns
