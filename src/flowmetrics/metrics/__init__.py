"""Streaming order flow metrics.

Provides the rolling trade buffer, the pure computation modules (statistics,
order book imbalance, derived series, heuristic scores, composite signal) and
the MetricsEngine that folds them into a MetricsSnapshot per pass.
"""

from flowmetrics.metrics.buffer import RollingTradeBuffer
from flowmetrics.metrics.composite import compose_trade_signal
from flowmetrics.metrics.derived import DerivedSeries, compute_derived
from flowmetrics.metrics.engine import MetricsEngine
from flowmetrics.metrics.heuristics import (
    ExhaustionConditions,
    absorption_score,
    breakout_score,
    detect_exhaustion,
    exhaustion_conditions,
    regime_weight,
    sweep_fade_score,
)
from flowmetrics.metrics.imbalance import OrderbookImbalance, compute_imbalance

__all__ = [
    "DerivedSeries",
    "ExhaustionConditions",
    "MetricsEngine",
    "OrderbookImbalance",
    "RollingTradeBuffer",
    "absorption_score",
    "breakout_score",
    "compose_trade_signal",
    "compute_derived",
    "compute_imbalance",
    "detect_exhaustion",
    "exhaustion_conditions",
    "regime_weight",
    "sweep_fade_score",
]
