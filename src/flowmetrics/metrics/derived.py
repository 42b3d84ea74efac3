"""Derived series computed from buffer state on each metrics pass.

delta1s/delta5s are recomputed against the reference timestamp of the pass,
independently of the per-ingest values already stored in delta_history.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from flowmetrics.metrics.buffer import RollingTradeBuffer
from flowmetrics.metrics.statistics import EPSILON, mean, ols_slope, stddev
from flowmetrics.models import now_ms

#: delta_history entries needed before a z-score is reported.
MIN_DELTA_HISTORY = 5


@dataclass(frozen=True)
class DerivedSeries:
    """Delta windows, delta z-score, CVD slope and session VWAP."""

    delta1s: float
    delta5s: float
    delta_z: float
    cvd_slope: float
    vwap: float


def compute_delta_z(delta1s: float, delta_history: Sequence[float]) -> float:
    """Z-score of delta1s against delta_history.

    Returns 0.0 with fewer than 5 history entries or a flat history.
    """
    if len(delta_history) < MIN_DELTA_HISTORY:
        return 0.0
    std = stddev(delta_history)
    if std < EPSILON:
        return 0.0
    return (delta1s - mean(delta_history)) / std


def compute_vwap(total_notional: float, total_volume: float) -> float:
    """Session VWAP, 0.0 before any volume has traded."""
    if total_volume <= EPSILON:
        return 0.0
    return total_notional / total_volume


def reference_timestamp(buffer: RollingTradeBuffer) -> int:
    """Latest trade timestamp, or the wall clock when the window is empty."""
    latest = buffer.latest_timestamp
    return latest if latest is not None else now_ms()


def compute_derived(buffer: RollingTradeBuffer, reference_ms: int | None = None) -> DerivedSeries:
    """Compute all derived series from buffer state.

    Args:
        buffer: Trade buffer to read. Not mutated.
        reference_ms: Timestamp the delta windows end at. Defaults to
            ``reference_timestamp(buffer)``.
    """
    ref = reference_ms if reference_ms is not None else reference_timestamp(buffer)
    delta1s, delta5s = buffer.window_deltas(ref)
    return DerivedSeries(
        delta1s=delta1s,
        delta5s=delta5s,
        delta_z=compute_delta_z(delta1s, buffer.delta_history),
        cvd_slope=ols_slope(buffer.cvd_history),
        vwap=compute_vwap(buffer.total_notional, buffer.total_volume),
    )
