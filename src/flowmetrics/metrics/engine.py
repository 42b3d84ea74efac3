"""Metrics engine orchestrating all order flow modules into one snapshot.

The MetricsEngine owns a single RollingTradeBuffer and, on each compute
pass:
1. Computes order book imbalance from the supplied snapshot
2. Recomputes the derived series (delta windows, z-score, CVD slope, VWAP)
3. Evaluates the heuristic scores (sweep/fade, breakout, regime, absorption)
4. Checks exhaustion against the mid price change since the previous pass
5. Folds everything into a composite trade signal

The engine is synchronous and not safe for concurrent use; callers serialize
ingest and compute for an instrument (see InstrumentSession).
"""

from flowmetrics.config import MetricsSettings, SignalSettings
from flowmetrics.logging import get_logger
from flowmetrics.metrics.buffer import RollingTradeBuffer
from flowmetrics.metrics.composite import compose_trade_signal
from flowmetrics.metrics.derived import compute_derived
from flowmetrics.metrics.heuristics import (
    absorption_score,
    breakout_score,
    exhaustion_conditions,
    regime_weight,
    sweep_fade_score,
)
from flowmetrics.metrics.imbalance import compute_imbalance
from flowmetrics.metrics.statistics import EPSILON
from flowmetrics.models import MetricsSnapshot, OrderbookSnapshot, TradeRecord, TradeSignal

logger = get_logger(__name__)


class MetricsEngine:
    """Streaming order flow metrics for a single instrument.

    Args:
        metrics_settings: Window horizons and history capacities.
        signal_settings: Composite signal thresholds.
    """

    def __init__(
        self,
        metrics_settings: MetricsSettings | None = None,
        signal_settings: SignalSettings | None = None,
    ) -> None:
        self._metrics_settings = metrics_settings or MetricsSettings()
        self._signal_settings = signal_settings or SignalSettings()
        self._buffer = RollingTradeBuffer(self._metrics_settings)

    @property
    def buffer(self) -> RollingTradeBuffer:
        """The underlying trade buffer (read access for diagnostics and tests)."""
        return self._buffer

    def ingest(self, trade: TradeRecord) -> bool:
        """Feed one trade into the buffer. Returns False if it was dropped."""
        return self._buffer.ingest(trade)

    def compute(self, book: OrderbookSnapshot) -> MetricsSnapshot:
        """Run one metrics pass against the given order book snapshot.

        Updates ``last_mid_price`` and, once enough trades exist, the
        volatility history. Never raises on sparse or degenerate data.
        """
        buf = self._buffer
        ms = self._metrics_settings

        imbalance = compute_imbalance(book)
        derived = compute_derived(buf)

        best_bid = book.best_bid() or 0.0
        best_ask = book.best_ask() or 0.0
        spread = best_ask - best_bid
        mid_price = (best_bid + best_ask) / 2

        if buf.last_mid_price > EPSILON:
            price_change_pct = (mid_price - buf.last_mid_price) / buf.last_mid_price * 100
        else:
            price_change_pct = 0.0
        buf.last_mid_price = mid_price

        trades = buf.window
        sweep = sweep_fade_score(trades, spread, mid_price, window=ms.sweep_window)
        breakout = breakout_score(
            trades,
            buf.volume_history,
            derived.delta1s,
            window=ms.breakout_window,
            atr_window=ms.atr_window,
        )
        regime = regime_weight(trades, buf.volatility_history, window=ms.regime_window)
        absorption = absorption_score(
            trades, buf.delta_history, derived.delta1s, window=ms.absorption_window
        )

        conditions = exhaustion_conditions(
            cvd_session=buf.cvd_session,
            price_change_pct=price_change_pct,
            delta_history=buf.delta_history,
            cvd_slope=derived.cvd_slope,
            volume_history=buf.volume_history,
        )

        signal = compose_trade_signal(
            obi_weighted=imbalance.weighted,
            delta_z=derived.delta_z,
            cvd_slope=derived.cvd_slope,
            sweep_fade_score=sweep,
            breakout_score=breakout,
            exhaustion=conditions.detected,
            settings=self._signal_settings,
        )

        if signal is not TradeSignal.NEUTRAL:
            logger.info(
                "trade_signal",
                signal=signal.name,
                price=mid_price,
                obi_weighted=round(imbalance.weighted, 4),
                delta_z=round(derived.delta_z, 4),
                cvd_slope=round(derived.cvd_slope, 4),
                sweep_fade=round(sweep, 4),
                breakout=round(breakout, 4),
            )
        elif conditions.detected:
            logger.debug("exhaustion_detected", conditions=conditions.count, price=mid_price)

        return MetricsSnapshot(
            price=mid_price,
            obi_weighted=imbalance.weighted,
            obi_deep=imbalance.deep,
            obi_divergence=imbalance.divergence,
            delta1s=derived.delta1s,
            delta5s=derived.delta5s,
            delta_z=derived.delta_z,
            cvd_session=buf.cvd_session,
            cvd_slope=derived.cvd_slope,
            vwap=derived.vwap,
            total_volume=buf.total_volume,
            total_notional=buf.total_notional,
            absorption_score=absorption,
            sweep_fade_score=sweep,
            breakout_score=breakout,
            regime_weight=regime,
            trade_count=buf.trade_count,
            trade_signal=signal,
            exhaustion=conditions.detected,
        )
