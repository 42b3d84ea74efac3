"""Rolling trade buffer: the single mutation point for per-instrument trade state.

Holds the time-bounded trade window, the bounded histories derived from it
(delta, CVD, volume, volatility) and the session accumulators. Every bounded
history is a ``deque`` with ``maxlen`` so the oldest entry drops on overflow.

Window-relative values are measured against trade timestamps, not the wall
clock: if the feed stalls, delta1s/delta5s freeze at their last values
instead of decaying to zero. This keeps replays deterministic.
"""

from collections import deque

from flowmetrics.config import MetricsSettings
from flowmetrics.logging import get_logger
from flowmetrics.models import TradeRecord

logger = get_logger(__name__)

DELTA_1S_MS = 1_000
DELTA_5S_MS = 5_000


class RollingTradeBuffer:
    """Time-bounded trade window plus bounded derived histories.

    Args:
        settings: Window horizon and history capacities. Defaults apply when None.
    """

    def __init__(self, settings: MetricsSettings | None = None) -> None:
        self._settings = settings or MetricsSettings()
        s = self._settings

        self.window: deque[TradeRecord] = deque()
        self.delta_history: deque[float] = deque(maxlen=s.delta_history_size)
        self.cvd_history: deque[float] = deque(maxlen=s.cvd_history_size)
        self.volume_history: deque[float] = deque(maxlen=s.volume_history_size)
        self.volatility_history: deque[float] = deque(maxlen=s.volatility_history_size)

        self.cvd_session = 0.0
        self.total_volume = 0.0
        self.total_notional = 0.0
        self.last_mid_price = 0.0

    @property
    def settings(self) -> MetricsSettings:
        return self._settings

    @property
    def trade_count(self) -> int:
        """Number of trades currently inside the window."""
        return len(self.window)

    @property
    def latest_timestamp(self) -> int | None:
        """Timestamp of the newest trade in the window, or None if empty."""
        return self.window[-1].timestamp if self.window else None

    def ingest(self, trade: TradeRecord) -> bool:
        """Add a trade, update accumulators, evict stale trades, extend histories.

        Malformed trades (non-finite or negative price/quantity) are dropped
        before any state changes.

        Args:
            trade: The executed trade. Timestamps are assumed non-decreasing.

        Returns:
            True if the trade was ingested, False if it was dropped.
        """
        if not trade.is_well_formed:
            logger.debug(
                "trade_dropped_malformed",
                price=trade.price,
                quantity=trade.quantity,
                timestamp=trade.timestamp,
            )
            return False

        self.window.append(trade)
        self.total_volume += trade.quantity
        self.total_notional += trade.quantity * trade.price
        self.cvd_session += trade.signed_quantity

        cutoff = trade.timestamp - self._settings.window_ms
        while self.window and self.window[0].timestamp < cutoff:
            self.window.popleft()

        delta1s, _ = self.window_deltas(trade.timestamp)

        self.delta_history.append(delta1s)
        self.cvd_history.append(self.cvd_session)
        self.volume_history.append(trade.quantity)
        return True

    def window_deltas(self, reference_ms: int) -> tuple[float, float]:
        """Net signed volume over the trailing 1s and 5s before reference_ms.

        Scans the full window on every call; the window is bounded by
        ``window_ms`` so the cost stays proportional to recent trade rate.
        """
        one_sec_cutoff = reference_ms - DELTA_1S_MS
        five_sec_cutoff = reference_ms - DELTA_5S_MS
        delta1s = 0.0
        delta5s = 0.0
        for t in self.window:
            if t.timestamp >= one_sec_cutoff:
                delta1s += t.signed_quantity
            if t.timestamp >= five_sec_cutoff:
                delta5s += t.signed_quantity
        return delta1s, delta5s
