"""Heuristic order flow pattern scores.

Each score is a multi-factor formula over recent trades and buffer histories.
Below its minimum sample count a score returns its neutral default (0.0 or
False) so a cold-started instrument reports flat values rather than noise.

Only ``regime_weight`` has a side effect: it appends the current volatility
to the volatility history it is given.
"""

from collections.abc import MutableSequence, Sequence
from dataclasses import dataclass

from flowmetrics.metrics.statistics import (
    EPSILON,
    atr,
    clamp,
    mean,
    ols_slope,
    simple_returns,
    stddev,
)
from flowmetrics.models import TradeRecord, TradeSide

# Sweep / fade
SWEEP_MIN_TRADES = 10
SWEEP_SPREAD_FRACTION = 0.5  # |price - mid| beyond this share of spread is a sweep
FADE_WEIGHT = 0.3

# Breakout
BREAKOUT_MIN_TRADES = 5
BREAKOUT_VOLUME_TRADES = 5
BREAKOUT_VOLUME_RATIO = 0.8
DELTA_DISAGREE_FACTOR = 0.5
VOLUME_UNCONFIRMED_FACTOR = 0.7

# Regime
REGIME_MIN_TRADES = 5
REGIME_MAX_BUFFER = 1.1  # current vol is never more than 1/1.1 of the max

# Absorption
ABSORPTION_MIN_TRADES = 5
ABSORPTION_RECENT_TRADES = 10
ABSORPTION_DELTA_SAMPLES = 5
ABSORPTION_NEUTRAL_DELTA_STABILITY = 0.5
ABSORPTION_BOOST = 1.3

# Exhaustion
EXHAUSTION_MIN_CONDITIONS = 3
EXHAUSTION_PRICE_CHANGE_PCT = 0.05  # percent: 0.05 means a 0.05% mid move, not 5%
EXHAUSTION_FLAT_CVD_SLOPE = 5.0
EXHAUSTION_VOLUME_SAMPLES = 20
EXHAUSTION_VOLUME_DECLINE = 0.8
EXHAUSTION_DELTA_SAMPLES = 5
EXHAUSTION_DELTA_TOLERANCE = 1.1


def _sign(value: float) -> int:
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


def sweep_fade_score(
    trades: Sequence[TradeRecord],
    spread: float,
    mid_price: float,
    window: int = 30,
) -> float:
    """Directional aggression of recent trades relative to the spread.

    Trades printing more than half a spread away from mid are sweeps (they
    crossed through the book); the rest are fades. Each bucket contributes its
    net buy/sell bias, sweeps weighted by their share of volume and fades
    scaled down to 30% of their share.

    Args:
        trades: Trade window, oldest first.
        spread: Best ask minus best bid.
        mid_price: Midpoint of best bid and best ask.
        window: Number of most recent trades to classify.

    Returns:
        Score in [-1, 1]; positive means aggressive buyers dominate.
    """
    if len(trades) < SWEEP_MIN_TRADES or spread < EPSILON:
        return 0.0

    sweep_buy = sweep_sell = fade_buy = fade_sell = 0.0
    for trade in list(trades)[-window:]:
        is_buy = trade.side is TradeSide.BUY
        if abs(trade.price - mid_price) > spread * SWEEP_SPREAD_FRACTION:
            if is_buy:
                sweep_buy += trade.quantity
            else:
                sweep_sell += trade.quantity
        elif is_buy:
            fade_buy += trade.quantity
        else:
            fade_sell += trade.quantity

    total_sweep = sweep_buy + sweep_sell
    total_fade = fade_buy + fade_sell
    total = total_sweep + total_fade
    if total < EPSILON:
        return 0.0

    sweep_net = (sweep_buy - sweep_sell) / total_sweep if total_sweep > 0 else 0.0
    fade_net = (fade_buy - fade_sell) / total_fade if total_fade > 0 else 0.0
    sweep_share = total_sweep / total

    score = sweep_net * sweep_share + fade_net * (1 - sweep_share) * FADE_WEIGHT
    return clamp(score, -1.0, 1.0)


def breakout_score(
    trades: Sequence[TradeRecord],
    volume_history: Sequence[float],
    delta1s: float,
    window: int = 15,
    atr_window: int = 14,
) -> float:
    """Price momentum normalized by ATR, discounted when unconfirmed.

    score = slope(last ``window`` prices) / ATR
            * (1.0 if delta1s agrees with the slope else 0.5)
            * (1.0 if last-5 volume > 0.8 * average volume else 0.7)

    Returns:
        Score in [-1, 1]; +1 is a strong up move.
    """
    if len(trades) < BREAKOUT_MIN_TRADES:
        return 0.0

    trade_list = list(trades)
    prices = [t.price for t in trade_list[-window:]]
    if len(prices) < 2:
        return 0.0

    slope = ols_slope(prices)
    range_ = atr([t.price for t in trade_list], atr_window)
    if range_ < EPSILON:
        return 0.0

    normalized = slope / range_
    delta_confirm = 1.0 if _sign(delta1s) == _sign(slope) else DELTA_DISAGREE_FACTOR

    recent_volume = sum(t.quantity for t in trade_list[-BREAKOUT_VOLUME_TRADES:])
    if volume_history:
        avg_volume = mean(volume_history)
    else:
        avg_volume = recent_volume / BREAKOUT_VOLUME_TRADES
    volume_confirm = (
        1.0 if recent_volume > avg_volume * BREAKOUT_VOLUME_RATIO else VOLUME_UNCONFIRMED_FACTOR
    )

    return clamp(normalized * delta_confirm * volume_confirm, -1.0, 1.0)


def regime_weight(
    trades: Sequence[TradeRecord],
    volatility_history: MutableSequence[float],
    window: int = 30,
) -> float:
    """Current volatility relative to the highest recently observed.

    Appends the current volatility (std-dev of simple returns over the last
    ``window`` prices) to ``volatility_history`` before normalizing.

    Returns:
        Weight in [0, 1]; high values flag a volatile regime.
    """
    if len(trades) < REGIME_MIN_TRADES:
        return 0.0

    prices = [t.price for t in list(trades)[-window:]]
    if len(prices) < 2:
        return 0.0

    current = stddev(simple_returns(prices))
    volatility_history.append(current)

    max_vol = max(max(volatility_history), current * REGIME_MAX_BUFFER)
    if max_vol < EPSILON:
        return 0.0
    return clamp(current / max_vol, 0.0, 1.0)


def absorption_score(
    trades: Sequence[TradeRecord],
    delta_history: Sequence[float],
    delta1s: float,
    window: int = 60,
) -> float:
    """Heavy volume that fails to move price, a sign of passive liquidity.

    Product of four factors over the last ``window`` trades:
    volume intensity, price stability, side dominance and delta stability.
    Boosted by 1.3 when intensity and stability are both high, capped at 1.

    Returns:
        Score in [0, 1]; 0.7 and above suggests a large resting participant.
    """
    if len(trades) < ABSORPTION_MIN_TRADES:
        return 0.0

    recent = list(trades)[-window:]
    if len(recent) < ABSORPTION_MIN_TRADES:
        return 0.0

    prices = [t.price for t in recent]
    quantities = [t.quantity for t in recent]

    avg_volume = mean(quantities)
    last_quantities = quantities[-ABSORPTION_RECENT_TRADES:]
    recent_volume = sum(last_quantities) / len(last_quantities)
    intensity = min(2.0, recent_volume / avg_volume) / 2 if avg_volume > EPSILON else 0.0

    avg_price = mean(prices)
    price_range = (max(prices) - min(prices)) / avg_price if avg_price > EPSILON else 0.0
    # 1% range maps to zero stability
    stability = max(0.0, 1 - price_range * 100)

    last_trades = recent[-ABSORPTION_RECENT_TRADES:]
    buys = sum(1 for t in last_trades if t.side is TradeSide.BUY)
    dominance = abs(buys - (len(last_trades) - buys)) / len(last_trades)

    if len(delta_history) >= ABSORPTION_DELTA_SAMPLES:
        last_deltas = list(delta_history)[-ABSORPTION_DELTA_SAMPLES:]
        delta_stability = 1 - min(1.0, stddev(last_deltas) / (abs(delta1s) + EPSILON))
    else:
        delta_stability = ABSORPTION_NEUTRAL_DELTA_STABILITY

    score = intensity * stability * (0.5 + dominance * 0.5) * (0.7 + delta_stability * 0.3)
    if intensity > 0.5 and stability > 0.8:
        score *= ABSORPTION_BOOST

    return clamp(score, 0.0, 1.0)


@dataclass(frozen=True)
class ExhaustionConditions:
    """The five independent exhaustion checks."""

    cvd_price_divergence: bool
    delta_reversal: bool
    cvd_flat: bool
    volume_declining: bool
    delta_fading: bool

    @property
    def count(self) -> int:
        return sum(
            (
                self.cvd_price_divergence,
                self.delta_reversal,
                self.cvd_flat,
                self.volume_declining,
                self.delta_fading,
            )
        )

    @property
    def detected(self) -> bool:
        return self.count >= EXHAUSTION_MIN_CONDITIONS


def exhaustion_conditions(
    cvd_session: float,
    price_change_pct: float,
    delta_history: Sequence[float],
    cvd_slope: float,
    volume_history: Sequence[float],
) -> ExhaustionConditions:
    """Evaluate each exhaustion condition independently.

    Args:
        cvd_session: Cumulative session volume delta.
        price_change_pct: Mid price change since the previous pass, in percent.
        delta_history: Per-trade delta1s history, oldest first.
        cvd_slope: OLS slope of the CVD history.
        volume_history: Per-trade quantities, oldest first.
    """
    divergence = (cvd_session > 0 and price_change_pct < -EXHAUSTION_PRICE_CHANGE_PCT) or (
        cvd_session < 0 and price_change_pct > EXHAUSTION_PRICE_CHANGE_PCT
    )

    deltas = list(delta_history)
    reversal = False
    if len(deltas) >= 2:
        last_sign = _sign(deltas[-1])
        prev_sign = _sign(deltas[-2])
        reversal = last_sign != prev_sign and last_sign != 0 and prev_sign != 0

    flat = abs(cvd_slope) < EXHAUSTION_FLAT_CVD_SLOPE

    volumes = list(volume_history)
    declining = False
    if len(volumes) >= EXHAUSTION_VOLUME_SAMPLES:
        recent10 = sum(volumes[-10:])
        prior10 = sum(volumes[-20:-10])
        declining = recent10 < prior10 * EXHAUSTION_VOLUME_DECLINE

    fading = False
    if len(deltas) >= EXHAUSTION_DELTA_SAMPLES:
        last = deltas[-EXHAUSTION_DELTA_SAMPLES:]
        fading = all(
            abs(last[i]) <= abs(last[i - 1]) * EXHAUSTION_DELTA_TOLERANCE
            for i in range(1, len(last))
        )

    return ExhaustionConditions(
        cvd_price_divergence=divergence,
        delta_reversal=reversal,
        cvd_flat=flat,
        volume_declining=declining,
        delta_fading=fading,
    )


def detect_exhaustion(
    cvd_session: float,
    price_change_pct: float,
    delta_history: Sequence[float],
    cvd_slope: float,
    volume_history: Sequence[float],
) -> bool:
    """True when at least 3 of the 5 exhaustion conditions hold."""
    return exhaustion_conditions(
        cvd_session, price_change_pct, delta_history, cvd_slope, volume_history
    ).detected
