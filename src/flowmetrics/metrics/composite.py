"""Composite trade signal from order flow confirmations.

Five independent confirmations are counted per direction. A signal fires
when enough of them agree and the move is not flagged as exhausted.
"""

from flowmetrics.config import SignalSettings
from flowmetrics.models import TradeSignal


def count_buy_conditions(
    obi_weighted: float,
    delta_z: float,
    cvd_slope: float,
    sweep_fade_score: float,
    breakout_score: float,
    settings: SignalSettings,
) -> int:
    """Number of bullish confirmations (0-5)."""
    return sum(
        (
            obi_weighted > settings.obi_threshold,
            delta_z > settings.delta_z_threshold,
            cvd_slope > 0,
            sweep_fade_score > settings.sweep_threshold,
            breakout_score > settings.breakout_threshold,
        )
    )


def count_sell_conditions(
    obi_weighted: float,
    delta_z: float,
    cvd_slope: float,
    sweep_fade_score: float,
    breakout_score: float,
    settings: SignalSettings,
) -> int:
    """Number of bearish confirmations (0-5), thresholds mirrored."""
    return sum(
        (
            obi_weighted < -settings.obi_threshold,
            delta_z < -settings.delta_z_threshold,
            cvd_slope < 0,
            sweep_fade_score < -settings.sweep_threshold,
            breakout_score < -settings.breakout_threshold,
        )
    )


def compose_trade_signal(
    obi_weighted: float,
    delta_z: float,
    cvd_slope: float,
    sweep_fade_score: float,
    breakout_score: float,
    exhaustion: bool,
    settings: SignalSettings | None = None,
) -> TradeSignal:
    """Fold order flow metrics into a BUY / SELL / NEUTRAL signal.

    Buy is checked before sell. Exhaustion always forces NEUTRAL.

    Args:
        obi_weighted: Near-touch order book imbalance.
        delta_z: Z-score of the trailing 1s delta.
        cvd_slope: Slope of the session CVD history.
        sweep_fade_score: Aggression score from sweep/fade classification.
        breakout_score: ATR-normalized momentum score.
        exhaustion: Whether the exhaustion heuristic fired.
        settings: Thresholds; defaults when None.

    Returns:
        TradeSignal.BUY, TradeSignal.SELL or TradeSignal.NEUTRAL.
    """
    s = settings or SignalSettings()
    if exhaustion:
        return TradeSignal.NEUTRAL

    args = (obi_weighted, delta_z, cvd_slope, sweep_fade_score, breakout_score, s)
    if count_buy_conditions(*args) >= s.min_conditions:
        return TradeSignal.BUY
    if count_sell_conditions(*args) >= s.min_conditions:
        return TradeSignal.SELL
    return TradeSignal.NEUTRAL
