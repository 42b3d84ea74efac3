"""Tests for the composite trade signal."""

from flowmetrics.config import SignalSettings
from flowmetrics.metrics.composite import (
    compose_trade_signal,
    count_buy_conditions,
    count_sell_conditions,
)
from flowmetrics.models import TradeSignal


class TestConditionCounts:
    """Tests for per-direction confirmation counts."""

    def test_all_bullish(self) -> None:
        assert count_buy_conditions(0.5, 2.0, 1.0, 0.5, 0.5, SignalSettings()) == 5

    def test_thresholds_are_strict(self) -> None:
        """Values sitting exactly on a threshold do not count."""
        s = SignalSettings()
        assert count_buy_conditions(0.2, 0.8, 0.0, 0.3, 0.2, s) == 0
        assert count_sell_conditions(-0.2, -0.8, 0.0, -0.3, -0.2, s) == 0

    def test_all_bearish(self) -> None:
        assert count_sell_conditions(-0.5, -2.0, -1.0, -0.5, -0.5, SignalSettings()) == 5


class TestComposeTradeSignal:
    """Tests for compose_trade_signal."""

    def test_three_buy_conditions(self) -> None:
        signal = compose_trade_signal(0.3, 1.0, 1.0, 0.0, 0.0, exhaustion=False)
        assert signal is TradeSignal.BUY

    def test_three_sell_conditions(self) -> None:
        signal = compose_trade_signal(-0.3, -1.0, -1.0, 0.0, 0.0, exhaustion=False)
        assert signal is TradeSignal.SELL

    def test_two_conditions_neutral(self) -> None:
        signal = compose_trade_signal(0.3, 1.0, 0.0, 0.0, 0.0, exhaustion=False)
        assert signal is TradeSignal.NEUTRAL

    def test_exhaustion_overrides(self) -> None:
        signal = compose_trade_signal(0.5, 2.0, 1.0, 0.5, 0.5, exhaustion=True)
        assert signal is TradeSignal.NEUTRAL

    def test_obi_on_threshold_not_counted(self) -> None:
        signal = compose_trade_signal(0.2, 1.0, 1.0, 0.0, 0.0, exhaustion=False)
        assert signal is TradeSignal.NEUTRAL

    def test_custom_min_conditions(self) -> None:
        settings = SignalSettings(min_conditions=2)
        signal = compose_trade_signal(0.3, 1.0, 0.0, 0.0, 0.0, False, settings=settings)
        assert signal is TradeSignal.BUY

    def test_signal_serializes_as_int(self) -> None:
        assert int(compose_trade_signal(-0.3, -1.0, -1.0, 0.0, 0.0, False)) == -1
