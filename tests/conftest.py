"""Shared test fixtures for the order flow metrics service."""

import pytest

from flowmetrics.config import (
    AppSettings,
    ExchangeSettings,
    MetricsSettings,
    OpenInterestSettings,
    SignalSettings,
)


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with test defaults (mock open interest, dummy API keys)."""
    return AppSettings(
        log_level="DEBUG",
        exchange=ExchangeSettings(
            exchange_id="binanceusdm",
            symbol="BTC/USDT:USDT",
            api_key="test-api-key",  # type: ignore[arg-type]
            api_secret="test-api-secret",  # type: ignore[arg-type]
        ),
        metrics=MetricsSettings(),
        signal=SignalSettings(),
        open_interest=OpenInterestSettings(mock=True),
    )


@pytest.fixture
def metrics_settings() -> MetricsSettings:
    """Default metrics settings."""
    return MetricsSettings()


@pytest.fixture
def signal_settings() -> SignalSettings:
    """Default signal settings."""
    return SignalSettings()
