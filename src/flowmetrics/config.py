"""Configuration system using pydantic-settings with environment variable loading."""

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExchangeSettings(BaseSettings):
    """Market data source settings (any ccxt exchange id)."""

    model_config = SettingsConfigDict(env_prefix="EXCHANGE_")

    exchange_id: str = "binanceusdm"
    symbol: str = "BTC/USDT:USDT"
    api_key: SecretStr = SecretStr("")
    api_secret: SecretStr = SecretStr("")


class MetricsSettings(BaseSettings):
    """Rolling window horizons and history capacities for the metrics engine.

    All fields configurable via METRICS_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="METRICS_")

    window_ms: int = 10_000  # trade window horizon
    delta_history_size: int = 60
    cvd_history_size: int = 60
    volume_history_size: int = 100
    volatility_history_size: int = 3600  # roughly one hour of compute passes

    atr_window: int = 14
    sweep_window: int = 30
    breakout_window: int = 15
    absorption_window: int = 60
    regime_window: int = 30


class SignalSettings(BaseSettings):
    """Thresholds for the composite trade signal.

    Sell thresholds mirror the buy thresholds with the sign flipped.
    All fields configurable via SIGNAL_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="SIGNAL_")

    obi_threshold: float = 0.2
    delta_z_threshold: float = 0.8
    sweep_threshold: float = 0.3
    breakout_threshold: float = 0.2
    min_conditions: int = 3  # of 5 conditions needed to fire


class OpenInterestSettings(BaseSettings):
    """Open interest polling configuration."""

    model_config = SettingsConfigDict(env_prefix="OI_")

    enabled: bool = True
    fetch_interval_ms: int = 60_000  # tracker-side rate limit
    poll_interval: float = 5.0  # seconds between monitor wake-ups
    fetch_timeout: float = 10.0  # seconds before a fetch counts as failed
    history_size: int = 60
    mock: bool = False  # random-walk source, snapshots labelled MOCK


class FeedSettings(BaseSettings):
    """Trade and order book polling configuration."""

    model_config = SettingsConfigDict(env_prefix="FEED_")

    poll_interval: float = 1.0  # seconds between feed cycles
    trade_limit: int = 200
    orderbook_depth: int = 50


class DashboardSettings(BaseSettings):
    """JSON/WebSocket server configuration."""

    model_config = SettingsConfigDict(env_prefix="DASHBOARD_")

    host: str = "0.0.0.0"
    port: int = 8080
    enabled: bool = True
    update_interval: float = 1.0  # seconds between WebSocket pushes


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    exchange: ExchangeSettings = ExchangeSettings()
    metrics: MetricsSettings = MetricsSettings()
    signal: SignalSettings = SignalSettings()
    open_interest: OpenInterestSettings = OpenInterestSettings()
    feed: FeedSettings = FeedSettings()
    dashboard: DashboardSettings = DashboardSettings()
