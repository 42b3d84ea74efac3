"""Custom exceptions for the order flow metrics service.

Numeric degeneracy inside the metrics engine never raises; these cover the
boundaries where an external collaborator can fail.
"""


class FlowMetricsError(Exception):
    """Base exception for all flowmetrics errors."""


class MalformedTradeError(FlowMetricsError):
    """Raised when a raw trade payload cannot be turned into a TradeRecord."""


class OpenInterestFetchError(FlowMetricsError):
    """Raised when the open interest source fails or returns an unusable value."""


class OpenInterestTimeout(OpenInterestFetchError):
    """Raised when the open interest fetch does not complete in time."""


class ExchangeNotConnected(FlowMetricsError):
    """Raised when the exchange client is used before connect()."""
