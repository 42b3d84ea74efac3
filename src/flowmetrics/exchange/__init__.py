"""Exchange client layer -- market data via ccxt."""

from flowmetrics.exchange.ccxt_client import CcxtExchangeClient
from flowmetrics.exchange.client import ExchangeClient

__all__ = ["CcxtExchangeClient", "ExchangeClient"]
