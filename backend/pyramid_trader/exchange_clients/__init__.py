"""
Exchange Client Abstraction Layer

The trading cycle only needs four capabilities from an exchange: candles,
ticker, order placement and balance. Signing, retries and lot-size rounding
live inside concrete clients.
"""

from pyramid_trader.exchange_clients.base import ExchangeClient

__all__ = ["ExchangeClient"]
