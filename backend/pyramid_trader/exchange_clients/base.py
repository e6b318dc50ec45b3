"""
ExchangeClient Abstract Base Class

Interface the pair processor uses to talk to an exchange. Prices and sizes
are floats in quote / base currency; candles come back oldest first.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class ExchangeClient(ABC):
    """Abstract base class for exchange clients used by the trading cycle."""

    @abstractmethod
    async def get_candles(self, pair: str, timeframe: str = "15m", limit: int = 100) -> List[Dict[str, Any]]:
        """
        Get OHLCV candles for a pair.

        Returns:
            List of dicts, oldest first:
            [{"timestamp": ..., "open": ..., "high": ..., "low": ..., "close": ..., "volume": ...}]
        """
        pass

    @abstractmethod
    async def get_ticker(self, pair: str) -> Dict[str, float]:
        """
        Get the current ticker.

        Returns:
            {"price": ..., "bid": ..., "ask": ..., "volume": ...}
        """
        pass

    @abstractmethod
    async def place_order(
        self,
        pair: str,
        side: str,
        volume: float,
        price: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Place an order (market if price is None).

        Args:
            side: "buy" or "sell"

        Returns:
            {"order_id": ..., "status": ..., "price": <fill or limit price>}
        """
        pass

    @abstractmethod
    async def get_balance(self, currency: str = "USD") -> float:
        """Get available balance for a currency."""
        pass
