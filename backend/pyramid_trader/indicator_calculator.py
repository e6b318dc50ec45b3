"""
Indicator Calculator for the trading cycle

Turns an ordered list of price bars (oldest first) into an IndicatorSnapshot.
Every function is total: insufficient data resolves to a neutral default
(RSI 50, ADX 20, volume ratio 1.0, everything else 0) so downstream risk
logic leans toward inaction instead of failing.

Supports:
- RSI (Wilder smoothing)
- MACD (signal line replayed over every prefix, or single-pass)
- ADX (Wilder smoothing)
- SMA / EMA
- Volume ratio
- Momentum (fractional change)
"""

import logging
import math
from typing import Any, List, Mapping, Sequence

from pyramid_trader.schemas import IndicatorSnapshot, MACDResult, PriceBar

logger = logging.getLogger(__name__)

NEUTRAL_RSI = 50.0
NEUTRAL_ADX = 20.0
NEUTRAL_VOLUME_RATIO = 1.0

# 15-minute bars: 4 bars = 1h, 16 bars = 4h
MOMENTUM_1H_BARS = 4
MOMENTUM_4H_BARS = 16
RECENT_RANGE_BARS = 20


def _series(candles: Sequence[Any], key: str) -> List[float]:
    """Extract one OHLCV column from PriceBar models or exchange candle dicts"""
    if candles and isinstance(candles[0], Mapping):
        return [float(c[key]) for c in candles]
    return [float(getattr(c, key)) for c in candles]


def classify_regime(
    adx: float,
    choppy_threshold: float = 20.0,
    strong_threshold: float = 35.0,
) -> str:
    """
    Coarse trend-strength classification from ADX

    <choppy -> choppy, <25 -> weak, <=strong -> moderate, >strong -> strong
    """
    if adx < choppy_threshold:
        return "choppy"
    if adx < 25:
        return "weak"
    if adx <= strong_threshold:
        return "moderate"
    return "strong"


class IndicatorCalculator:
    """
    Calculates technical indicators from candle data

    Stateless: nothing is carried between calls, each snapshot is
    recomputed from the bar window it is given.
    """

    def __init__(self, incremental_macd_signal: bool = False):
        """
        Args:
            incremental_macd_signal: Build the MACD series in one pass instead
                of replaying both EMAs over every prefix. Produces the same
                values; the replay is kept as the reference behavior.
        """
        self.incremental_macd_signal = incremental_macd_signal

    def calculate_all_indicators(self, candles: Sequence[PriceBar | Mapping[str, Any]]) -> IndicatorSnapshot:
        """
        Calculate the full indicator snapshot from candle data

        Args:
            candles: Bars oldest first; the last one is treated as the most recent

        Returns:
            IndicatorSnapshot (all neutral defaults for an empty sequence)
        """
        if not candles:
            return IndicatorSnapshot()

        closes = _series(candles, "close")
        highs = _series(candles, "high")
        lows = _series(candles, "low")
        volumes = _series(candles, "volume")

        recent_highs = highs[-RECENT_RANGE_BARS:]
        recent_lows = lows[-RECENT_RANGE_BARS:]

        line, signal, histogram = self.calculate_macd(closes, 12, 26, 9)

        return IndicatorSnapshot(
            rsi=self.calculate_rsi(closes, 14),
            macd=MACDResult(line=line, signal=signal, histogram=histogram),
            adx=self.calculate_adx(highs, lows, closes, 14),
            volume_ratio=self.calculate_volume_ratio(volumes, 20),
            momentum_1h=self.calculate_momentum(closes, min(MOMENTUM_1H_BARS, len(closes) - 1)),
            momentum_4h=self.calculate_momentum(closes, min(MOMENTUM_4H_BARS, len(closes) - 1)),
            recent_high=max(recent_highs),
            recent_low=min(recent_lows),
            ema200=self.calculate_ema(closes, 200),
        )

    def calculate_rsi(self, prices: List[float], period: int = 14) -> float:
        """Calculate RSI (Relative Strength Index), 50 when data is short"""
        if len(prices) < period + 1:
            return NEUTRAL_RSI

        changes = [prices[i] - prices[i - 1] for i in range(1, len(prices))]

        gains = [change if change > 0 else 0.0 for change in changes]
        losses = [-change if change < 0 else 0.0 for change in changes]

        # Initial average gain/loss over the first period deltas
        avg_gain = sum(gains[:period]) / period
        avg_loss = sum(losses[:period]) / period

        # Smooth using Wilder's method
        for i in range(period, len(changes)):
            avg_gain = (avg_gain * (period - 1) + gains[i]) / period
            avg_loss = (avg_loss * (period - 1) + losses[i]) / period

        if avg_loss == 0:
            return 100.0

        rs = avg_gain / avg_loss
        rsi = 100 - (100 / (1 + rs))
        return min(100.0, max(0.0, rsi))

    def calculate_sma(self, prices: List[float], period: int) -> float:
        """Mean of the last `period` values (all values if fewer)"""
        if not prices:
            return 0.0
        if len(prices) < period:
            return sum(prices) / len(prices)
        return sum(prices[-period:]) / period

    def calculate_ema(self, prices: List[float], period: int) -> float:
        """Calculate EMA seeded with the SMA of the first `period` values"""
        if not prices:
            return 0.0
        if len(prices) <= period:
            return sum(prices) / len(prices)

        multiplier = 2 / (period + 1)
        ema = sum(prices[:period]) / period

        for price in prices[period:]:
            ema = price * multiplier + ema * (1 - multiplier)

        return ema

    def _ema_series(self, prices: List[float], period: int) -> List[float]:
        """EMA value for every prefix prices[:i + 1], computed in one pass"""
        multiplier = 2 / (period + 1)
        values = []
        running_sum = 0.0
        ema = 0.0
        for i, price in enumerate(prices):
            if i < period:
                running_sum += price
                ema = running_sum / (i + 1)
            else:
                ema = price * multiplier + ema * (1 - multiplier)
            values.append(ema)
        return values

    def calculate_macd(
        self,
        prices: List[float],
        fast_period: int = 12,
        slow_period: int = 26,
        signal_period: int = 9
    ) -> tuple[float, float, float]:
        """
        Calculate MACD (Moving Average Convergence Divergence)

        Returns:
            (macd_line, signal_line, histogram), zeros when data is short
        """
        if len(prices) < slow_period + signal_period - 1:
            return 0.0, 0.0, 0.0

        macd_line = self.calculate_ema(prices, fast_period) - self.calculate_ema(prices, slow_period)

        # MACD value at every bar from slow_period - 1 onward
        if self.incremental_macd_signal:
            fast_series = self._ema_series(prices, fast_period)
            slow_series = self._ema_series(prices, slow_period)
            macd_values = [
                fast_series[i] - slow_series[i] for i in range(slow_period - 1, len(prices))
            ]
        else:
            macd_values = []
            for i in range(slow_period - 1, len(prices)):
                prefix = prices[:i + 1]
                macd_values.append(
                    self.calculate_ema(prefix, fast_period) - self.calculate_ema(prefix, slow_period)
                )

        signal_line = self.calculate_ema(macd_values, signal_period)
        histogram = macd_line - signal_line

        return macd_line, signal_line, histogram

    def calculate_adx(
        self,
        highs: List[float],
        lows: List[float],
        closes: List[float],
        period: int = 14
    ) -> float:
        """
        Calculate ADX (Average Directional Index) using Wilder's smoothing

        Trend strength: <20 weak, 20-40 moderate, >40 strong. Returns 20 when
        there are fewer than 2 * period + 1 bars.
        """
        n = min(len(highs), len(lows), len(closes))
        if n < period * 2 + 1:
            return NEUTRAL_ADX

        true_ranges = []
        plus_dms = []
        minus_dms = []

        for i in range(1, n):
            true_ranges.append(max(
                highs[i] - lows[i],
                abs(highs[i] - closes[i - 1]),
                abs(lows[i] - closes[i - 1]),
            ))

            up_move = highs[i] - highs[i - 1]
            down_move = lows[i - 1] - lows[i]

            plus_dms.append(up_move if up_move > down_move and up_move > 0 else 0.0)
            minus_dms.append(down_move if down_move > up_move and down_move > 0 else 0.0)

        smoothed_tr = sum(true_ranges[:period])
        smoothed_plus_dm = sum(plus_dms[:period])
        smoothed_minus_dm = sum(minus_dms[:period])

        dx_values = []
        for i in range(period, len(true_ranges)):
            smoothed_tr = smoothed_tr - (smoothed_tr / period) + true_ranges[i]
            smoothed_plus_dm = smoothed_plus_dm - (smoothed_plus_dm / period) + plus_dms[i]
            smoothed_minus_dm = smoothed_minus_dm - (smoothed_minus_dm / period) + minus_dms[i]

            if smoothed_tr == 0:
                continue

            plus_di = (smoothed_plus_dm / smoothed_tr) * 100
            minus_di = (smoothed_minus_dm / smoothed_tr) * 100

            di_sum = plus_di + minus_di
            dx_values.append(0.0 if di_sum == 0 else abs(plus_di - minus_di) / di_sum * 100)

        if not dx_values:
            return NEUTRAL_ADX

        recent_dx = dx_values[-period:]
        adx = sum(recent_dx) / len(recent_dx)
        if math.isnan(adx):
            logger.debug("ADX resolved to NaN, using neutral default")
            return NEUTRAL_ADX

        return min(100.0, max(0.0, adx))

    def calculate_volume_ratio(self, volumes: List[float], period: int = 20) -> float:
        """Latest volume relative to its recent average (1.0 = average)"""
        if not volumes:
            return NEUTRAL_VOLUME_RATIO

        avg_volume = self.calculate_sma(volumes, min(period, len(volumes)))
        if avg_volume <= 0:
            return NEUTRAL_VOLUME_RATIO

        return volumes[-1] / avg_volume

    def calculate_momentum(self, prices: List[float], period: int = 10) -> float:
        """Fractional change over `period` bars (0.015 = +1.5%)"""
        if period < 0 or len(prices) < period + 1:
            return 0.0

        current = prices[-1]
        previous = prices[-1 - period]
        if previous == 0:
            return 0.0

        return (current - previous) / previous
