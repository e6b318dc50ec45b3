"""
Pyramid Trader core

Indicator derivation and position tracking for a single-account trading bot:
- IndicatorCalculator: RSI, MACD, ADX, EMA/SMA, volume ratio, momentum
- PositionLedger: entry / pyramid / exit lifecycle with giveback and
  underwater-loss protections, persisted write-through after every change
"""
