"""Market data, indicator and AI decision schemas"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field

from .base import CamelModel


class PriceBar(CamelModel):
    timestamp: Optional[datetime] = None
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    class Config:
        frozen = True


class MACDResult(CamelModel):
    line: float = 0.0
    signal: float = 0.0
    histogram: float = 0.0


class IndicatorSnapshot(CamelModel):
    rsi: float = 50.0
    macd: MACDResult = Field(default_factory=MACDResult)
    adx: float = 20.0
    volume_ratio: float = 1.0
    momentum_1h: float = Field(default=0.0, alias="momentum1h")  # Fraction, e.g. 0.015 = +1.5%
    momentum_4h: float = Field(default=0.0, alias="momentum4h")
    recent_high: float = 0.0
    recent_low: float = 0.0
    ema200: float = 0.0


class AIDecision(CamelModel):
    decision: Literal["BUY", "HOLD"] = "HOLD"
    confidence: float = 0.0  # 0-100
    reasoning: List[str] = Field(default_factory=list)
