"""Centralized Pydantic schemas for indicators and the position ledger"""

from .market import AIDecision, IndicatorSnapshot, MACDResult, PriceBar
from .position import (
    ActivityFeedEntry,
    LedgerSnapshot,
    PerformanceStats,
    Position,
    PositionHealth,
    PyramidLevel,
)

__all__ = [
    # Market schemas
    "PriceBar",
    "MACDResult",
    "IndicatorSnapshot",
    "AIDecision",
    # Ledger schemas
    "Position",
    "PyramidLevel",
    "ActivityFeedEntry",
    "PerformanceStats",
    "PositionHealth",
    "LedgerSnapshot",
]
