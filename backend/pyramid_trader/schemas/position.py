"""Position ledger schemas (positions.json document)"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, field_validator

from .base import CamelModel

Regime = Literal["choppy", "weak", "moderate", "strong"]
ActivityAction = Literal["ENTRY", "PYRAMID", "EXIT", "EROSION_ALERT", "UNDERWATER_ALERT", "COLLAPSE_ALERT"]
HealthStatus = Literal["HEALTHY", "CAUTION", "RISK", "ALERT"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes (hand-edited snapshots) are taken to be UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PyramidLevel(CamelModel):
    level: Literal[1, 2]
    entry_price: float
    volume: float  # Size added at this level
    entry_time: datetime
    trigger_profit_pct: float  # Fraction: 0.045 for L1, 0.08 for L2
    ai_confidence: float
    status: Literal["active", "closed"] = "active"

    @field_validator("entry_time")
    @classmethod
    def entry_time_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def cost_basis(self) -> float:
        return self.entry_price * self.volume


class Position(CamelModel):
    pair: str

    # L0 (initial entry)
    entry_price: float
    volume: float  # Original L0 volume
    entry_time: datetime
    stop_loss: float
    profit_target: float

    # Pyramid tracking
    pyramid_levels: List[PyramidLevel] = Field(default_factory=list)
    total_volume: float = 0.0  # L0 + L1 + L2
    pyramid_levels_activated: int = 0

    # Profit tracking
    current_profit: float = 0.0  # Quote currency (USD)
    profit_pct: float = 0.0  # Percent units, e.g. 0.5 = 0.5%
    peak_profit: float = 0.0  # High-water mark since entry

    # Erosion protection
    erosion_cap: float = 0.008
    erosion_used: float = 0.0

    # Entry context
    ai_reasoning: List[str] = Field(default_factory=list)
    adx: float = 0.0
    regime: Regime = "moderate"

    status: Literal["open", "closed"] = "open"
    exit_price: Optional[float] = None
    exit_time: Optional[datetime] = None
    exit_reason: Optional[str] = None

    @field_validator("entry_time", "exit_time")
    @classmethod
    def times_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @property
    def cost_basis(self) -> float:
        """Entry cost across L0 and every pyramid level"""
        return self.entry_price * self.volume + sum(lvl.cost_basis for lvl in self.pyramid_levels)

    @property
    def profit_fraction(self) -> float:
        """profit_pct as a fraction of one (0.005 = 0.5%)"""
        return self.profit_pct / 100

    @property
    def peak_profit_fraction(self) -> float:
        cost = self.cost_basis
        return self.peak_profit / cost if cost > 0 else 0.0

    def has_level(self, level: int) -> bool:
        return any(lvl.level == level for lvl in self.pyramid_levels)

    def age_minutes(self, now: datetime) -> float:
        return (now - self.entry_time).total_seconds() / 60


class ActivityFeedEntry(CamelModel):
    timestamp: datetime
    pair: str
    action: ActivityAction
    details: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("timestamp")
    @classmethod
    def timestamp_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class PerformanceStats(CamelModel):
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0  # Percent
    total_profit: float = 0.0
    total_loss: float = 0.0  # Absolute value of losing trades
    expectancy: float = 0.0
    profit_factor: float = 0.0
    max_drawdown: float = 0.0  # Quote currency
    max_drawdown_pct: float = 0.0  # Percent of account balance


class PositionHealth(CamelModel):
    pair: str
    entry_price: float
    entry_time: datetime
    current_profit: float
    profit_pct: float
    peak_profit: float
    erosion_used: float
    erosion_cap: float  # Giveback threshold (fraction of peak)
    erosion_pct: float  # Giveback as percent of peak
    hold_time_minutes: int
    health_status: HealthStatus = "HEALTHY"
    alert_message: Optional[str] = None


class LedgerSnapshot(CamelModel):
    open_positions: List[Position] = Field(default_factory=list, alias="open")
    closed_positions: List[Position] = Field(default_factory=list, alias="closed")
    timestamp: datetime = Field(default_factory=utc_now)

    @field_validator("timestamp")
    @classmethod
    def timestamp_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)
