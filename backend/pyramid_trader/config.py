from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Storage
    data_dir: str = "./data"
    snapshot_backend: Literal["json", "sql"] = "json"
    database_url: str = "sqlite:///./data/positions.db"

    # Account / sizing
    account_balance: float = 1000.0  # Used for drawdown % and entry sizing
    stop_loss_pct: float = 0.02
    profit_target_pct: float = 0.05
    risk_per_trade_pct: float = 0.02
    max_concurrent_trades: int = 3

    # ADX regime filtering
    min_adx_for_entry: float = 20.0
    adx_choppy_threshold: float = 20.0  # ADX below this = choppy
    adx_strong_threshold: float = 35.0  # ADX above this = strong trend

    # Pyramiding (all fractions of one, e.g. 0.045 = 4.5%)
    pyramiding_enabled: bool = True
    pyramid_l1_trigger_pct: float = 0.045
    pyramid_l2_trigger_pct: float = 0.08
    pyramid_add_size_pct_l1: float = 0.35  # Of the L0 volume
    pyramid_add_size_pct_l2: float = 0.50
    pyramid_l1_confidence_min: float = 85.0
    pyramid_l2_confidence_min: float = 90.0
    pyramid_erosion_cap_choppy: float = 0.006
    pyramid_erosion_cap_trend: float = 0.008

    # Profit lock / giveback guard
    profit_lock_enabled: bool = True
    profit_lock_giveback_pct: float = 0.5  # Max fraction of peak profit to give back

    # Underwater exit (trades that never went positive)
    underwater_exit_threshold_pct: float = -0.008
    underwater_exit_min_time_minutes: float = 15.0

    # AI
    ai_min_confidence: float = 70.0

    # Indicators
    candle_timeframe: str = "15m"
    candle_limit: int = 100
    incremental_macd_signal: bool = False

    activity_feed_size: int = 100

    @field_validator("underwater_exit_threshold_pct")
    @classmethod
    def threshold_must_be_loss(cls, v: float) -> float:
        """Underwater threshold is a signed loss fraction (e.g. -0.008)"""
        if v > 0:
            raise ValueError("underwater_exit_threshold_pct must be <= 0 (fraction, e.g. -0.008)")
        return v

    @field_validator("profit_lock_giveback_pct")
    @classmethod
    def giveback_in_range(cls, v: float) -> float:
        if not 0 < v <= 1:
            raise ValueError("profit_lock_giveback_pct must be a fraction in (0, 1]")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = False

