"""
Shared test fixtures for pyramid_trader tests.

Provides reusable fixtures for:
- A controllable UTC clock
- In-memory snapshot store and a ledger wired to it
- Settings with defaults (no .env influence on thresholds under test)
- Candle factories for the indicator calculator
"""

from datetime import datetime, timedelta, timezone

import pytest

from pyramid_trader.config import Settings
from pyramid_trader.persistence import InMemorySnapshotStore
from pyramid_trader.trading_engine.position_ledger import PositionLedger

# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start=None):
        self.now = start or datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, minutes=0.0):
        self.now = self.now + timedelta(minutes=minutes)


@pytest.fixture
def clock():
    return FakeClock()


# ---------------------------------------------------------------------------
# Ledger fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store():
    return InMemorySnapshotStore()


@pytest.fixture
def ledger(store, clock):
    """Ledger with 50% max giveback and a $1000 account."""
    return PositionLedger(store, profit_lock_giveback_pct=0.5, account_balance=1000.0, clock=clock)


@pytest.fixture
def test_settings(tmp_path):
    """Default Settings pointed at a throwaway data directory."""
    return Settings(_env_file=None, data_dir=str(tmp_path))


# ---------------------------------------------------------------------------
# Candle factories
# ---------------------------------------------------------------------------


def make_candles(closes, spread=0.5, volume=100.0):
    """Exchange-style candle dicts around the given closes, oldest first."""
    candles = []
    previous = closes[0] if closes else 0.0
    for i, close in enumerate(closes):
        candles.append({
            "timestamp": 1700000000 + i * 900,
            "open": previous,
            "high": max(previous, close) + spread,
            "low": min(previous, close) - spread,
            "close": close,
            "volume": volume,
        })
        previous = close
    return candles


@pytest.fixture
def candle_factory():
    return make_candles


@pytest.fixture
def uptrend_candles():
    """60 bars climbing 1.0 per bar."""
    return make_candles([100.0 + i for i in range(60)])


@pytest.fixture
def flat_candles():
    """60 identical bars."""
    return make_candles([100.0] * 60, spread=0.0)
