"""Tests for trading_engine/risk_checks.py"""

from datetime import datetime, timezone

import pytest

from pyramid_trader.schemas import Position, PyramidLevel
from pyramid_trader.trading_engine.risk_checks import (
    evaluate_erosion_cap,
    evaluate_profitable_collapse,
    evaluate_underwater_exit,
    giveback_ratio,
)

ENTRY_TIME = datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)


def _make_position(
    entry_price=100.0,
    volume=10.0,
    current_profit=0.0,
    peak_profit=0.0,
    pyramid_levels=None,
):
    position = Position(
        pair="ETH/USD",
        entry_price=entry_price,
        volume=volume,
        entry_time=ENTRY_TIME,
        stop_loss=entry_price * 0.98,
        profit_target=entry_price * 1.05,
        pyramid_levels=pyramid_levels or [],
    )
    position.current_profit = current_profit
    position.peak_profit = peak_profit
    position.erosion_used = max(0.0, peak_profit - current_profit)
    position.profit_pct = current_profit / position.cost_basis * 100
    return position


# ---------------------------------------------------------------------------
# giveback_ratio
# ---------------------------------------------------------------------------

class TestGivebackRatio:
    def test_no_peak_is_zero(self):
        assert giveback_ratio(_make_position(current_profit=-5.0)) == 0.0

    def test_ratio_of_peak(self):
        assert giveback_ratio(_make_position(current_profit=30.0, peak_profit=40.0)) == pytest.approx(0.25)


# ---------------------------------------------------------------------------
# evaluate_erosion_cap
# ---------------------------------------------------------------------------

class TestEvaluateErosionCap:
    def test_no_peak(self):
        should_exit, reason = evaluate_erosion_cap(_make_position(), 0.5)
        assert should_exit is False
        assert "No peak" in reason

    def test_peak_below_minimum(self):
        """$9 on $1000 cost basis is 0.9%."""
        should_exit, reason = evaluate_erosion_cap(_make_position(current_profit=0.0, peak_profit=9.0), 0.5)
        assert should_exit is False
        assert "below" in reason

    def test_peak_at_minimum_is_checked(self):
        should_exit, _ = evaluate_erosion_cap(_make_position(current_profit=4.0, peak_profit=10.0), 0.5)
        assert should_exit is True

    def test_ratio_equal_to_max_does_not_trigger(self):
        should_exit, _ = evaluate_erosion_cap(_make_position(current_profit=10.0, peak_profit=20.0), 0.5)
        assert should_exit is False

    def test_peak_measured_against_all_levels(self):
        """L1 doubles the cost basis, pushing a $15 peak under 1%."""
        level = PyramidLevel(
            level=1, entry_price=100.0, volume=10.0, entry_time=ENTRY_TIME,
            trigger_profit_pct=0.045, ai_confidence=88.0,
        )
        position = _make_position(current_profit=0.0, peak_profit=15.0, pyramid_levels=[level])
        should_exit, _ = evaluate_erosion_cap(position, 0.5)
        assert should_exit is False

    def test_reason_reports_giveback(self):
        should_exit, reason = evaluate_erosion_cap(_make_position(current_profit=5.0, peak_profit=20.0), 0.5)
        assert should_exit is True
        assert "75.0%" in reason


# ---------------------------------------------------------------------------
# evaluate_underwater_exit
# ---------------------------------------------------------------------------

class TestEvaluateUnderwaterExit:
    def test_triggers_past_threshold_and_age(self):
        should_exit, reason = evaluate_underwater_exit(
            _make_position(current_profit=-9.0), 15.0, 15.0, -0.008
        )
        assert should_exit is True
        assert "exceeded" in reason

    def test_too_young(self):
        should_exit, reason = evaluate_underwater_exit(
            _make_position(current_profit=-9.0), 14.9, 15.0, -0.008
        )
        assert should_exit is False
        assert "Too young" in reason

    def test_was_profitable(self):
        should_exit, _ = evaluate_underwater_exit(
            _make_position(current_profit=-20.0, peak_profit=1.0), 60.0, 15.0, -0.008
        )
        assert should_exit is False

    def test_not_underwater(self):
        should_exit, _ = evaluate_underwater_exit(_make_position(current_profit=0.0), 60.0, 15.0, -0.008)
        assert should_exit is False

    def test_loss_inside_threshold(self):
        should_exit, _ = evaluate_underwater_exit(
            _make_position(current_profit=-7.5), 60.0, 15.0, -0.008
        )
        assert should_exit is False


# ---------------------------------------------------------------------------
# evaluate_profitable_collapse
# ---------------------------------------------------------------------------

class TestEvaluateProfitableCollapse:
    def test_breakeven_after_meaningful_peak(self):
        should_exit, _ = evaluate_profitable_collapse(_make_position(current_profit=0.0, peak_profit=5.0))
        assert should_exit is True

    def test_loss_after_meaningful_peak(self):
        should_exit, _ = evaluate_profitable_collapse(_make_position(current_profit=-3.0, peak_profit=8.0))
        assert should_exit is True

    def test_still_profitable(self):
        should_exit, reason = evaluate_profitable_collapse(_make_position(current_profit=0.5, peak_profit=8.0))
        assert should_exit is False
        assert reason == "Still profitable"

    def test_small_peak(self):
        should_exit, _ = evaluate_profitable_collapse(_make_position(current_profit=-3.0, peak_profit=4.9))
        assert should_exit is False
