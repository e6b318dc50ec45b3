"""
Risk gate evaluations for open positions

Pure read queries against a Position's current fields. Each returns
(should_exit, reason); none of them closes a position. The ledger logs and
records alerts, and the orchestrator decides whether to call close.

- Erosion cap: gave back too much of a meaningful peak profit
- Underwater exit: never profitable, held long enough, loss past threshold
- Profitable collapse: meaningful winner back to breakeven or worse

All thresholds are fractions of one (0.01 = 1%).
"""

from typing import Tuple

from pyramid_trader.schemas import Position

# Peaks below 1% of cost basis are noise on 15m bars, not a move to protect
EROSION_MIN_PEAK_PCT = 0.01
COLLAPSE_MIN_PEAK_PCT = 0.005


def giveback_ratio(position: Position) -> float:
    """Fraction of peak profit given back since the high-water mark"""
    if position.peak_profit <= 0:
        return 0.0
    return position.erosion_used / position.peak_profit


def evaluate_erosion_cap(position: Position, max_giveback_pct: float) -> Tuple[bool, str]:
    """
    Profit-lock / giveback guard.

    Args:
        position: Open position (after update_position)
        max_giveback_pct: Max fraction of peak profit allowed to give back (0.5 = 50%)

    Returns:
        Tuple of (should_exit: bool, reason: str)
    """
    if position.peak_profit <= 0:
        return (False, "No peak profit to protect")

    peak_pct = position.peak_profit_fraction
    if peak_pct < EROSION_MIN_PEAK_PCT:
        return (False, f"Peak {peak_pct * 100:.2f}% below {EROSION_MIN_PEAK_PCT * 100:.1f}% minimum")

    ratio = giveback_ratio(position)
    if ratio > max_giveback_pct:
        return (
            True,
            f"Gave back {ratio * 100:.1f}% of peak profit (max: {max_giveback_pct * 100:.0f}%)"
        )

    return (False, f"Giveback {ratio * 100:.1f}% within {max_giveback_pct * 100:.0f}%")


def evaluate_underwater_exit(
    position: Position,
    age_minutes: float,
    min_time_minutes: float,
    threshold_pct: float,
) -> Tuple[bool, str]:
    """
    Exit for trades that never went positive.

    Args:
        position: Open position (after update_position)
        age_minutes: Minutes since entry
        min_time_minutes: Minimum hold before the check applies
        threshold_pct: Signed loss fraction, e.g. -0.008 = -0.8%

    Returns:
        Tuple of (should_exit: bool, reason: str)
    """
    if position.peak_profit > 0:
        return (False, "Position has been profitable")

    if position.current_profit >= 0:
        return (False, "Position is not underwater")

    if age_minutes < min_time_minutes:
        return (False, f"Too young ({age_minutes:.1f}min < {min_time_minutes:.0f}min)")

    loss_pct = position.profit_fraction
    if loss_pct < threshold_pct:
        return (
            True,
            f"Loss {loss_pct * 100:.2f}% exceeded threshold {threshold_pct * 100:.1f}%"
        )

    return (False, f"Loss {loss_pct * 100:.2f}% within threshold {threshold_pct * 100:.1f}%")


def evaluate_profitable_collapse(position: Position) -> Tuple[bool, str]:
    """
    A meaningful winner (peak >= 0.5% of cost basis) that is now at
    breakeven or worse. No giveback ratio involved.

    Returns:
        Tuple of (should_exit: bool, reason: str)
    """
    peak_pct = position.peak_profit_fraction
    if peak_pct < COLLAPSE_MIN_PEAK_PCT:
        return (False, f"Peak {peak_pct * 100:.2f}% below {COLLAPSE_MIN_PEAK_PCT * 100:.1f}% minimum")

    if position.current_profit > 0:
        return (False, "Still profitable")

    return (
        True,
        f"Was profitable (peak {peak_pct * 100:.2f}%) but breached breakeven"
    )
