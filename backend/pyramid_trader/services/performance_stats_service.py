"""
Performance Stats Service

Win/loss counts, expectancy, profit factor and cumulative-P&L drawdown over
the closed-position history. Always recomputed from the full history, never
maintained incrementally.
"""

import logging
from typing import List

from pyramid_trader.schemas import PerformanceStats, Position

logger = logging.getLogger(__name__)


def calculate_max_drawdown(profits: List[float]) -> float:
    """Largest peak-to-trough drop of cumulative P&L (quote currency)"""
    cumulative = 0.0
    peak = 0.0
    max_drawdown = 0.0
    for profit in profits:
        cumulative += profit
        if cumulative > peak:
            peak = cumulative
        drawdown = peak - cumulative
        if drawdown > max_drawdown:
            max_drawdown = drawdown
    return max_drawdown


def calculate_performance_stats(
    closed_positions: List[Position],
    account_balance: float,
) -> PerformanceStats:
    """
    Calculate performance statistics for closed positions.

    Args:
        closed_positions: Closed history in chronological (close) order
        account_balance: Balance used to express drawdown as a percentage

    Returns:
        PerformanceStats (all zeros for an empty history)
    """
    if not closed_positions:
        return PerformanceStats()

    total_profit = 0.0
    total_loss = 0.0
    winning_trades = 0
    losing_trades = 0
    profits = []

    for position in closed_positions:
        profit = position.current_profit or 0.0
        profits.append(profit)

        if profit > 0:
            total_profit += profit
            winning_trades += 1
        else:
            total_loss += abs(profit)
            losing_trades += 1

    total_trades = len(closed_positions)
    max_drawdown = calculate_max_drawdown(profits)

    if total_loss > 0:
        profit_factor = total_profit / total_loss
    else:
        profit_factor = float("inf") if total_profit > 0 else 0.0

    return PerformanceStats(
        total_trades=total_trades,
        winning_trades=winning_trades,
        losing_trades=losing_trades,
        win_rate=winning_trades / total_trades * 100,
        total_profit=total_profit,
        total_loss=total_loss,
        expectancy=(total_profit - total_loss) / total_trades,
        profit_factor=profit_factor,
        max_drawdown=max_drawdown,
        max_drawdown_pct=max_drawdown / account_balance * 100 if account_balance > 0 else 0.0,
    )


def format_performance_stats(stats: PerformanceStats) -> str:
    """One-line summary for logs and the CLI report"""
    return (
        f"trades={stats.total_trades} winRate={stats.win_rate:.1f}% "
        f"expectancy=${stats.expectancy:.2f} profitFactor={stats.profit_factor:.2f} "
        f"totalProfit=${stats.total_profit:.2f} totalLoss=${stats.total_loss:.2f} "
        f"maxDrawdown=${stats.max_drawdown:.2f} ({stats.max_drawdown_pct:.1f}%)"
    )
