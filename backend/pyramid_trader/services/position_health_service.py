"""
Position Health Service

Classifies each open position by how much of its peak profit it has given
back, relative to the configured max giveback:
- ALERT:   over 100% of the allowance
- RISK:    over 70%
- CAUTION: over 30% (with a note once held longer than 4 hours)
- HEALTHY: otherwise
"""

from datetime import datetime
from typing import Iterable, List

from pyramid_trader.schemas import Position, PositionHealth
from pyramid_trader.trading_engine.risk_checks import giveback_ratio

RISK_FRACTION = 0.7
CAUTION_FRACTION = 0.3
LONG_HOLD_MINUTES = 240


def calculate_position_health(
    positions: Iterable[Position],
    max_giveback_pct: float,
    now: datetime,
) -> List[PositionHealth]:
    health = []
    max_giveback = max_giveback_pct * 100  # e.g. 50%

    for position in positions:
        hold_minutes = position.age_minutes(now)
        giveback = giveback_ratio(position) * 100

        status = "HEALTHY"
        alert_message = None

        if giveback > max_giveback:
            status = "ALERT"
            alert_message = f"GIVEBACK EXCEEDED: {giveback:.1f}% of peak (max: {max_giveback:.0f}%)"
        elif giveback > max_giveback * RISK_FRACTION:
            status = "RISK"
            alert_message = f"High giveback: {giveback:.1f}% of {max_giveback:.0f}% allowed"
        elif giveback > max_giveback * CAUTION_FRACTION:
            status = "CAUTION"
            if hold_minutes > LONG_HOLD_MINUTES:
                alert_message = f"Long-held position ({hold_minutes:.0f}min)"

        health.append(PositionHealth(
            pair=position.pair,
            entry_price=position.entry_price,
            entry_time=position.entry_time,
            current_profit=position.current_profit,
            profit_pct=position.profit_pct,
            peak_profit=position.peak_profit,
            erosion_used=position.erosion_used,
            erosion_cap=max_giveback_pct,
            erosion_pct=round(giveback, 2),
            hold_time_minutes=round(hold_minutes),
            health_status=status,
            alert_message=alert_message,
        ))

    return health
