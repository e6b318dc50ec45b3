"""
Trade Export Service

Flat CSV of closed positions for offline inspection (never re-imported).
"""

import csv
from pathlib import Path
from typing import Iterable

from pyramid_trader.schemas import Position

CSV_HEADER = [
    "Pair", "EntryTime", "ExitTime", "EntryPrice", "ExitPrice",
    "Volume", "ProfitUSD", "ProfitPct", "ExitReason",
]


def position_to_row(position: Position) -> list:
    return [
        position.pair,
        position.entry_time.isoformat(),
        position.exit_time.isoformat() if position.exit_time else "",
        f"{position.entry_price:.2f}",
        f"{position.exit_price:.2f}" if position.exit_price is not None else "",
        f"{position.volume:.8f}",
        f"{position.current_profit or 0:.2f}",
        f"{position.profit_pct or 0:.2f}%",
        position.exit_reason or "",
    ]


def export_closed_positions_csv(positions: Iterable[Position], file_path: str) -> int:
    """
    Write one row per closed position.

    Returns:
        Number of data rows written

    Raises:
        OSError: file could not be written
    """
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    count = 0
    with open(path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_HEADER)
        for position in positions:
            writer.writerow(position_to_row(position))
            count += 1
    return count
