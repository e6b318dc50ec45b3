#!/usr/bin/env python3
"""
Ledger report - prints performance stats and open-position health from the
persisted positions snapshot, optionally exporting closed trades to CSV.

Usage:
    pyramid-report [--data-dir PATH] [--backend json|sql] [--export PATH]

Defaults come from Settings (.env / environment variables).
"""

import argparse
import logging

from pyramid_trader.config import Settings
from pyramid_trader.services.performance_stats_service import format_performance_stats
from pyramid_trader.trading_engine.position_ledger import PositionLedger

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Report on the pyramid position ledger")
    parser.add_argument("--data-dir", default=None, help="Directory holding positions.json")
    parser.add_argument("--backend", choices=["json", "sql"], default=None, help="Snapshot backend")
    parser.add_argument("--export", metavar="PATH", default=None, help="Write closed trades to this CSV file")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    overrides = {}
    if args.data_dir:
        overrides["data_dir"] = args.data_dir
    if args.backend:
        overrides["snapshot_backend"] = args.backend
    settings = Settings(**overrides)

    ledger = PositionLedger.from_settings(settings)

    stats = ledger.get_performance_stats()
    print("=" * 60)
    print("Performance")
    print(f"  {format_performance_stats(stats)}")

    print("=" * 60)
    health = ledger.get_position_health()
    print(f"Open positions: {len(health)}")
    for entry in health:
        line = (
            f"  {entry.pair:<10} {entry.health_status:<8} {entry.profit_pct:+.2f}% "
            f"giveback={entry.erosion_pct:.1f}% held={entry.hold_time_minutes}min"
        )
        if entry.alert_message:
            line += f" - {entry.alert_message}"
        print(line)
    print("=" * 60)

    if args.export:
        if not ledger.export_to_csv(args.export):
            return 1

    return 0


if __name__ == "__main__":
    exit(main())
