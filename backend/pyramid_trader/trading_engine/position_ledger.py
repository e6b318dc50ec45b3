"""
Position Ledger

Owns every open position (one per pair) and the append-only closed history.
Handles the full lifecycle:
- Entry (L0) with stop loss / profit target and entry context
- Price refresh: per-level P&L, peak profit, erosion since peak
- Pyramid adds (L1 at 4.5%, L2 at 8%), L2 only after L1
- Risk gates: erosion cap, underwater exit, profitable collapse, stop/target
- Close: moves the position into closed history

Every mutating call writes the full snapshot through the injected store.
A snapshot that fails to load is moved aside by the store before the ledger
starts empty; if it cannot be moved, saves stay blocked until forced.
Invariant violations (duplicate entry, bad pyramid level, unknown pair) are
logged and ignored so the monitoring loop keeps running.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from pyramid_trader.exceptions import PersistenceError
from pyramid_trader.persistence.base import SnapshotStore
from pyramid_trader.persistence.factory import create_snapshot_store
from pyramid_trader.schemas import (
    ActivityFeedEntry,
    LedgerSnapshot,
    PerformanceStats,
    Position,
    PositionHealth,
    PyramidLevel,
)
from pyramid_trader.schemas.position import utc_now
from pyramid_trader.services.performance_stats_service import (
    calculate_performance_stats,
    format_performance_stats,
)
from pyramid_trader.services.position_health_service import calculate_position_health
from pyramid_trader.services.trade_export_service import export_closed_positions_csv
from pyramid_trader.trading_engine.activity_feed import DEFAULT_FEED_SIZE, ActivityFeed
from pyramid_trader.trading_engine.risk_checks import (
    evaluate_erosion_cap,
    evaluate_profitable_collapse,
    evaluate_underwater_exit,
    giveback_ratio,
)

logger = logging.getLogger(__name__)

MAX_PYRAMID_LEVELS = 2
# Trigger profit per level, stored on the level for audit (fractions)
PYRAMID_TRIGGER_PCT = {1: 0.045, 2: 0.08}


class PositionLedger:
    def __init__(
        self,
        store: SnapshotStore,
        profit_lock_giveback_pct: float = 0.5,
        account_balance: float = 1000.0,
        clock: Optional[Callable[[], datetime]] = None,
        activity_feed_size: int = DEFAULT_FEED_SIZE,
    ):
        """
        Args:
            store: Snapshot persistence capability
            profit_lock_giveback_pct: Max fraction of peak profit to give back (0.5 = 50%)
            account_balance: Used for drawdown % in performance stats
            clock: Returns the current UTC datetime (injectable for tests)
            activity_feed_size: Activity feed capacity
        """
        self.store = store
        self.profit_lock_giveback_pct = profit_lock_giveback_pct
        self.account_balance = account_balance
        self.clock = clock or utc_now
        self.activity_feed = ActivityFeed(activity_feed_size)

        self._positions: Dict[str, Position] = {}
        self._closed_positions: List[Position] = []
        self.persist_pending = False
        # Set when an unreadable snapshot could not be moved aside
        self.overwrite_blocked = False

        self._load()

    @classmethod
    def from_settings(cls, settings, clock: Optional[Callable[[], datetime]] = None) -> "PositionLedger":
        return cls(
            store=create_snapshot_store(settings),
            profit_lock_giveback_pct=settings.profit_lock_giveback_pct,
            account_balance=settings.account_balance,
            clock=clock,
            activity_feed_size=settings.activity_feed_size,
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> None:
        try:
            snapshot = self.store.load()
        except PersistenceError as e:
            self._quarantine_unreadable(e)
            return

        if snapshot is None:
            return

        self._closed_positions = list(snapshot.closed_positions)
        for position in snapshot.open_positions:
            if position.pair in self._positions:
                logger.warning(f"Snapshot lists {position.pair} twice, keeping the later entry")
            self._positions[position.pair] = position

        logger.info(
            f"Loaded {len(self._closed_positions)} closed positions and "
            f"{len(self._positions)} open positions from snapshot"
        )

    def _quarantine_unreadable(self, error: PersistenceError) -> None:
        """Keep an unreadable snapshot out of the way of the next save"""
        try:
            location = self.store.quarantine(self.clock())
        except PersistenceError as e:
            self.overwrite_blocked = True
            logger.error(
                f"Failed to load positions snapshot ({error.message}) and could not move it "
                f"aside ({e.message}); starting empty with saves blocked"
            )
            return

        logger.warning(
            f"Failed to load positions snapshot, moved it to {location} and starting empty: {error.message}"
        )

    def save_snapshot(self, force: bool = False) -> bool:
        """
        Write the full state through the store

        Returns False on failure (retried on the next mutation). While
        overwrite_blocked is set nothing is written unless force is True.
        """
        if self.overwrite_blocked and not force:
            self.persist_pending = True
            logger.error("Snapshot save skipped: unreadable snapshot is still in place (use force=True)")
            return False

        snapshot = LedgerSnapshot(
            open_positions=list(self._positions.values()),
            closed_positions=list(self._closed_positions),
            timestamp=self.clock(),
        )
        try:
            self.store.save(snapshot)
        except PersistenceError as e:
            self.persist_pending = True
            logger.error(f"Failed to save positions snapshot: {e.message}")
            return False

        self.persist_pending = False
        self.overwrite_blocked = False
        return True

    # ------------------------------------------------------------------
    # Activity feed
    # ------------------------------------------------------------------

    def _log_activity(self, pair: str, action: str, details: dict) -> None:
        self.activity_feed.record(self.clock(), pair, action, details)

    def get_activity_feed(self, limit: int = 20) -> List[ActivityFeedEntry]:
        """Recent activity, newest first (for dashboard)"""
        return self.activity_feed.recent(limit)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def update_account_balance(self, balance: float) -> None:
        self.account_balance = balance

    def has_position(self, pair: str) -> bool:
        return pair in self._positions

    def get_position(self, pair: str) -> Optional[Position]:
        position = self._positions.get(pair)
        return position.model_copy(deep=True) if position else None

    def get_open_positions(self) -> List[Position]:
        return [p.model_copy(deep=True) for p in self._positions.values() if p.status == "open"]

    def get_closed_positions(self) -> List[Position]:
        return [p.model_copy(deep=True) for p in self._closed_positions]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open_position(
        self,
        pair: str,
        entry_price: float,
        volume: float,
        stop_loss: float,
        profit_target: float,
        ai_reasoning: Optional[List[str]] = None,
        adx: float = 0.0,
        regime: str = "moderate",
        erosion_cap: float = 0.008,
    ) -> bool:
        """
        Open a new L0 position.

        Returns:
            True if opened, False if a position for this pair already exists
        """
        if pair in self._positions:
            logger.warning(f"Position already exists for {pair}, ignoring new entry")
            return False

        now = self.clock()
        self._positions[pair] = Position(
            pair=pair,
            entry_price=entry_price,
            volume=volume,
            entry_time=now,
            stop_loss=stop_loss,
            profit_target=profit_target,
            total_volume=volume,
            erosion_cap=erosion_cap,
            ai_reasoning=list(ai_reasoning or []),
            adx=adx,
            regime=regime,
        )

        self.save_snapshot()
        self._log_activity(pair, "ENTRY", {"price": entry_price, "volume": volume})

        logger.info(
            f"[ENTRY] {pair} OPEN at ${entry_price:.2f} vol={volume:.6f} "
            f"SL=${stop_loss:.2f} TP=${profit_target:.2f} ADX={adx:.1f} regime={regime}"
        )
        return True

    def update_position(self, pair: str, current_price: float) -> None:
        """
        Recompute P&L across L0 and every pyramid level at current_price.

        Each level is weighted by its own entry price and volume. Peak profit
        only ever rises; erosion is the distance below the peak and resets to
        0 whenever a new peak is set.
        """
        position = self._positions.get(pair)
        if not position:
            return

        total_profit = (current_price - position.entry_price) * position.volume
        total_cost = position.entry_price * position.volume

        for level in position.pyramid_levels:
            total_profit += (current_price - level.entry_price) * level.volume
            total_cost += level.cost_basis

        position.current_profit = total_profit
        position.profit_pct = (total_profit / total_cost) * 100 if total_cost > 0 else 0.0

        if position.current_profit > position.peak_profit:
            position.peak_profit = position.current_profit
            position.erosion_used = 0.0
        else:
            position.erosion_used = max(0.0, position.peak_profit - position.current_profit)

        logger.debug(
            f"{pair} @ ${current_price:.4f}: profit=${position.current_profit:.2f} "
            f"({position.profit_pct:.2f}%) peak=${position.peak_profit:.2f} "
            f"erosion=${position.erosion_used:.2f}"
        )
        self.save_snapshot()

    def add_pyramid_level(
        self,
        pair: str,
        level: int,
        entry_price: float,
        volume: float,
        ai_confidence: float,
    ) -> bool:
        """
        Add pyramid level L1 or L2.

        Returns:
            True if added; False if the position is missing, already has two
            levels, the level already exists, or L2 is requested before L1
        """
        position = self._positions.get(pair)
        if not position:
            logger.warning(f"Cannot add pyramid L{level}: no open position for {pair}")
            return False

        if level not in PYRAMID_TRIGGER_PCT:
            logger.warning(f"{pair} invalid pyramid level L{level}")
            return False

        if position.pyramid_levels_activated >= MAX_PYRAMID_LEVELS:
            logger.warning(f"{pair} already has max pyramid levels ({MAX_PYRAMID_LEVELS})")
            return False

        if position.has_level(level):
            logger.warning(f"{pair} L{level} already exists")
            return False

        if level == 2 and not position.has_level(1):
            logger.warning(f"{pair} L2 requires L1 first")
            return False

        position.pyramid_levels.append(PyramidLevel(
            level=level,
            entry_price=entry_price,
            volume=volume,
            entry_time=self.clock(),
            trigger_profit_pct=PYRAMID_TRIGGER_PCT[level],
            ai_confidence=ai_confidence,
        ))
        position.total_volume += volume
        position.pyramid_levels_activated += 1

        self.save_snapshot()
        self._log_activity(pair, "PYRAMID", {"price": entry_price, "volume": volume, "level": level})

        logger.info(
            f"[PYRAMID] {pair} L{level} added at ${entry_price:.2f} "
            f"({volume * entry_price:.2f} USD, {volume:.6f} units, AI {ai_confidence:.0f}%)"
        )
        return True

    def is_ready_for_l1(self, pair: str, current_profit: float, l1_trigger_pct: float) -> bool:
        """L1 gate: no L1 yet and profit fraction at/above the trigger"""
        position = self._positions.get(pair)
        if not position:
            return False

        if position.pyramid_levels_activated >= 1 or position.has_level(1):
            return False

        return current_profit >= l1_trigger_pct

    def is_ready_for_l2(self, pair: str, current_profit: float, l2_trigger_pct: float) -> bool:
        """L2 gate: L1 in place, no L2 yet, profit fraction at/above the trigger"""
        position = self._positions.get(pair)
        if not position:
            return False

        if not position.has_level(1):
            return False

        if position.pyramid_levels_activated >= MAX_PYRAMID_LEVELS or position.has_level(2):
            return False

        return current_profit >= l2_trigger_pct

    def close_position(self, pair: str, exit_price: float, exit_reason: str) -> Optional[Position]:
        """
        Close a position and move it to closed history.

        Final P&L uses the L0 entry price and volume only.

        Returns:
            Copy of the closed position, or None if the pair has no open position
        """
        position = self._positions.get(pair)
        if not position:
            logger.warning(f"Cannot close {pair}: no open position")
            return None

        position.exit_price = exit_price
        position.exit_time = self.clock()
        position.exit_reason = exit_reason
        position.status = "closed"

        profit_fraction = (
            (exit_price - position.entry_price) / position.entry_price if position.entry_price else 0.0
        )
        position.profit_pct = profit_fraction * 100
        position.current_profit = position.volume * profit_fraction * position.entry_price

        self._closed_positions.append(position)
        del self._positions[pair]

        logger.info(
            f"[EXIT] {pair} closed at ${exit_price:.2f}: {position.profit_pct:+.2f}% "
            f"(${position.current_profit:+.2f}) reason={exit_reason}"
        )
        self._log_activity(pair, "EXIT", {
            "price": exit_price,
            "profit": position.current_profit,
            "profitPct": position.profit_pct,
            "reason": exit_reason,
        })

        self.save_snapshot()
        return position.model_copy(deep=True)

    def clear_all(self) -> None:
        """Drop every open position (closed history is kept)"""
        self._positions.clear()
        logger.warning("All open positions cleared")
        self.save_snapshot()

    # ------------------------------------------------------------------
    # Risk gates
    # ------------------------------------------------------------------

    def check_erosion_cap(self, pair: str) -> bool:
        """True if the position gave back more than the allowed share of its peak"""
        position = self._positions.get(pair)
        if not position:
            return False

        should_exit, reason = evaluate_erosion_cap(position, self.profit_lock_giveback_pct)
        if not should_exit:
            return False

        logger.warning(
            f"[EROSION EXIT] {pair} {reason} - peak=${position.peak_profit:.2f} "
            f"current=${position.current_profit:.2f} erosion=${position.erosion_used:.2f}"
        )
        self._log_activity(pair, "EROSION_ALERT", {
            "erosionPct": round(giveback_ratio(position) * 100, 2),
            "peakProfit": round(position.peak_profit, 2),
            "currentProfit": round(position.current_profit, 2),
        })
        return True

    def check_underwater_exit(
        self,
        pair: str,
        underwater_min_time_minutes: float,
        underwater_threshold_pct: float,
    ) -> bool:
        """
        True if a never-profitable position has been held long enough and its
        loss is past the threshold.

        Args:
            underwater_threshold_pct: Signed loss fraction, e.g. -0.008 = -0.8%
        """
        position = self._positions.get(pair)
        if not position:
            return False

        age_minutes = position.age_minutes(self.clock())
        should_exit, reason = evaluate_underwater_exit(
            position, age_minutes, underwater_min_time_minutes, underwater_threshold_pct
        )
        if not should_exit:
            return False

        logger.warning(
            f"[UNDERWATER EXIT] {pair} {reason} - loss=${abs(position.current_profit):.2f} "
            f"age={age_minutes:.1f}min"
        )
        self._log_activity(pair, "UNDERWATER_ALERT", {
            "lossPct": round(position.profit_pct, 2),
            "ageMinutes": round(age_minutes, 1),
        })
        return True

    def check_profitable_collapse(self, pair: str) -> bool:
        """True if a meaningful winner has fallen back to breakeven or worse"""
        position = self._positions.get(pair)
        if not position:
            return False

        should_exit, reason = evaluate_profitable_collapse(position)
        if not should_exit:
            return False

        logger.warning(
            f"[PROFITABLE COLLAPSE] {pair} {reason} - peak=${position.peak_profit:.2f} "
            f"current=${position.current_profit:.2f} ({position.profit_pct:.2f}%)"
        )
        self._log_activity(pair, "COLLAPSE_ALERT", {
            "peakProfitPct": round(position.peak_profit_fraction * 100, 2),
            "currentProfitPct": round(position.profit_pct, 2),
        })
        return True

    def check_stop_loss(self, pair: str, current_price: float) -> bool:
        position = self._positions.get(pair)
        if not position:
            return False
        return current_price <= position.stop_loss

    def check_profit_target(self, pair: str, current_price: float) -> bool:
        position = self._positions.get(pair)
        if not position:
            return False
        return current_price >= position.profit_target

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_performance_stats(self) -> PerformanceStats:
        return calculate_performance_stats(self._closed_positions, self.account_balance)

    def log_performance(self) -> PerformanceStats:
        stats = self.get_performance_stats()
        logger.info(f"[PERFORMANCE] {format_performance_stats(stats)}")
        return stats

    def get_position_health(self) -> List[PositionHealth]:
        return calculate_position_health(
            self._positions.values(), self.profit_lock_giveback_pct, self.clock()
        )

    def export_to_csv(self, file_path: str = "./data/trades.csv") -> bool:
        """Export closed positions to CSV; failures are logged, not raised"""
        try:
            count = export_closed_positions_csv(self._closed_positions, file_path)
        except OSError as e:
            logger.error(f"Failed to export trades to CSV: {e}")
            return False

        logger.info(f"Exported {count} trades to {file_path}")
        return True
