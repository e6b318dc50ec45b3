"""
Snapshot persistence for the position ledger

All stores implement SnapshotStore (load/save of a LedgerSnapshot):
- JsonFileSnapshotStore: positions.json in the data directory
- SqlSnapshotStore: latest document in a SQL table (SQLite by default)
- InMemorySnapshotStore: tests and paper runs

Usage:
    from pyramid_trader.persistence import create_snapshot_store

    store = create_snapshot_store(settings)
"""

from pyramid_trader.persistence.base import InMemorySnapshotStore, SnapshotStore
from pyramid_trader.persistence.factory import create_snapshot_store
from pyramid_trader.persistence.json_store import JsonFileSnapshotStore
from pyramid_trader.persistence.sql_store import SqlSnapshotStore

__all__ = [
    "SnapshotStore",
    "InMemorySnapshotStore",
    "JsonFileSnapshotStore",
    "SqlSnapshotStore",
    "create_snapshot_store",
]
