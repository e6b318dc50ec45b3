"""Snapshot store factory: picks the backend named in Settings."""

from pyramid_trader.config import Settings
from pyramid_trader.persistence.base import SnapshotStore
from pyramid_trader.persistence.json_store import JsonFileSnapshotStore
from pyramid_trader.persistence.sql_store import SqlSnapshotStore


def create_snapshot_store(settings: Settings) -> SnapshotStore:
    """
    Create the configured snapshot store.

    Args:
        settings: snapshot_backend "json" (positions.json in data_dir) or
            "sql" (database_url)

    Raises:
        ValueError: unknown backend
    """
    if settings.snapshot_backend == "json":
        return JsonFileSnapshotStore(settings.data_dir)
    if settings.snapshot_backend == "sql":
        return SqlSnapshotStore(settings.database_url)
    raise ValueError(f"Unknown snapshot backend: {settings.snapshot_backend}")
