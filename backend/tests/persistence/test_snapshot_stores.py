"""
Tests for the snapshot stores in pyramid_trader/persistence/

Covers:
- JsonFileSnapshotStore (positions.json in a temp directory)
- SqlSnapshotStore (in-memory SQLite)
- InMemorySnapshotStore
- create_snapshot_store factory
"""

import json
from datetime import datetime, timezone

import pytest

from pyramid_trader.config import Settings
from pyramid_trader.exceptions import PersistenceError, SnapshotFormatError
from pyramid_trader.models import LedgerSnapshotRecord
from pyramid_trader.persistence import (
    InMemorySnapshotStore,
    JsonFileSnapshotStore,
    SqlSnapshotStore,
    create_snapshot_store,
)
from pyramid_trader.schemas import LedgerSnapshot, Position, PyramidLevel

ENTRY_TIME = datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def snapshot():
    """One open ETH position with an L1, one closed SOL position."""
    open_position = Position(
        pair="ETH/USD",
        entry_price=3000.0,
        volume=1.0,
        entry_time=ENTRY_TIME,
        stop_loss=2900.0,
        profit_target=3200.0,
        pyramid_levels=[PyramidLevel(
            level=1, entry_price=3135.0, volume=0.35, entry_time=ENTRY_TIME,
            trigger_profit_pct=0.045, ai_confidence=88.0,
        )],
        total_volume=1.35,
        pyramid_levels_activated=1,
        peak_profit=150.0,
        regime="strong",
    )
    closed_position = Position(
        pair="SOL/USD",
        entry_price=100.0,
        volume=2.0,
        entry_time=ENTRY_TIME,
        stop_loss=98.0,
        profit_target=105.0,
        status="closed",
        exit_price=105.0,
        exit_time=ENTRY_TIME,
        exit_reason="profit_target",
        current_profit=10.0,
        profit_pct=5.0,
    )
    return LedgerSnapshot(open_positions=[open_position], closed_positions=[closed_position], timestamp=ENTRY_TIME)


# ---------------------------------------------------------------------------
# JsonFileSnapshotStore
# ---------------------------------------------------------------------------


class TestJsonFileSnapshotStore:
    def test_missing_file_loads_none(self, tmp_path):
        assert JsonFileSnapshotStore(str(tmp_path)).load() is None

    def test_save_then_load(self, tmp_path, snapshot):
        store = JsonFileSnapshotStore(str(tmp_path / "data"))
        store.save(snapshot)

        loaded = store.load()
        assert loaded == snapshot

    def test_document_shape(self, tmp_path, snapshot):
        store = JsonFileSnapshotStore(str(tmp_path))
        store.save(snapshot)

        document = json.loads((tmp_path / "positions.json").read_text())
        assert set(document) == {"open", "closed", "timestamp"}
        assert isinstance(document["open"], list)
        position = document["open"][0]
        assert position["entryPrice"] == 3000.0
        assert position["pyramidLevels"][0]["triggerProfitPct"] == 0.045
        assert document["closed"][0]["exitReason"] == "profit_target"
        assert not (tmp_path / "positions.json.tmp").exists()

    def test_loads_epoch_millisecond_timestamps(self, tmp_path):
        (tmp_path / "positions.json").write_text(json.dumps({
            "open": [{
                "pair": "BTC/USD",
                "entryPrice": 42000.0,
                "volume": 0.01,
                "entryTime": 1736164800000,
                "stopLoss": 41000.0,
                "profitTarget": 44000.0,
                "pyramidLevels": [],
                "totalVolume": 0.01,
                "pyramidLevelsActivated": 0,
                "currentProfit": 0,
                "profitPct": 0,
                "peakProfit": 0,
                "erosionCap": 0.008,
                "erosionUsed": 0,
                "aiReasoning": ["Trend intact"],
                "adx": 31.2,
                "regime": "moderate",
                "status": "open",
            }],
            "closed": [],
            "timestamp": 1736164800000,
        }))

        loaded = JsonFileSnapshotStore(str(tmp_path)).load()

        assert loaded.open_positions[0].entry_time == ENTRY_TIME
        assert loaded.open_positions[0].ai_reasoning == ["Trend intact"]

    def test_invalid_json_raises_format_error(self, tmp_path):
        (tmp_path / "positions.json").write_text("{broken")
        with pytest.raises(SnapshotFormatError):
            JsonFileSnapshotStore(str(tmp_path)).load()

    def test_wrong_shape_raises_format_error(self, tmp_path):
        (tmp_path / "positions.json").write_text(json.dumps({"open": [{"pair": "ETH/USD"}]}))
        with pytest.raises(SnapshotFormatError):
            JsonFileSnapshotStore(str(tmp_path)).load()

    def test_quarantine_renames_document(self, tmp_path):
        (tmp_path / "positions.json").write_text("{broken")
        store = JsonFileSnapshotStore(str(tmp_path))

        location = store.quarantine(ENTRY_TIME)

        assert location == str(tmp_path / "positions.json.corrupt-20250106T120000Z")
        assert (tmp_path / "positions.json.corrupt-20250106T120000Z").read_text() == "{broken"
        assert store.load() is None

    def test_quarantine_missing_file_raises(self, tmp_path):
        with pytest.raises(PersistenceError):
            JsonFileSnapshotStore(str(tmp_path)).quarantine(ENTRY_TIME)

    def test_unwritable_directory_raises_persistence_error(self, tmp_path, snapshot):
        blocker = tmp_path / "blocker"
        blocker.write_text("")

        with pytest.raises(PersistenceError):
            JsonFileSnapshotStore(str(blocker / "data")).save(snapshot)


# ---------------------------------------------------------------------------
# SqlSnapshotStore
# ---------------------------------------------------------------------------


class TestSqlSnapshotStore:
    def test_empty_table_loads_none(self):
        assert SqlSnapshotStore("sqlite:///:memory:").load() is None

    def test_save_then_load(self, snapshot):
        store = SqlSnapshotStore("sqlite:///:memory:")
        store.save(snapshot)

        assert store.load() == snapshot

    def test_save_overwrites_single_row(self, snapshot):
        store = SqlSnapshotStore("sqlite:///:memory:")
        store.save(snapshot)
        store.save(LedgerSnapshot(timestamp=ENTRY_TIME))

        loaded = store.load()
        assert loaded.open_positions == []
        assert loaded.closed_positions == []

    def test_quarantine_moves_row_aside(self, snapshot):
        store = SqlSnapshotStore("sqlite:///:memory:")
        store.save(snapshot)

        assert store.quarantine(ENTRY_TIME) == "ledger_snapshots row 2"
        assert store.load() is None

        store.save(LedgerSnapshot(timestamp=ENTRY_TIME))
        with store.session_maker() as session:
            moved = session.get(LedgerSnapshotRecord, 2)
            assert moved.closed_count == 1
            assert moved.payload["closed"][0]["pair"] == "SOL/USD"

    def test_quarantine_empty_table_raises(self):
        with pytest.raises(PersistenceError):
            SqlSnapshotStore("sqlite:///:memory:").quarantine(ENTRY_TIME)

    def test_file_database_creates_parent_dir(self, tmp_path, snapshot):
        db_path = tmp_path / "nested" / "positions.db"
        store = SqlSnapshotStore(f"sqlite:///{db_path}")
        store.save(snapshot)

        assert db_path.exists()
        assert SqlSnapshotStore(f"sqlite:///{db_path}").load() == snapshot


# ---------------------------------------------------------------------------
# InMemorySnapshotStore
# ---------------------------------------------------------------------------


class TestInMemorySnapshotStore:
    def test_seeded_snapshot(self, snapshot):
        store = InMemorySnapshotStore(snapshot)
        assert store.load() == snapshot
        assert store.save_count == 0

    def test_save_counts(self, snapshot):
        store = InMemorySnapshotStore()
        store.save(snapshot)
        store.save(snapshot)
        assert store.save_count == 2
        assert store.document["open"][0]["pair"] == "ETH/USD"

    def test_malformed_document_raises_format_error(self):
        store = InMemorySnapshotStore()
        store.document = {"open": [{"pair": "ETH/USD"}]}
        with pytest.raises(SnapshotFormatError):
            store.load()

    def test_quarantine_keeps_document(self, snapshot):
        store = InMemorySnapshotStore(snapshot)
        document = store.document

        assert store.quarantine(ENTRY_TIME) == "quarantined[0]"
        assert store.quarantined == [document]
        assert store.load() is None


# ---------------------------------------------------------------------------
# create_snapshot_store
# ---------------------------------------------------------------------------


class TestCreateSnapshotStore:
    def test_json_backend(self, tmp_path):
        settings = Settings(_env_file=None, data_dir=str(tmp_path), snapshot_backend="json")
        store = create_snapshot_store(settings)
        assert isinstance(store, JsonFileSnapshotStore)
        assert store.path == tmp_path / "positions.json"

    def test_sql_backend(self):
        settings = Settings(_env_file=None, snapshot_backend="sql", database_url="sqlite:///:memory:")
        assert isinstance(create_snapshot_store(settings), SqlSnapshotStore)
