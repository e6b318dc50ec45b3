"""Tests for the pyramid-report CLI (backend/pyramid_trader/report.py)"""

from pyramid_trader.persistence import JsonFileSnapshotStore
from pyramid_trader.report import main
from pyramid_trader.trading_engine.position_ledger import PositionLedger


def _seed_ledger(data_dir):
    ledger = PositionLedger(JsonFileSnapshotStore(str(data_dir)))
    ledger.open_position("SOL/USD", 100.0, 2.0, stop_loss=98.0, profit_target=105.0)
    ledger.close_position("SOL/USD", 105.0, "profit_target")
    ledger.open_position("ETH/USD", 3000.0, 1.0, stop_loss=2900.0, profit_target=3200.0)
    ledger.update_position("ETH/USD", 3060.0)


class TestReportMain:
    def test_prints_stats_and_health(self, tmp_path, capsys):
        _seed_ledger(tmp_path)

        exit_code = main(["--data-dir", str(tmp_path), "--backend", "json"])

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "trades=1" in out
        assert "Open positions: 1" in out
        assert "ETH/USD" in out

    def test_export(self, tmp_path, capsys):
        _seed_ledger(tmp_path)
        export_path = tmp_path / "trades.csv"

        exit_code = main(["--data-dir", str(tmp_path), "--backend", "json", "--export", str(export_path)])

        assert exit_code == 0
        lines = export_path.read_text().splitlines()
        assert len(lines) == 2
        assert lines[1].startswith("SOL/USD,")

    def test_empty_data_dir(self, tmp_path, capsys):
        assert main(["--data-dir", str(tmp_path / "empty"), "--backend", "json"]) == 0
        assert "Open positions: 0" in capsys.readouterr().out
