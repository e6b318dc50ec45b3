"""Tests for backend/pyramid_trader/config.py"""

import os
import subprocess
import sys
from pathlib import Path

import pytest
from pydantic import ValidationError

import pyramid_trader
from pyramid_trader.config import Settings


class TestSettingsDefaults:
    def test_risk_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.profit_lock_giveback_pct == 0.5
        assert settings.underwater_exit_threshold_pct == -0.008
        assert settings.underwater_exit_min_time_minutes == 15.0
        assert settings.pyramid_l1_trigger_pct == 0.045
        assert settings.pyramid_l2_trigger_pct == 0.08
        assert settings.snapshot_backend == "json"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("PYRAMID_L1_CONFIDENCE_MIN", "80")
        monkeypatch.setenv("SNAPSHOT_BACKEND", "sql")

        settings = Settings(_env_file=None)

        assert settings.pyramid_l1_confidence_min == 80.0
        assert settings.snapshot_backend == "sql"


class TestSettingsValidation:
    def test_positive_underwater_threshold_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, underwater_exit_threshold_pct=0.008)

    @pytest.mark.parametrize("giveback", [0.0, 1.5, -0.2])
    def test_giveback_out_of_range_rejected(self, giveback):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, profit_lock_giveback_pct=giveback)

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, snapshot_backend="redis")


class TestImportDoesNotReadEnvironment:
    def test_bad_env_var_does_not_break_core_import(self, tmp_path):
        """Only code that builds Settings sees an invalid value."""
        env = dict(os.environ)
        env["PROFIT_LOCK_GIVEBACK_PCT"] = "50"
        env["PYTHONPATH"] = str(Path(pyramid_trader.__file__).resolve().parents[1])

        result = subprocess.run(
            [sys.executable, "-c", "import pyramid_trader.trading_engine.position_ledger"],
            cwd=tmp_path,
            env=env,
            capture_output=True,
            text=True,
        )

        assert result.returncode == 0, result.stderr

    def test_bad_env_var_still_rejected_by_settings(self, monkeypatch):
        monkeypatch.setenv("PROFIT_LOCK_GIVEBACK_PCT", "50")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)
