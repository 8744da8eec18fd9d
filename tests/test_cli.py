"""Tests for the archive-gate CLI and settings."""

import json
from datetime import datetime

from archive_gate.cli import main
from archive_gate.config import Settings


class TestStatusCommand:
    """Tests for `archive-gate status`."""

    def test_status_with_overrides(self, capsys):
        code = main([
            "status",
            "--at", "2026-01-15T08:59:59-07:00",
            "--start-hour", "17",
            "--end-hour", "9",
            "--time-zone", "America/Denver",
        ])
        assert code == 0

        out = json.loads(capsys.readouterr().out)
        assert out["is_closed"] is True
        assert out["state"] == "closed"
        assert out["remaining"] == {"hours": 0, "minutes": 0, "seconds": 1}
        assert out["time_zone"] == "America/Denver"

    def test_status_local_flag(self, capsys):
        code = main([
            "status",
            "--at", "2026-01-15T12:00:00+00:00",
            "--start-hour", "3",
            "--end-hour", "6",
            "--time-zone", "UTC",
            "--local",
        ])
        assert code == 0
        out = json.loads(capsys.readouterr().out)
        assert out["time_zone"] is None

    def test_invalid_hour(self, capsys):
        code = main(["status", "--start-hour", "25", "--end-hour", "6"])
        assert code == 2
        assert "Invalid input" in capsys.readouterr().err

    def test_invalid_instant(self, capsys):
        assert main(["status", "--at", "not-a-date"]) == 2


class TestLaunchCommand:
    def test_launch(self, capsys):
        code = main(["launch", "--at", "2100-01-01T00:00:00"])
        assert code == 0
        out = json.loads(capsys.readouterr().out)
        assert out["launched"] is True


class TestSettings:
    """Tests for the settings defaults and env overrides."""

    def test_defaults(self, monkeypatch):
        for name in ("CLOSED_START_HOUR", "CLOSED_END_HOUR", "CLOSED_TIMEZONE", "CLOSED_ZONE_AWARE"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)
        config = settings.closed_hours
        assert (config.start_hour, config.end_hour) == (3, 6)
        assert config.time_zone is None
        assert config.zone_aware is True
        assert settings.launch_at == datetime(2025, 12, 3, 12, 0, 0)

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("CLOSED_START_HOUR", "21")
        monkeypatch.setenv("CLOSED_END_HOUR", "9")
        monkeypatch.setenv("CLOSED_TIMEZONE", "America/Denver")
        monkeypatch.setenv("CLOSED_ZONE_AWARE", "false")
        monkeypatch.setenv("GATED_PREFIXES", '["/archive", "/lab"]')
        settings = Settings(_env_file=None)

        config = settings.closed_hours
        assert config.wraps_midnight
        assert config.effective_time_zone is None
        assert settings.gated_prefixes == ["/archive", "/lab"]

    def test_null_disables_gate(self, monkeypatch):
        monkeypatch.setenv("CLOSED_START_HOUR", "null")
        settings = Settings(_env_file=None)
        assert not settings.closed_hours.enabled
