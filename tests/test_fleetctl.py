#!/usr/bin/env python3
"""Tests for fleetctl formatting, table helpers and commands."""

from datetime import date, datetime

from fleet import FleetStore, Role, Vehicle, VehicleStatus
from fleetctl import (
    format_days,
    format_km,
    main,
    make_status_table,
    truncate,
)

NOW = datetime(2025, 3, 1, 10, 0)


class TestFormatKm:
    def test_formats_number(self):
        assert format_km(50000) == "50,000"
        assert format_km(-250) == "-250"
        assert format_km(0) == "0"

    def test_none_returns_dash(self):
        assert format_km(None) == "-"


class TestFormatDays:
    def test_positive(self):
        assert format_days(14) == "14d"

    def test_overdue_clamped(self):
        assert format_days(-3) == "0d"


class TestTruncate:
    def test_empty_returns_dash(self):
        assert truncate(None) == "-"
        assert truncate("") == "-"

    def test_short_text_unchanged(self):
        assert truncate("short") == "short"

    def test_long_text_truncated_with_ellipsis(self):
        assert truncate("this is a very long note", max_len=15) == "this is a ve..."


class TestMakeStatusTable:
    def test_empty_list_returns_empty_rows(self):
        assert make_status_table([], NOW) == []

    def test_single_vehicle_row(self):
        vehicle = Vehicle(
            "Bus 1",
            km=184250,
            oil_change_due=1500,
            safety_due=date(2025, 3, 11),
            status=VehicleStatus.IN_SHOP,
            status_reason="Brakes",
            drivers=["Chen", "Okafor"],
            id="0123456789abcdef",
        )
        row = make_status_table([vehicle], NOW)[0]
        assert row == [
            "01234567",
            "Bus 1",
            "IN SHOP (Brakes)",
            "184,250",
            "1,500",
            "WARNING",
            "2025-03-11",
            "10d",
            "DANGER",
            "Chen, Okafor",
        ]


class TestLocalCommands:
    def test_seed(self, tmp_path, capsys):
        data_dir = tmp_path / "data"
        code = main(
            ["seed", "--data-dir", str(data_dir), "--username", "gm", "--password", "pw-123456"]
        )
        assert code == 0
        store = FleetStore(data_dir)
        assert len(store.list_vehicles()) == 4
        assert store.get_user("gm").role == Role.GM
        assert "Seeded 4 vehicles" in capsys.readouterr().out

    def test_add_user(self, tmp_path):
        data_dir = tmp_path / "data"
        code = main(
            ["add-user", "lead1", "--role", "LEAD", "--data-dir", str(data_dir), "--password", "pw"]
        )
        assert code == 0
        assert FleetStore(data_dir).get_user("lead1").role == Role.LEAD

    def test_add_duplicate_user_prints_error(self, tmp_path, capsys):
        data_dir = tmp_path / "data"
        argv = ["add-user", "lead1", "--data-dir", str(data_dir), "--password", "pw"]
        assert main(argv) == 0
        assert main(argv) == 1
        assert "Error: User 'lead1' already exists" in capsys.readouterr().out


class TestRemoteCommands:
    def test_status_requires_login(self, tmp_path, capsys):
        code = main(
            ["--url", "http://fleet.test", "--session-file", str(tmp_path / "s.json"), "status"]
        )
        assert code == 1
        assert "not logged in" in capsys.readouterr().out

    def test_logout_without_session(self, tmp_path, capsys):
        code = main(["--session-file", str(tmp_path / "s.json"), "logout"])
        assert code == 0
