#!/usr/bin/env python3
"""
Tests for Vehicle class.

Covers defaults, status/reason handling, odometer updates and the
maintenance evaluation (oil change by remaining km, safety by due date).
"""

from datetime import date, datetime, timedelta

import pytest

from fleet import MaintenanceDue, Severity, Vehicle, VehicleStatus

NOW = datetime(2025, 3, 1, 10, 0)


class TestVehicleDefaults:
    """Tests for server-assigned defaults."""

    def test_oil_change_due_defaults_to_interval(self):
        assert Vehicle("Bus 1").oil_change_due == 5000

    def test_safety_due_defaults_to_180_days(self):
        assert Vehicle("Bus 1").safety_due == date.today() + timedelta(days=180)

    def test_status_defaults_to_on_road(self):
        vehicle = Vehicle("Bus 1")
        assert vehicle.status == VehicleStatus.ON_ROAD
        assert vehicle.drivers == []
        assert vehicle.comment is None

    def test_explicit_zero_oil_change_due_kept(self):
        assert Vehicle("Bus 1", oil_change_due=0).oil_change_due == 0


class TestVehicleStatusReason:
    """Status reason is only meaningful off the road."""

    def test_on_road_drops_reason(self):
        vehicle = Vehicle("Bus 1", status_reason="leftover")
        assert vehicle.display_reason is None

    def test_in_shop_keeps_reason(self):
        vehicle = Vehicle("Bus 1", status=VehicleStatus.IN_SHOP, status_reason="Brakes")
        assert vehicle.display_reason == "Brakes"

    def test_back_on_road_clears_reason(self):
        vehicle = Vehicle("Bus 1", status=VehicleStatus.IN_SHOP, status_reason="Brakes")
        vehicle.set_status(VehicleStatus.ON_ROAD, "ignored")
        assert vehicle.status_reason is None
        assert vehicle.display_reason is None


class TestRecordOdometer:
    """Tests for odometer updates against remaining oil change km."""

    def test_driven_distance_reduces_oil_change_due(self):
        vehicle = Vehicle("Bus 1", km=10000, oil_change_due=3000)
        driven = vehicle.record_odometer(11200)
        assert driven == 1200
        assert vehicle.km == 11200
        assert vehicle.oil_change_due == 1800

    def test_can_go_overdue(self):
        vehicle = Vehicle("Bus 1", km=10000, oil_change_due=500)
        vehicle.record_odometer(11000)
        assert vehicle.oil_change_due == -500

    def test_same_reading_is_noop(self):
        vehicle = Vehicle("Bus 1", km=10000, oil_change_due=500)
        assert vehicle.record_odometer(10000) == 0
        assert vehicle.oil_change_due == 500

    def test_backwards_reading_rejected(self):
        vehicle = Vehicle("Bus 1", km=10000)
        with pytest.raises(ValueError, match="lower than current"):
            vehicle.record_odometer(9000)
        assert vehicle.km == 10000

    def test_negative_reading_rejected(self):
        with pytest.raises(ValueError):
            Vehicle("Bus 1").record_odometer(-1)

    def test_reset_oil_change(self):
        vehicle = Vehicle("Bus 1", oil_change_due=-200)
        vehicle.reset_oil_change()
        assert vehicle.oil_change_due == 5000


class TestEvaluate:
    """Integration tests for Vehicle.evaluate."""

    def test_returns_maintenance_due(self):
        vehicle = Vehicle("Bus 1", oil_change_due=4000, safety_due=date(2025, 8, 1))
        due = vehicle.evaluate(NOW)
        assert isinstance(due, MaintenanceDue)
        assert due.oil_severity == Severity.SAFE
        assert due.safety_severity == Severity.SAFE
        assert due.severity == Severity.SAFE
        assert not due.is_due

    def test_oil_change_due_2000_is_warning_for_any_km(self):
        for km in (0, 150000, 999999):
            vehicle = Vehicle("Bus 1", km=km, oil_change_due=2000, safety_due=date(2026, 1, 1))
            assert vehicle.evaluate(NOW).oil_severity == Severity.WARNING

    def test_safety_due_in_ten_days_is_danger(self):
        vehicle = Vehicle("Bus 1", safety_due=date(2025, 3, 11))
        due = vehicle.evaluate(NOW)
        assert due.safety_severity == Severity.DANGER
        assert due.displayed_days == 10

    def test_overdue_safety_clamps_to_zero(self):
        vehicle = Vehicle("Bus 1", safety_due=date(2025, 2, 1))
        due = vehicle.evaluate(NOW)
        assert due.remaining_days < 0
        assert due.displayed_days == 0
        assert due.safety_severity == Severity.DANGER
        assert due.safety_fraction == 1

    def test_combined_severity_is_worst(self):
        vehicle = Vehicle("Bus 1", oil_change_due=1500, safety_due=date(2026, 1, 1))
        due = vehicle.evaluate(NOW)
        assert due.severity == Severity.WARNING
        assert due.label == "Service soon"
        assert due.is_due

    def test_negative_oil_change_due_is_danger(self):
        vehicle = Vehicle("Bus 1", oil_change_due=-250, safety_due=date(2026, 1, 1))
        due = vehicle.evaluate(NOW)
        assert due.oil_severity == Severity.DANGER
        assert due.oil_fraction == 1

    def test_evaluate_does_not_modify_vehicle(self):
        vehicle = Vehicle("Bus 1", km=100, oil_change_due=800, safety_due=date(2025, 3, 5))
        vehicle.evaluate(NOW)
        assert (vehicle.km, vehicle.oil_change_due, vehicle.safety_due) == (
            100,
            800,
            date(2025, 3, 5),
        )
