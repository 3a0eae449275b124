"""Vehicle class - the main aggregate for fleet vehicle data and calculations."""

from datetime import date, datetime, timedelta
from typing import List, Optional

from .calculations import (
    OIL_CHANGE_INTERVAL_KM,
    oil_fraction,
    oil_severity,
    remaining_days,
    safety_fraction,
    safety_severity,
)
from .maintenance_due import MaintenanceDue
from .status import VehicleStatus

SAFETY_DUE_DEFAULT_DAYS = 180


class Vehicle:
    """A fleet vehicle with odometer, maintenance due facts and assigned drivers."""

    def __init__(
        self,
        name: str,
        km: float = 0,
        oil_change_due: Optional[float] = None,
        safety_due: Optional[date] = None,
        status: VehicleStatus = VehicleStatus.ON_ROAD,
        status_reason: Optional[str] = None,
        drivers: Optional[List[str]] = None,
        comment: Optional[str] = None,
        id: Optional[str] = None,
    ):
        self.id = id
        self.name = name
        self.km = km
        self.oil_change_due = (
            OIL_CHANGE_INTERVAL_KM if oil_change_due is None else oil_change_due
        )
        self.safety_due = safety_due or (
            date.today() + timedelta(days=SAFETY_DUE_DEFAULT_DAYS)
        )
        self.status = status
        self.status_reason = status_reason
        self.drivers = list(drivers or [])
        self.comment = comment
        if self.status == VehicleStatus.ON_ROAD:
            self.status_reason = None

    @property
    def display_reason(self) -> Optional[str]:
        """Status reason, only meaningful when the vehicle is off the road."""
        if self.status == VehicleStatus.ON_ROAD:
            return None
        return self.status_reason or None

    def set_status(self, status: VehicleStatus, reason: Optional[str] = None) -> None:
        """Change operational status; going back on-road clears the reason."""
        self.status = status
        self.status_reason = None if status == VehicleStatus.ON_ROAD else reason

    def record_odometer(self, km: float) -> float:
        """
        Record a new odometer reading.

        The distance driven since the last reading is subtracted from the
        remaining km until the next oil change. Returns the distance driven.
        Raises ValueError if the reading goes backwards.
        """
        if km < 0:
            raise ValueError("Odometer reading must be >= 0")
        if km < self.km:
            raise ValueError(
                f"Odometer reading {km:,.0f} is lower than current {self.km:,.0f}"
            )
        driven = km - self.km
        self.km = km
        self.oil_change_due -= driven
        return driven

    def reset_oil_change(self, interval_km: float = OIL_CHANGE_INTERVAL_KM) -> None:
        """Record an oil change: the next one is due a full interval from now."""
        self.oil_change_due = interval_km

    def evaluate(
        self,
        now: Optional[datetime] = None,
        interval_km: float = OIL_CHANGE_INTERVAL_KM,
    ) -> MaintenanceDue:
        """
        Evaluate oil change and safety inspection status.

        Pure: does not modify the vehicle. `now` defaults to the current time.
        """
        days = remaining_days(self.safety_due, now)
        return MaintenanceDue(
            oil_severity=oil_severity(self.oil_change_due),
            safety_severity=safety_severity(days),
            oil_change_due=self.oil_change_due,
            remaining_days=days,
            oil_fraction=oil_fraction(self.oil_change_due, interval_km),
            safety_fraction=safety_fraction(days),
        )

    def __repr__(self) -> str:
        return f"<Vehicle {self.name} ({self.status.value})>"
