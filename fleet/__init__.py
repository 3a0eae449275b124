"""
Fleet maintenance tracking models.

This package provides data models for tracking fleet maintenance:
- Severity: Urgency levels (DANGER, WARNING, SAFE)
- VehicleStatus: Operational status (on-road, in-shop, out-of-service)
- Vehicle: Odometer, oil change and safety inspection due facts, drivers
- MaintenanceDue: Evaluated maintenance status
- User, Role: Dashboard accounts
- FleetStore: YAML document store with change watch
"""

from .status import Severity, VehicleStatus, SEVERITY_DISPLAY
from .user import Role, User
from .maintenance_due import MaintenanceDue
from .vehicle import Vehicle
from .calculations import (
    OIL_CHANGE_INTERVAL_KM,
    oil_severity,
    safety_severity,
    remaining_days,
    oil_fraction,
    safety_fraction,
    worst_severity,
)
from .loader import (
    ChangeEvent,
    DuplicateNameError,
    FleetStore,
    VehicleNotFoundError,
    vehicle_from_dict,
    vehicle_to_dict,
)

__all__ = [
    "Severity",
    "VehicleStatus",
    "SEVERITY_DISPLAY",
    "Role",
    "User",
    "MaintenanceDue",
    "Vehicle",
    "OIL_CHANGE_INTERVAL_KM",
    "oil_severity",
    "safety_severity",
    "remaining_days",
    "oil_fraction",
    "safety_fraction",
    "worst_severity",
    "ChangeEvent",
    "DuplicateNameError",
    "FleetStore",
    "VehicleNotFoundError",
    "vehicle_from_dict",
    "vehicle_to_dict",
]
