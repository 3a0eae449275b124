"""Demo fleet used by the init endpoint and `fleetctl.py seed`."""

from datetime import date, timedelta
from typing import List, Optional

from .status import VehicleStatus
from .vehicle import Vehicle


def demo_vehicles(today: Optional[date] = None) -> List[Vehicle]:
    """A small fleet covering every status and severity."""
    today = today or date.today()
    return [
        Vehicle(
            "Bus 101",
            km=184250,
            oil_change_due=3800,
            safety_due=today + timedelta(days=120),
            drivers=["Alvarez", "Chen"],
        ),
        Vehicle(
            "Bus 102",
            km=201730,
            oil_change_due=1500,
            safety_due=today + timedelta(days=45),
            drivers=["Okafor"],
        ),
        Vehicle(
            "Bus 103",
            km=97410,
            oil_change_due=600,
            safety_due=today + timedelta(days=12),
            status=VehicleStatus.IN_SHOP,
            status_reason="Brake pads",
            drivers=["Singh", "Tremblay"],
        ),
        Vehicle(
            "Van 7",
            km=65020,
            oil_change_due=4900,
            safety_due=today - timedelta(days=3),
            status=VehicleStatus.OUT_OF_SERVICE,
            status_reason="Failed safety inspection",
            comment="Waiting on parts",
        ),
    ]
