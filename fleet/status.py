"""Severity and vehicle status enums."""

from enum import Enum


class Severity(Enum):
    """Maintenance severity levels. Lower value = more urgent."""

    DANGER = 1
    WARNING = 2
    SAFE = 3

    @property
    def css_class(self) -> str:
        return SEVERITY_DISPLAY[self]["css"]

    @property
    def bar_class(self) -> str:
        return SEVERITY_DISPLAY[self]["bar"]

    @property
    def label(self) -> str:
        return SEVERITY_DISPLAY[self]["label"]


# Display attributes for each severity (dashboard cards, CLI tables)
SEVERITY_DISPLAY = {
    Severity.DANGER: {
        "css": "bg-red-100 text-red-800 border-red-200",
        "bar": "bg-red-500",
        "label": "Service overdue",
    },
    Severity.WARNING: {
        "css": "bg-yellow-100 text-yellow-800 border-yellow-200",
        "bar": "bg-yellow-500",
        "label": "Service soon",
    },
    Severity.SAFE: {
        "css": "bg-green-100 text-green-800 border-green-200",
        "bar": "bg-green-500",
        "label": "OK",
    },
}


class VehicleStatus(Enum):
    """Operational status of a vehicle."""

    ON_ROAD = "on-road"
    IN_SHOP = "in-shop"
    OUT_OF_SERVICE = "out-of-service"

    @property
    def display_name(self) -> str:
        return self.value.replace("-", " ").upper()

    @classmethod
    def parse(cls, value: str) -> "VehicleStatus":
        """Accept 'on-road', 'on road' or 'ON_ROAD' spellings."""
        normalized = str(value).strip().lower().replace("_", "-").replace(" ", "-")
        for status in cls:
            if status.value == normalized:
                return status
        raise ValueError(f"Unknown vehicle status: {value!r}")
