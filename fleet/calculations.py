"""Helper functions for maintenance due calculations."""

import math
from datetime import date, datetime, time
from typing import Optional

from .status import Severity

OIL_CHANGE_INTERVAL_KM = 5000
OIL_DANGER_KM = 1000
OIL_WARNING_KM = 2000

SAFETY_DANGER_DAYS = 30
SAFETY_WARNING_DAYS = 60
SAFETY_WINDOW_DAYS = 90

SECONDS_PER_DAY = 86400


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    if math.isnan(value):
        return high
    return max(low, min(high, value))


def oil_severity(oil_change_due: float) -> Severity:
    """Severity from remaining km until the next oil change."""
    if oil_change_due <= OIL_DANGER_KM:
        return Severity.DANGER
    if oil_change_due <= OIL_WARNING_KM:
        return Severity.WARNING
    return Severity.SAFE


def remaining_days(safety_due: date, now: Optional[datetime] = None) -> int:
    """
    Whole days until the safety inspection, rounded up.

    Negative when the inspection is already overdue.
    """
    now = now or datetime.now()
    due_at = datetime.combine(safety_due, time.min, tzinfo=now.tzinfo)
    return math.ceil((due_at - now).total_seconds() / SECONDS_PER_DAY)


def safety_severity(days: int) -> Severity:
    """Severity from remaining days until the safety inspection."""
    if days <= SAFETY_DANGER_DAYS:
        return Severity.DANGER
    if days <= SAFETY_WARNING_DAYS:
        return Severity.WARNING
    return Severity.SAFE


def oil_fraction(
    oil_change_due: float, interval_km: float = OIL_CHANGE_INTERVAL_KM
) -> float:
    """Share of the oil change interval already driven, in [0, 1]."""
    if interval_km <= 0:
        return 1.0
    return _clamp(1 - oil_change_due / interval_km)


def safety_fraction(days: int, window_days: int = SAFETY_WINDOW_DAYS) -> float:
    """Progress towards the safety inspection over the last window, in [0, 1]."""
    return _clamp(1 - max(days, 0) / window_days)


def worst_severity(*severities: Severity) -> Severity:
    """Most urgent of the given severities."""
    return min(severities, key=lambda s: s.value)
