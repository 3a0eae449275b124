"""MaintenanceDue dataclass for evaluated vehicle maintenance."""

from dataclasses import dataclass

from .calculations import worst_severity
from .status import Severity


@dataclass
class MaintenanceDue:
    """Evaluated oil change and safety inspection status for a vehicle."""

    oil_severity: Severity
    safety_severity: Severity
    oil_change_due: float
    remaining_days: int
    oil_fraction: float
    safety_fraction: float

    @property
    def displayed_days(self) -> int:
        """Remaining days clamped at zero for display."""
        return max(self.remaining_days, 0)

    @property
    def severity(self) -> Severity:
        """Combined severity: the worse of oil and safety."""
        return worst_severity(self.oil_severity, self.safety_severity)

    @property
    def label(self) -> str:
        return self.severity.label

    @property
    def is_due(self) -> bool:
        return self.severity in (Severity.DANGER, Severity.WARNING)
