"""
Driver double-booking detection.
"""

from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set

from .models import Appointment, Conflict
from .time_window import TimeWindowCalculator

DriverResolver = Callable[[Appointment], Optional[int]]


def active_appointments(appointments: Iterable[Appointment]) -> List[Appointment]:
    """Appointments that still need a driver (cancelled ones never conflict)."""
    return [apt for apt in appointments if not apt.is_cancelled]


def conflicting_ids(conflicts: Iterable[Conflict]) -> Set[int]:
    """All appointment ids that take part in at least one conflict."""
    ids: Set[int] = set()
    for conflict in conflicts:
        ids.update(conflict.appointment_ids)
    return ids


class ConflictDetector:
    """
    Finds appointments assigned to the same driver whose effective windows
    intersect.

    Every intersecting pair is reported on its own; three mutually overlapping
    trips for one driver yield three conflicts, not one.
    """

    def __init__(self, calculator: TimeWindowCalculator):
        self.calculator = calculator

    def detect(
        self,
        appointments: Sequence[Appointment],
        effective_driver: DriverResolver,
    ) -> List[Conflict]:
        """
        Args:
            appointments: Appointments to check (callers drop cancelled ones)
            effective_driver: Resolves the draft-aware driver of an appointment

        Returns:
            One Conflict per intersecting pair, grouped by driver in first-seen order
        """
        by_driver: Dict[int, List[Appointment]] = {}
        for appointment in appointments:
            driver_id = effective_driver(appointment)
            if driver_id is not None:
                by_driver.setdefault(driver_id, []).append(appointment)

        conflicts: List[Conflict] = []

        for driver_id, driver_appointments in by_driver.items():
            windows = [self.calculator.window(apt) for apt in driver_appointments]
            for i in range(len(driver_appointments)):
                for j in range(i + 1, len(driver_appointments)):
                    if windows[i].overlaps(windows[j]):
                        conflicts.append(
                            Conflict(
                                driver_id=driver_id,
                                appointment_ids=(
                                    driver_appointments[i].id,
                                    driver_appointments[j].id,
                                ),
                            )
                        )

        return conflicts
