"""
Driver picker grouping: drivers attached to the appointment's clinic first.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .models import Driver

CLINIC_GROUP_LABEL = "Assigned to This Clinic"
OTHER_GROUP_LABEL = "Other Drivers"


@dataclass
class DriverOptionGroup:
    label: str
    drivers: List[Driver] = field(default_factory=list)


def group_drivers_for_clinic(
    drivers: Sequence[Driver],
    clinic_id: Optional[int],
) -> List[DriverOptionGroup]:
    """
    Split drivers into the clinic's own drivers and everyone else.

    Empty groups are left out, and driver order is preserved inside a group.
    """
    clinic_group = DriverOptionGroup(CLINIC_GROUP_LABEL)
    other_group = DriverOptionGroup(OTHER_GROUP_LABEL)

    for driver in drivers:
        if driver.serves_clinic(clinic_id):
            clinic_group.drivers.append(driver)
        else:
            other_group.drivers.append(driver)

    return [group for group in (clinic_group, other_group) if group.drivers]
