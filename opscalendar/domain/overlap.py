"""
Visual overlap grouping for side-by-side appointment blocks.

Overlap here is a layout concern only: any two appointments on the same day
whose effective windows intersect, regardless of driver.
"""

from collections import OrderedDict
from typing import Dict, List, Sequence

from pendulum import Date

from .models import Appointment, OverlapInfo
from .time_window import TimeWindowCalculator


def group_by_day(appointments: Sequence[Appointment]) -> Dict[Date, List[Appointment]]:
    """Bucket appointments by calendar day, keeping input order within a day."""
    days: Dict[Date, List[Appointment]] = OrderedDict()
    for appointment in appointments:
        days.setdefault(appointment.day, []).append(appointment)
    return days


class OverlapDetector:
    """
    Computes, for each appointment of one day, its position among the
    appointments whose windows intersect its own.

    The group is evaluated per appointment rather than as a partition of the
    day: with A-B and B-C overlapping but not A-C, B sees a group of three
    while A and C each see a group of two.
    """

    def __init__(self, calculator: TimeWindowCalculator):
        self.calculator = calculator

    def detect(self, appointments: Sequence[Appointment]) -> Dict[int, OverlapInfo]:
        """
        Args:
            appointments: Appointments of a single calendar day

        Returns:
            Mapping of appointment id -> OverlapInfo
        """
        windows = [self.calculator.window(apt) for apt in appointments]

        # Stable sort by pickup time keeps original order for ties
        order = sorted(range(len(appointments)), key=lambda i: windows[i].start)

        overlap_info: Dict[int, OverlapInfo] = {}

        for i in order:
            group = [
                j for j in order
                if j == i or windows[i].overlaps(windows[j])
            ]
            overlap_info[appointments[i].id] = OverlapInfo(
                index_in_group=group.index(i) + 1,
                group_size=len(group),
            )

        return overlap_info
