"""
Domain layer - Pure scheduling logic without external dependencies.
"""

from .conflicts import ConflictDetector, active_appointments, conflicting_ids
from .layout import AppointmentBlock, BlockGeometry, CalendarLayoutEngine, week_start_for
from .models import (
    Appointment,
    Clinic,
    Conflict,
    DraftAssignment,
    Driver,
    LastEdit,
    OperationsData,
    OverlapInfo,
    ScheduleStats,
    TimeRange,
)
from .overlap import OverlapDetector, group_by_day
from .time_window import TimeWindowCalculator

__all__ = [
    "Appointment",
    "AppointmentBlock",
    "BlockGeometry",
    "CalendarLayoutEngine",
    "Clinic",
    "Conflict",
    "ConflictDetector",
    "DraftAssignment",
    "Driver",
    "LastEdit",
    "OperationsData",
    "OverlapDetector",
    "OverlapInfo",
    "ScheduleStats",
    "TimeRange",
    "TimeWindowCalculator",
    "active_appointments",
    "conflicting_ids",
    "group_by_day",
    "week_start_for",
]
