"""
Domain models for appointments, drivers and draft assignments.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Tuple, Union

from pendulum import Date, DateTime

# Raw minute values arrive straight from the gateway and may be missing,
# non-numeric or non-positive; TimeWindowCalculator normalises them.
MinutesValue = Union[int, float, str, None]


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> float:
        """Return the duration in minutes."""
        return (self.end - self.start).total_seconds() / 60

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another (half-open intervals)."""
        return self.start < other.end and self.end > other.start

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass
class Appointment:
    """
    A scheduled client trip as loaded for the visible week range.

    ``confirmed_driver_id`` is the server-side assignment; drafts override it
    for display and conflict purposes until the schedule is submitted.
    """
    id: int
    appointment_datetime: DateTime
    appointment_length: MinutesValue = None
    transit_time: MinutesValue = None
    clinic_id: Optional[int] = None
    status: str = "pending"
    confirmed_driver_id: Optional[int] = None
    client_label: str = ""
    location: str = ""

    @property
    def is_cancelled(self) -> bool:
        return self.status == "cancelled"

    @property
    def day(self) -> Date:
        """Calendar day the appointment belongs to."""
        return self.appointment_datetime.date()


@dataclass(frozen=True)
class Driver:
    """A driver and the clinics they are normally assigned to."""
    id: int
    name: str
    clinic_ids: FrozenSet[int] = field(default_factory=frozenset)

    def serves_clinic(self, clinic_id: Optional[int]) -> bool:
        return clinic_id is not None and clinic_id in self.clinic_ids


@dataclass(frozen=True)
class Clinic:
    id: int
    name: str


@dataclass(frozen=True)
class DraftAssignment:
    """
    A pending driver override for one appointment.

    ``driver_id`` of None is an explicit unassignment, not a missing draft.
    """
    appointment_id: int
    driver_id: Optional[int]
    edited_by: Optional[str] = None
    edited_at: Optional[DateTime] = None


@dataclass(frozen=True)
class LastEdit:
    """Who touched the draft set last, and when."""
    edited_by: str
    edited_at: DateTime

    def format_display(self) -> str:
        return f"Last edited by {self.edited_by} at {self.edited_at.format('MMM D, YYYY h:mm A')}"


@dataclass(frozen=True)
class OverlapInfo:
    """Position of an appointment among the appointments overlapping it."""
    index_in_group: int = 1
    group_size: int = 1

    @property
    def is_overlapping(self) -> bool:
        return self.group_size > 1


@dataclass(frozen=True)
class Conflict:
    """Two appointments booked to the same driver with intersecting windows."""
    driver_id: int
    appointment_ids: Tuple[int, int]


@dataclass(frozen=True)
class ScheduleStats:
    total: int
    assigned: int
    pending: int
    conflicts: int


@dataclass
class OperationsData:
    """Everything loaded for one visible week range."""
    appointments: List[Appointment] = field(default_factory=list)
    drivers: List[Driver] = field(default_factory=list)
    clinics: List[Clinic] = field(default_factory=list)
    draft_assignments: List[DraftAssignment] = field(default_factory=list)
    last_draft_update: Optional[LastEdit] = None


@dataclass(frozen=True)
class DraftSaveResult:
    success: bool
    edited_by: Optional[str] = None
    edited_at: Optional[DateTime] = None
    message: Optional[str] = None


@dataclass(frozen=True)
class SubmitResponse:
    success: bool
    processed_count: int = 0
    message: Optional[str] = None
