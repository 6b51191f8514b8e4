"""
Calendar grid geometry and appointment block view-models.
"""

from dataclasses import dataclass
from typing import Collection, List, Mapping, Optional, Sequence

from pendulum import Date, DateTime

from .conflicts import DriverResolver
from .models import Appointment, Driver, OverlapInfo
from .overlap import OverlapDetector
from .time_window import TimeWindowCalculator


@dataclass(frozen=True)
class BlockGeometry:
    """Pixel position of a block inside its day column."""
    top: float
    height: float
    slot: int = 0
    slot_count: int = 1

    @property
    def left_fraction(self) -> float:
        return self.slot / self.slot_count

    @property
    def width_fraction(self) -> float:
        return 1 / self.slot_count


@dataclass(frozen=True)
class AppointmentBlock:
    """Everything needed to draw one appointment in the week grid."""
    appointment_id: int
    geometry: BlockGeometry
    overlap: OverlapInfo
    status_class: str
    driver_id: Optional[int]
    driver_display: str
    time_label: str
    client_label: str
    location: str
    has_conflict: bool = False

    @property
    def overlap_class(self) -> Optional[str]:
        if not self.overlap.is_overlapping:
            return None
        return f"overlap-{self.geometry.slot + 1}-of-{self.geometry.slot_count}"


def week_start_for(moment: DateTime) -> DateTime:
    """Monday 00:00 of the week containing ``moment``."""
    return moment.start_of("week")


def format_hour(hour: int) -> str:
    """Format a grid hour as 7AM / 12PM / 11PM."""
    display_hour = hour % 12 or 12
    suffix = "AM" if hour % 24 < 12 else "PM"
    return f"{display_hour}{suffix}"


def driver_display_name(driver_id: Optional[int], drivers: Mapping[int, Driver]) -> str:
    if driver_id is None:
        return ""
    driver = drivers.get(driver_id)
    return driver.name if driver else f"Driver #{driver_id}"


def status_class_for(appointment: Appointment, driver_id: Optional[int]) -> str:
    if appointment.is_cancelled:
        return "status-cancelled"
    if driver_id is not None:
        return "status-assigned"
    return "status-pending"


class CalendarLayoutEngine:
    """
    Converts appointments and their overlap info into grid geometry.

    The grid covers [start_hour, end_hour] with ``hour_height`` pixels per
    hour. Overlapping blocks share the column in at most ``max_columns``
    side-by-side slots; larger groups wrap around into those slots.
    """

    def __init__(
        self,
        calculator: TimeWindowCalculator,
        start_hour: int = 7,
        end_hour: int = 23,
        hour_height: float = 60,
        max_columns: int = 3,
    ):
        if end_hour <= start_hour:
            raise ValueError("end_hour must be later than start_hour")
        if max_columns < 1:
            raise ValueError("max_columns must be at least 1")
        self.calculator = calculator
        self.overlap_detector = OverlapDetector(calculator)
        self.start_hour = start_hour
        self.end_hour = end_hour
        self.hour_height = hour_height
        self.max_columns = max_columns

    @property
    def grid_height(self) -> float:
        return (self.end_hour - self.start_hour + 1) * self.hour_height

    def hour_labels(self) -> List[str]:
        return [format_hour(hour) for hour in range(self.start_hour, self.end_hour + 1)]

    def week_days(self, week_start: DateTime, days: int = 5) -> List[Date]:
        """Dates of the first ``days`` days of the week (Mon-Fri by default)."""
        return [week_start.add(days=offset).date() for offset in range(days)]

    def block_geometry(
        self,
        appointment: Appointment,
        overlap: Optional[OverlapInfo] = None,
    ) -> BlockGeometry:
        window = self.calculator.window(appointment)

        # Wall-clock pickup hour on the appointment's own day; a pickup on the
        # previous day goes negative and is clamped to the top.
        pickup = window.start
        day_offset = (pickup.date() - appointment.appointment_datetime.date()).days
        effective_start_hour = (
            day_offset * 24 + pickup.hour + pickup.minute / 60 + pickup.second / 3600
        )

        top = max(0.0, (effective_start_hour - self.start_hour) * self.hour_height)
        height = window.duration_minutes() / 60 * self.hour_height

        if overlap is None or not overlap.is_overlapping:
            return BlockGeometry(top=top, height=height)

        slot_count = min(overlap.group_size, self.max_columns)
        slot = (overlap.index_in_group - 1) % slot_count
        return BlockGeometry(top=top, height=height, slot=slot, slot_count=slot_count)

    def layout_day(
        self,
        appointments: Sequence[Appointment],
        effective_driver: DriverResolver,
        drivers: Mapping[int, Driver],
        conflict_ids: Collection[int] = (),
    ) -> List[AppointmentBlock]:
        """Build the blocks for one day column, in input order."""
        overlap_info = self.overlap_detector.detect(appointments)

        blocks: List[AppointmentBlock] = []
        for appointment in appointments:
            overlap = overlap_info.get(appointment.id, OverlapInfo())
            blocks.append(self.build_block(
                appointment,
                overlap,
                effective_driver(appointment),
                drivers,
                has_conflict=appointment.id in conflict_ids,
            ))
        return blocks

    def build_block(
        self,
        appointment: Appointment,
        overlap: OverlapInfo,
        driver_id: Optional[int],
        drivers: Mapping[int, Driver],
        has_conflict: bool = False,
    ) -> AppointmentBlock:
        return AppointmentBlock(
            appointment_id=appointment.id,
            geometry=self.block_geometry(appointment, overlap),
            overlap=overlap,
            status_class=status_class_for(appointment, driver_id),
            driver_id=driver_id,
            driver_display=driver_display_name(driver_id, drivers),
            time_label=appointment.appointment_datetime.format("h:mm A"),
            client_label=appointment.client_label,
            location=appointment.location,
            has_conflict=has_conflict,
        )
