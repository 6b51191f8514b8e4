"""
Operations page controller.

Owns the page state (active week, clinic filter, popover target) and wires
loading, rendering, draft edits and submission together. Detection and
layout are fully recomputed from this state on every render trigger.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional

import pendulum
from pendulum import Date, DateTime

from ..domain.conflicts import ConflictDetector, active_appointments, conflicting_ids
from ..domain.driver_options import DriverOptionGroup, group_drivers_for_clinic
from ..domain.exceptions import OperationsError
from ..domain.layout import AppointmentBlock, CalendarLayoutEngine, week_start_for
from ..domain.models import (
    Appointment,
    Clinic,
    Conflict,
    DraftAssignment,
    Driver,
    LastEdit,
    ScheduleStats,
)
from ..domain.overlap import group_by_day
from ..domain.time_window import TimeWindowCalculator
from .draft_store import DraftAssignmentStore
from .persistence import DEFAULT_DEBOUNCE_SECONDS, DraftPersistenceGateway
from .protocols import (
    IdentityProviderProtocol,
    NotificationSinkProtocol,
    OperationsClientProtocol,
)
from .submitter import ConfirmGate, ScheduleSubmitter, SubmitResult

logger = logging.getLogger(__name__)


@dataclass
class PageState:
    """Explicit UI state of the operations calendar."""
    week_start: DateTime
    clinic_filter: Optional[int] = None
    selected_appointment_id: Optional[int] = None
    loading: bool = False
    load_error: Optional[str] = None


@dataclass
class DayColumn:
    date: Date
    blocks: List[AppointmentBlock] = field(default_factory=list)

    @property
    def header(self) -> str:
        return f"{self.date.format('dddd')} {self.date.format('MMM D')}"


@dataclass
class WeekView:
    week_start: DateTime
    days: List[DayColumn] = field(default_factory=list)

    @property
    def label(self) -> str:
        first, last = self.days[0].date, self.days[-1].date
        return f"Week of {first.format('MMM D')} - {last.format('MMM D')}"


@dataclass
class CalendarView:
    """Everything the front-end needs to draw the visible range."""
    range_label: str
    hour_labels: List[str]
    weeks: List[WeekView]
    stats: ScheduleStats
    conflicts: List[Conflict]
    last_edited: str = ""


class OperationsPageController:
    """
    Coordinates the scheduling engine for one operator session.

    Every draft edit synchronously refreshes the edited block and the
    statistics, then schedules a debounced flush to the backend.
    """

    def __init__(
        self,
        client: OperationsClientProtocol,
        notifier: NotificationSinkProtocol,
        identity: IdentityProviderProtocol,
        *,
        calculator: Optional[TimeWindowCalculator] = None,
        layout: Optional[CalendarLayoutEngine] = None,
        week_start: Optional[DateTime] = None,
        weeks_visible: int = 2,
        days_per_week: int = 5,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        clock: Callable[[], DateTime] = pendulum.now,
    ) -> None:
        self._client = client
        self._notifier = notifier
        self._identity = identity
        self._clock = clock

        self.calculator = calculator or TimeWindowCalculator()
        self.layout = layout or CalendarLayoutEngine(self.calculator)
        self.conflict_detector = ConflictDetector(self.calculator)
        self.weeks_visible = weeks_visible
        self.days_per_week = days_per_week

        self.state = PageState(week_start=week_start_for(week_start or clock()))

        self.appointments: List[Appointment] = []
        self.drivers: List[Driver] = []
        self.clinics: List[Clinic] = []
        self.blocks: Dict[int, AppointmentBlock] = {}
        self.current_stats = ScheduleStats(total=0, assigned=0, pending=0, conflicts=0)

        self.store = DraftAssignmentStore()
        self.gateway = DraftPersistenceGateway(
            client=client,
            notifier=notifier,
            identity=identity,
            week_start=lambda: self.state.week_start,
            debounce_seconds=debounce_seconds,
            clock=clock,
        )
        self.submitter = ScheduleSubmitter(
            client=client,
            store=self.store,
            conflict_detector=self.conflict_detector,
            notifier=notifier,
            gateway=self.gateway,
        )
        self.store.subscribe(self._on_draft_changed)

    # -- loading & navigation -------------------------------------------

    async def load(self) -> bool:
        """
        Load the visible range and replace all local state with it.

        On failure the page stays in the loading state until retried.
        """
        logger.info("Loading operations data for week of %s", self.state.week_start.to_date_string())
        self.state.loading = True
        self.state.load_error = None

        try:
            data = await self._client.load_operations_data(self.state.week_start)
        except OperationsError as exc:
            logger.error("Error loading operations data: %s", exc)
            self.state.load_error = str(exc)
            self._notifier.show_toast(f"Error: {exc}", "danger")
            return False

        self.appointments = list(data.appointments)
        self.drivers = list(data.drivers)
        self.clinics = list(data.clinics)
        self.store.load(data.draft_assignments)
        self.gateway.last_edit = data.last_draft_update
        self.state.loading = False

        self.render()
        logger.info(
            "Loaded %d appointments, %d drivers", len(self.appointments), len(self.drivers)
        )
        return True

    async def navigate_week(self, weeks: int) -> bool:
        self.gateway.cancel_pending()
        self.state.week_start = self.state.week_start.add(weeks=weeks)
        self.state.selected_appointment_id = None
        return await self.load()

    async def go_to_today(self) -> bool:
        self.gateway.cancel_pending()
        self.state.week_start = week_start_for(self._clock())
        self.state.selected_appointment_id = None
        return await self.load()

    def set_clinic_filter(self, clinic_id: Optional[int]) -> CalendarView:
        self.state.clinic_filter = clinic_id
        return self.render()

    # -- lookups --------------------------------------------------------

    @property
    def drivers_by_id(self) -> Dict[int, Driver]:
        return {driver.id: driver for driver in self.drivers}

    @property
    def last_edit(self) -> Optional[LastEdit]:
        return self.gateway.last_edit

    def find_appointment(self, appointment_id: int) -> Optional[Appointment]:
        for appointment in self.appointments:
            if appointment.id == appointment_id:
                return appointment
        return None

    def visible_appointments(self) -> List[Appointment]:
        """Loaded appointments narrowed by the clinic filter."""
        if self.state.clinic_filter is None:
            return list(self.appointments)
        return [
            apt for apt in self.appointments
            if apt.clinic_id == self.state.clinic_filter
        ]

    # -- popover --------------------------------------------------------

    def select_appointment(self, appointment_id: int) -> Optional[Appointment]:
        appointment = self.find_appointment(appointment_id)
        if appointment is not None:
            self.state.selected_appointment_id = appointment_id
        return appointment

    def close_popover(self) -> None:
        self.state.selected_appointment_id = None

    def driver_options(self, appointment_id: int) -> List[DriverOptionGroup]:
        appointment = self.find_appointment(appointment_id)
        clinic_id = appointment.clinic_id if appointment else None
        return group_drivers_for_clinic(self.drivers, clinic_id)

    # -- editing --------------------------------------------------------

    def assign_driver(self, appointment_id: int, driver_id: Optional[int]) -> DraftAssignment:
        """
        Record a draft assignment; ``driver_id`` None unassigns.

        Must be called from inside a running event loop, which carries the
        debounced save.

        Raises:
            ValueError: If the appointment is not loaded
            RuntimeError: If no event loop is running (nothing is recorded)
        """
        if self.find_appointment(appointment_id) is None:
            raise ValueError(f"Unknown appointment id: {appointment_id}")
        asyncio.get_running_loop()
        return self.store.set(
            appointment_id,
            driver_id,
            edited_by=self._identity.display_name(),
            edited_at=self._clock(),
        )

    def _on_draft_changed(self, draft: DraftAssignment) -> None:
        # Only blocks on screen are rebuilt; filtered-out appointments stay hidden
        appointment = self.find_appointment(draft.appointment_id)
        previous = self.blocks.get(draft.appointment_id)
        if appointment is not None and previous is not None:
            self.blocks[appointment.id] = self.layout.build_block(
                appointment,
                previous.overlap,
                draft.driver_id,
                self.drivers_by_id,
                has_conflict=previous.has_conflict,
            )

        conflicts = self.conflicts()
        self._refresh_conflict_flags(conflicts)
        self.current_stats = self.stats(conflicts)

        self.gateway.schedule(draft.appointment_id, draft.driver_id)

    def _refresh_conflict_flags(self, conflicts: List[Conflict]) -> None:
        flagged = conflicting_ids(conflicts)
        for appointment_id, block in self.blocks.items():
            has_conflict = appointment_id in flagged
            if block.has_conflict != has_conflict:
                self.blocks[appointment_id] = replace(block, has_conflict=has_conflict)

    # -- derived views --------------------------------------------------

    def conflicts(self) -> List[Conflict]:
        return self.conflict_detector.detect(
            active_appointments(self.visible_appointments()),
            self.store.effective_driver,
        )

    def stats(self, conflicts: Optional[List[Conflict]] = None) -> ScheduleStats:
        active = active_appointments(self.visible_appointments())
        assigned = sum(1 for apt in active if self.store.effective_driver(apt) is not None)
        if conflicts is None:
            conflicts = self.conflicts()
        return ScheduleStats(
            total=len(active),
            assigned=assigned,
            pending=len(active) - assigned,
            conflicts=len(conflicts),
        )

    def range_label(self) -> str:
        first = self.state.week_start
        last = first.add(weeks=self.weeks_visible - 1, days=self.days_per_week - 1)
        return f"{first.format('MMM D')} - {last.format('MMM D')}, {last.year}"

    def render(self) -> CalendarView:
        appointments = self.visible_appointments()
        by_day = group_by_day(appointments)
        drivers = self.drivers_by_id
        conflicts = self.conflicts()
        flagged = conflicting_ids(conflicts)

        weeks: List[WeekView] = []
        self.blocks = {}

        for week_offset in range(self.weeks_visible):
            week_start = self.state.week_start.add(weeks=week_offset)
            week = WeekView(week_start=week_start)
            for day in self.layout.week_days(week_start, self.days_per_week):
                blocks = self.layout.layout_day(
                    by_day.get(day, []),
                    self.store.effective_driver,
                    drivers,
                    flagged,
                )
                for block in blocks:
                    self.blocks[block.appointment_id] = block
                week.days.append(DayColumn(date=day, blocks=blocks))
            weeks.append(week)

        self.current_stats = self.stats(conflicts)
        last_edit = self.last_edit

        return CalendarView(
            range_label=self.range_label(),
            hour_labels=self.layout.hour_labels(),
            weeks=weeks,
            stats=self.current_stats,
            conflicts=conflicts,
            last_edited=last_edit.format_display() if last_edit else "",
        )

    # -- submit ---------------------------------------------------------

    async def submit(self, confirm: ConfirmGate) -> SubmitResult:
        return await self.submitter.submit(
            week_start=self.state.week_start,
            appointments=self.appointments,
            confirm=confirm,
            reload=self.load,
        )
