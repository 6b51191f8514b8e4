"""
In-memory operations backend for running without the gateway.
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pendulum
from pendulum import DateTime

from ..domain.models import (
    Appointment,
    Clinic,
    DraftAssignment,
    DraftSaveResult,
    Driver,
    LastEdit,
    OperationsData,
    SubmitResponse,
)
from .operations_client import TimezoneLike, parse_operations_data

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_operations_data.json"


class InMemoryOperationsClient:
    """
    Mock client that behaves like the operations gateway.

    Drafts saved through it are kept server-side, and submitting copies the
    drafts of the requested range onto the appointments, exactly like the
    real batch commit. Every call is recorded in ``calls`` for inspection.
    """

    def __init__(
        self,
        data: Optional[OperationsData] = None,
        operator_name: str = "Mock Operator",
        range_weeks: int = 2,
        clock: Callable[[], DateTime] = pendulum.now,
    ):
        data = data or OperationsData()
        self.appointments: Dict[int, Appointment] = {apt.id: apt for apt in data.appointments}
        self.drivers: List[Driver] = list(data.drivers)
        self.clinics: List[Clinic] = list(data.clinics)
        self.drafts: Dict[int, DraftAssignment] = {
            draft.appointment_id: draft for draft in data.draft_assignments
        }
        self.last_update: Optional[LastEdit] = data.last_draft_update
        self.operator_name = operator_name
        self.range_weeks = range_weeks
        self._clock = clock
        self.calls: List[Dict[str, Any]] = []

    @classmethod
    def from_json_file(
        cls,
        data_file: Path = DEFAULT_DATA_FILE,
        timezone: TimezoneLike = None,
        **kwargs: Any,
    ) -> "InMemoryOperationsClient":
        """Load a fixture written in the gateway's own payload format."""
        if data_file.exists():
            with open(data_file, "r", encoding="utf-8") as f:
                payload = json.load(f)
        else:
            payload = {}
        return cls(data=parse_operations_data(payload, timezone), **kwargs)

    def earliest_week_start(self) -> Optional[DateTime]:
        """Monday of the earliest appointment, handy as a default week."""
        if not self.appointments:
            return None
        earliest = min(apt.appointment_datetime for apt in self.appointments.values())
        return earliest.start_of("week")

    def _in_range(self, appointment: Appointment, week_start: DateTime) -> bool:
        range_end = week_start.add(weeks=self.range_weeks)
        return week_start <= appointment.appointment_datetime < range_end

    async def load_operations_data(self, week_start: DateTime) -> OperationsData:
        self.calls.append({"op": "load", "week_start": week_start.to_date_string()})

        appointments = [
            replace(apt) for apt in self.appointments.values()
            if self._in_range(apt, week_start)
        ]
        visible_ids = {apt.id for apt in appointments}

        return OperationsData(
            appointments=appointments,
            drivers=list(self.drivers),
            clinics=list(self.clinics),
            draft_assignments=[
                draft for draft in self.drafts.values()
                if draft.appointment_id in visible_ids
            ],
            last_draft_update=self.last_update,
        )

    async def save_draft(
        self,
        appointment_id: int,
        driver_id: Optional[int],
        week_start: DateTime,
    ) -> DraftSaveResult:
        self.calls.append({
            "op": "save_draft",
            "appointment_id": appointment_id,
            "driver_id": driver_id,
            "week_start": week_start.to_date_string(),
        })

        if appointment_id not in self.appointments:
            return DraftSaveResult(success=False, message=f"Unknown appointment {appointment_id}")

        edited_at = self._clock()
        self.drafts[appointment_id] = DraftAssignment(
            appointment_id=appointment_id,
            driver_id=driver_id,
            edited_by=self.operator_name,
            edited_at=edited_at,
        )
        self.last_update = LastEdit(edited_by=self.operator_name, edited_at=edited_at)

        return DraftSaveResult(success=True, edited_by=self.operator_name, edited_at=edited_at)

    async def submit_schedule(self, week_start: DateTime) -> SubmitResponse:
        self.calls.append({"op": "submit", "week_start": week_start.to_date_string()})

        processed = 0
        for appointment_id, draft in list(self.drafts.items()):
            appointment = self.appointments.get(appointment_id)
            if appointment is None or not self._in_range(appointment, week_start):
                continue
            self.appointments[appointment_id] = replace(
                appointment, confirmed_driver_id=draft.driver_id
            )
            del self.drafts[appointment_id]
            processed += 1

        logger.info("Mock submit processed %d draft assignment(s)", processed)
        return SubmitResponse(success=True, processed_count=processed)
