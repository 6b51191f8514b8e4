"""
HTTP client for the operations gateway.

The gateway owns the JSON shapes; this module only maps them onto the
domain model. Blocking ``requests`` calls run in a worker thread so the
event loop keeps serving edits while a load, flush or submit is in flight.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Union

import pendulum
import requests
from pendulum import DateTime
from pendulum.tz.timezone import Timezone

from ..domain.exceptions import DataLoadError, DraftSaveError, OperationsApiError
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

logger = logging.getLogger(__name__)

TimezoneLike = Union[str, Timezone, None]


def resolve_timezone(timezone: TimezoneLike) -> Timezone:
    """Configured zone, or the machine's local zone when none is set."""
    if timezone is None:
        return pendulum.local_timezone()
    if isinstance(timezone, str):
        return pendulum.timezone(timezone)
    return timezone


def parse_datetime(value: str, timezone: TimezoneLike = None) -> DateTime:
    """
    Parse an ISO 8601 string into a DateTime in the given zone.

    Naive strings are read as local wall-clock time.

    Raises:
        ValueError: If the string is not a date-time
    """
    tz = resolve_timezone(timezone)
    parsed = pendulum.parse(value, tz=tz)

    if isinstance(parsed, DateTime):
        return parsed.in_timezone(tz)

    raise ValueError(f"Could not parse datetime: {value}")


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def parse_appointment(item: Dict[str, Any], timezone: TimezoneLike = None) -> Appointment:
    """
    Map one appointment record onto the domain model.

    Accepts either ``appointmentDateTime`` or a separate date
    (``appointmentDate`` / ``appt_date``) and ``appointmentTime``.
    """
    raw_datetime = item.get("appointmentDateTime")
    if not raw_datetime:
        date_part = item.get("appointmentDate") or item.get("appt_date")
        time_part = item.get("appointmentTime")
        if not date_part or not time_part:
            raise KeyError("appointmentDateTime")
        raw_datetime = f"{date_part}T{time_part}"

    return Appointment(
        id=int(item["id"]),
        appointment_datetime=parse_datetime(raw_datetime, timezone),
        appointment_length=item.get("appointmentLength"),
        transit_time=item.get("transitTime"),
        clinic_id=_optional_int(item.get("clinic_id")),
        status=item.get("status") or "pending",
        confirmed_driver_id=_optional_int(item.get("driver_assigned")),
        client_label=str(item.get("knumber") or ""),
        location=str(item.get("location") or ""),
    )


def parse_drivers(
    drivers: Iterable[Dict[str, Any]],
    clinic_assignments: Iterable[Dict[str, Any]],
) -> List[Driver]:
    """Build drivers with their clinic affinities folded in."""
    affinities: Dict[int, set] = {}
    for assignment in clinic_assignments:
        try:
            driver_id = int(assignment["driver_id"])
            clinic_id = int(assignment["clinic_id"])
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping driver/clinic assignment %r: %s", assignment, e)
            continue
        affinities.setdefault(driver_id, set()).add(clinic_id)

    parsed: List[Driver] = []
    for item in drivers:
        try:
            driver_id = int(item["id"])
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping driver record %r: %s", item, e)
            continue
        parsed.append(
            Driver(
                id=driver_id,
                name=str(item.get("name") or f"Driver #{driver_id}"),
                clinic_ids=frozenset(affinities.get(driver_id, ())),
            )
        )
    return parsed


def parse_draft(item: Dict[str, Any], timezone: TimezoneLike = None) -> DraftAssignment:
    edited_at = item.get("edited_at")
    return DraftAssignment(
        appointment_id=int(item["appointment_id"]),
        driver_id=_optional_int(item.get("draft_driver_id")),
        edited_by=item.get("edited_by"),
        edited_at=parse_datetime(edited_at, timezone) if edited_at else None,
    )


def parse_last_edit(item: Optional[Dict[str, Any]], timezone: TimezoneLike = None) -> Optional[LastEdit]:
    if not item or not item.get("editedBy") or not item.get("editedAt"):
        return None
    try:
        return LastEdit(
            edited_by=str(item["editedBy"]),
            edited_at=parse_datetime(item["editedAt"], timezone),
        )
    except ValueError as e:
        logger.warning("Could not parse last draft update %r: %s", item, e)
        return None


def parse_operations_data(data: Dict[str, Any], timezone: TimezoneLike = None) -> OperationsData:
    """
    Parse the ``data`` object of a get-operations-data response.

    Records that cannot be parsed are skipped with a warning rather than
    failing the whole load.
    """
    appointments: List[Appointment] = []
    for item in data.get("appointments") or []:
        try:
            appointments.append(parse_appointment(item, timezone))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping appointment record %r: %s", item, e)

    clinics: List[Clinic] = []
    for item in data.get("clinics") or []:
        try:
            clinics.append(Clinic(id=int(item["id"]), name=str(item.get("name") or "")))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping clinic record %r: %s", item, e)

    drafts: List[DraftAssignment] = []
    for item in data.get("draftAssignments") or []:
        try:
            drafts.append(parse_draft(item, timezone))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping draft record %r: %s", item, e)

    metadata = data.get("metadata") or {}

    return OperationsData(
        appointments=appointments,
        drivers=parse_drivers(
            data.get("drivers") or [],
            data.get("driverClinicAssignments") or [],
        ),
        clinics=clinics,
        draft_assignments=drafts,
        last_draft_update=parse_last_edit(metadata.get("lastDraftUpdate"), timezone),
    )


class OperationsApiClient:
    """
    Client for the operations webhook gateway.

    Every endpoint takes a JSON POST with a bearer token and answers with
    ``{"success": bool, "message": str?, "data": {...}}``.
    """

    LOAD_ENDPOINT = "get-operations-data"
    SAVE_DRAFT_ENDPOINT = "save-draft-assignment"
    SUBMIT_ENDPOINT = "submit-weekly-schedule"

    def __init__(
        self,
        base_url: str,
        access_token: str,
        timezone: TimezoneLike = None,
        timeout: float = 30,
    ):
        """
        Initialize the gateway client.

        Args:
            base_url: Gateway root, e.g. https://ops.example.com/webhook
            access_token: Bearer token for the Authorization header
            timezone: Zone appointments are displayed in (local when None)
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timezone = timezone
        self.timeout = timeout
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    async def load_operations_data(self, week_start: DateTime) -> OperationsData:
        response = await asyncio.to_thread(
            self._post,
            self.LOAD_ENDPOINT,
            {"weekStart": week_start.to_date_string()},
        )

        if not response.get("success"):
            raise DataLoadError(response.get("message") or "Failed to load operations data")

        return parse_operations_data(
            self._data_object(response, self.LOAD_ENDPOINT),
            self.timezone,
        )

    async def save_draft(
        self,
        appointment_id: int,
        driver_id: Optional[int],
        week_start: DateTime,
    ) -> DraftSaveResult:
        response = await asyncio.to_thread(
            self._post,
            self.SAVE_DRAFT_ENDPOINT,
            {
                "appointmentId": appointment_id,
                "driverId": driver_id,
                "weekStart": week_start.to_date_string(),
            },
        )

        if not response.get("success"):
            raise DraftSaveError(response.get("message") or "Draft assignment was rejected")

        # The acknowledgement may carry the actor at the top level or in data
        ack = response.get("data") or response
        if not isinstance(ack, dict):
            raise OperationsApiError(f"Unexpected acknowledgement from {self.SAVE_DRAFT_ENDPOINT}: {ack!r}")
        edited_at = ack.get("editedAt")
        try:
            parsed_edited_at = parse_datetime(edited_at, self.timezone) if edited_at else None
        except ValueError:
            logger.warning("Ignoring unparseable editedAt %r", edited_at)
            parsed_edited_at = None

        return DraftSaveResult(
            success=True,
            edited_by=ack.get("editedBy"),
            edited_at=parsed_edited_at,
        )

    async def submit_schedule(self, week_start: DateTime) -> SubmitResponse:
        response = await asyncio.to_thread(
            self._post,
            self.SUBMIT_ENDPOINT,
            {"weekStart": week_start.to_date_string()},
        )

        if not response.get("success"):
            return SubmitResponse(
                success=False,
                message=response.get("message") or "Failed to submit schedule",
            )

        data = self._data_object(response, self.SUBMIT_ENDPOINT)
        try:
            processed_count = int(data.get("processedCount") or 0)
        except (TypeError, ValueError) as e:
            raise OperationsApiError(
                f"Invalid processedCount from {self.SUBMIT_ENDPOINT}: {data.get('processedCount')!r}"
            ) from e

        return SubmitResponse(success=True, processed_count=processed_count)

    @staticmethod
    def _data_object(response: Dict[str, Any], endpoint: str) -> Dict[str, Any]:
        """Return the envelope's ``data`` object, empty when absent."""
        data = response.get("data") or {}
        if not isinstance(data, dict):
            raise OperationsApiError(f"Unexpected data from {endpoint}: {data!r}")
        return data

    def _post(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST a JSON payload and return the decoded envelope.

        Raises:
            OperationsApiError: On transport errors, HTTP errors or non-JSON bodies
        """
        url = f"{self.base_url}/{endpoint}"
        logger.debug("POST %s %s", url, payload)

        try:
            response = requests.post(
                url,
                headers=self.headers,
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise OperationsApiError(f"Request to {endpoint} failed: {e}") from e
        except ValueError as e:
            raise OperationsApiError(f"Invalid JSON from {endpoint}: {e}") from e

        if not isinstance(data, dict):
            raise OperationsApiError(f"Unexpected response from {endpoint}: {data!r}")

        return data
