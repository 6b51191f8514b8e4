"""
Tests for the operations gateway HTTP client and payload parsing.
"""

import asyncio

import pendulum
import pytest
import requests

from opscalendar.adapters import operations_client
from opscalendar.adapters.operations_client import (
    OperationsApiClient,
    parse_appointment,
    parse_operations_data,
)
from opscalendar.domain.conflicts import ConflictDetector
from opscalendar.domain.exceptions import DataLoadError, DraftSaveError, OperationsApiError
from opscalendar.domain.time_window import TimeWindowCalculator
from opscalendar.services.draft_store import DraftAssignmentStore
from opscalendar.services.submitter import ScheduleSubmitter, SubmitOutcome, SubmitState

TZ = "America/Chicago"
WEEK_START = pendulum.datetime(2025, 1, 13, tz=TZ)


class RecordingNotifier:
    def __init__(self):
        self.toasts = []

    def show_toast(self, message, severity="info"):
        self.toasts.append((message, severity))


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class RecordingPost:
    """Replacement for requests.post that answers with a canned response."""

    def __init__(self, response):
        self.response = response
        self.calls = []

    def __call__(self, url, headers=None, json=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


@pytest.fixture
def api_client():
    return OperationsApiClient("https://ops.example.com/webhook/", "secret-token", timezone=TZ, timeout=5)


def _install(monkeypatch, response):
    fake = RecordingPost(response)
    monkeypatch.setattr(operations_client.requests, "post", fake)
    return fake


class TestParsing:
    """Tests for payload mapping."""

    def test_parse_appointment_with_combined_datetime(self):
        appointment = parse_appointment(
            {
                "id": "101",
                "appointmentDateTime": "2025-01-13T10:00:00",
                "appointmentLength": 120,
                "transitTime": 30,
                "clinic_id": 1,
                "status": "scheduled",
                "driver_assigned": 11,
                "knumber": "K-1042",
            },
            TZ,
        )

        assert appointment.id == 101
        assert appointment.appointment_datetime == pendulum.datetime(2025, 1, 13, 10, tz=TZ)
        assert appointment.confirmed_driver_id == 11
        assert appointment.client_label == "K-1042"

    def test_parse_appointment_with_split_date_and_time(self):
        appointment = parse_appointment(
            {"id": 104, "appt_date": "2025-01-14", "appointmentTime": "09:00", "driver_assigned": ""},
            TZ,
        )

        assert appointment.appointment_datetime == pendulum.datetime(2025, 1, 14, 9, tz=TZ)
        assert appointment.confirmed_driver_id is None
        assert appointment.status == "pending"

    def test_bad_records_are_skipped(self):
        data = parse_operations_data(
            {
                "appointments": [
                    {"id": 1, "appointmentDateTime": "2025-01-13T10:00:00"},
                    {"id": 2},
                    {"id": 3, "appointmentDateTime": "not a date"},
                    "not-a-record",
                ],
                "drivers": [{"id": 11, "name": "Maria Lopez"}, {"name": "No Id"}],
                "driverClinicAssignments": [
                    {"driver_id": 11, "clinic_id": 1},
                    {"driver_id": 11, "clinic_id": 2},
                ],
                "draftAssignments": [{"appointment_id": 1, "draft_driver_id": None}],
            },
            TZ,
        )

        assert [apt.id for apt in data.appointments] == [1]
        assert [driver.id for driver in data.drivers] == [11]
        assert data.drivers[0].clinic_ids == frozenset({1, 2})
        assert data.draft_assignments[0].driver_id is None
        assert data.last_draft_update is None


class TestOperationsApiClient:
    """Tests for OperationsApiClient."""

    def test_load_posts_week_start(self, monkeypatch, api_client):
        fake = _install(monkeypatch, FakeResponse({
            "success": True,
            "data": {
                "appointments": [{"id": 1, "appointmentDateTime": "2025-01-13T10:00:00"}],
                "metadata": {"lastDraftUpdate": {"editedBy": "Dana", "editedAt": "2025-01-10T16:42:00"}},
            },
        }))

        data = asyncio.run(api_client.load_operations_data(WEEK_START))

        assert fake.calls[0]["url"] == "https://ops.example.com/webhook/get-operations-data"
        assert fake.calls[0]["json"] == {"weekStart": "2025-01-13"}
        assert fake.calls[0]["headers"]["Authorization"] == "Bearer secret-token"
        assert fake.calls[0]["timeout"] == 5
        assert len(data.appointments) == 1
        assert data.last_draft_update.edited_by == "Dana"

    def test_load_rejected(self, monkeypatch, api_client):
        _install(monkeypatch, FakeResponse({"success": False, "message": "No access"}))

        with pytest.raises(DataLoadError, match="No access"):
            asyncio.run(api_client.load_operations_data(WEEK_START))

    def test_save_draft_acknowledgement(self, monkeypatch, api_client):
        fake = _install(monkeypatch, FakeResponse({
            "success": True,
            "data": {"editedBy": "Dana", "editedAt": "2025-01-14T09:00:00"},
        }))

        result = asyncio.run(api_client.save_draft(101, None, WEEK_START))

        assert fake.calls[0]["json"] == {"appointmentId": 101, "driverId": None, "weekStart": "2025-01-13"}
        assert result.success
        assert result.edited_by == "Dana"
        assert result.edited_at == pendulum.datetime(2025, 1, 14, 9, tz=TZ)

    def test_save_draft_top_level_acknowledgement(self, monkeypatch, api_client):
        _install(monkeypatch, FakeResponse({"success": True, "editedBy": "Lee"}))

        result = asyncio.run(api_client.save_draft(101, 11, WEEK_START))

        assert result.edited_by == "Lee"
        assert result.edited_at is None

    def test_save_draft_rejected(self, monkeypatch, api_client):
        _install(monkeypatch, FakeResponse({"success": False, "message": "Week is locked"}))

        with pytest.raises(DraftSaveError, match="Week is locked"):
            asyncio.run(api_client.save_draft(101, 11, WEEK_START))

    def test_submit(self, monkeypatch, api_client):
        _install(monkeypatch, FakeResponse({"success": True, "data": {"processedCount": 4}}))

        response = asyncio.run(api_client.submit_schedule(WEEK_START))

        assert response.success
        assert response.processed_count == 4

    def test_submit_rejected(self, monkeypatch, api_client):
        _install(monkeypatch, FakeResponse({"success": False}))

        response = asyncio.run(api_client.submit_schedule(WEEK_START))

        assert not response.success
        assert response.message == "Failed to submit schedule"

    def test_http_error(self, monkeypatch, api_client):
        _install(monkeypatch, FakeResponse({}, status_code=502))

        with pytest.raises(OperationsApiError, match="submit-weekly-schedule"):
            asyncio.run(api_client.submit_schedule(WEEK_START))

    def test_transport_error(self, monkeypatch, api_client):
        _install(monkeypatch, requests.exceptions.ConnectionError("refused"))

        with pytest.raises(OperationsApiError):
            asyncio.run(api_client.load_operations_data(WEEK_START))

    def test_invalid_json(self, monkeypatch, api_client):
        _install(monkeypatch, FakeResponse(ValueError("Expecting value")))

        with pytest.raises(OperationsApiError, match="Invalid JSON"):
            asyncio.run(api_client.load_operations_data(WEEK_START))

    def test_non_object_body(self, monkeypatch, api_client):
        _install(monkeypatch, FakeResponse(["unexpected"]))

        with pytest.raises(OperationsApiError, match="Unexpected response"):
            asyncio.run(api_client.load_operations_data(WEEK_START))

    def test_submit_with_non_numeric_count(self, monkeypatch, api_client):
        _install(monkeypatch, FakeResponse({"success": True, "data": {"processedCount": "n/a"}}))

        with pytest.raises(OperationsApiError, match="processedCount"):
            asyncio.run(api_client.submit_schedule(WEEK_START))

    def test_non_object_data(self, monkeypatch, api_client):
        _install(monkeypatch, FakeResponse({"success": True, "data": ["unexpected"]}))

        with pytest.raises(OperationsApiError, match="Unexpected data"):
            asyncio.run(api_client.load_operations_data(WEEK_START))
        with pytest.raises(OperationsApiError, match="Unexpected data"):
            asyncio.run(api_client.submit_schedule(WEEK_START))

    def test_non_object_acknowledgement(self, monkeypatch, api_client):
        _install(monkeypatch, FakeResponse({"success": True, "data": "ok"}))

        with pytest.raises(OperationsApiError, match="Unexpected acknowledgement"):
            asyncio.run(api_client.save_draft(101, 11, WEEK_START))

    def test_bad_submit_payload_then_retry(self, monkeypatch, api_client):
        """A malformed submit answer fails cleanly and the next submit goes through."""
        fake = _install(monkeypatch, FakeResponse({"success": True, "data": {"processedCount": "n/a"}}))
        notifier = RecordingNotifier()
        submitter = ScheduleSubmitter(
            client=api_client,
            store=DraftAssignmentStore(),
            conflict_detector=ConflictDetector(TimeWindowCalculator()),
            notifier=notifier,
        )

        async def reload():
            return True

        first = asyncio.run(submitter.submit(WEEK_START, [], lambda conflicts: True, reload))
        fake.response = FakeResponse({"success": True, "data": {"processedCount": 3}})
        second = asyncio.run(submitter.submit(WEEK_START, [], lambda conflicts: True, reload))

        assert first.outcome is SubmitOutcome.FAILURE
        assert notifier.toasts[0][1] == "danger"
        assert second.succeeded
        assert second.processed_count == 3
        assert submitter.state is SubmitState.IDLE
