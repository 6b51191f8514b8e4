"""
Tests for the schedule submit workflow.
"""

import asyncio
from typing import List, Optional, Tuple

import pendulum
import pytest

from opscalendar.domain.conflicts import ConflictDetector
from opscalendar.domain.exceptions import OperationsApiError
from opscalendar.domain.models import Appointment, DraftSaveResult, SubmitResponse
from opscalendar.domain.time_window import TimeWindowCalculator
from opscalendar.services.draft_store import DraftAssignmentStore
from opscalendar.services.persistence import DraftPersistenceGateway
from opscalendar.services.protocols import StaticIdentity
from opscalendar.services.submitter import (
    ScheduleSubmitter,
    SubmitOutcome,
    SubmitState,
)

TZ = "America/Chicago"
WEEK_START = pendulum.datetime(2025, 1, 13, tz=TZ)


class RecordingNotifier:
    def __init__(self):
        self.toasts: List[Tuple[str, str]] = []

    def show_toast(self, message, severity="info"):
        self.toasts.append((message, severity))


class StubPersistenceClient:
    """Minimal stub matching PersistenceClientProtocol."""

    def __init__(self, response: Optional[SubmitResponse] = None, error: Optional[Exception] = None):
        self.response = response or SubmitResponse(success=True, processed_count=0)
        self.error = error
        self.calls: List[Tuple] = []

    async def save_draft(self, appointment_id, driver_id, week_start):
        self.calls.append(("save", appointment_id, driver_id))
        return DraftSaveResult(success=True)

    async def submit_schedule(self, week_start):
        self.calls.append(("submit", week_start.to_date_string()))
        if self.error is not None:
            raise self.error
        return self.response


class ReloadCounter:
    def __init__(self):
        self.count = 0

    async def __call__(self):
        self.count += 1
        return True


def _appointment(appointment_id, at, driver=None):
    return Appointment(
        id=appointment_id,
        appointment_datetime=pendulum.parse(at, tz=TZ),
        appointment_length=60,
        transit_time=30,
        confirmed_driver_id=driver,
    )


def _conflicting_pair():
    return [
        _appointment(1, "2025-01-13 10:00", driver=11),
        _appointment(2, "2025-01-13 10:30", driver=11),
    ]


def _build(client, store=None, notifier=None, gateway=None):
    store = store or DraftAssignmentStore()
    notifier = notifier or RecordingNotifier()
    submitter = ScheduleSubmitter(
        client=client,
        store=store,
        conflict_detector=ConflictDetector(TimeWindowCalculator()),
        notifier=notifier,
        gateway=gateway,
    )
    return submitter, store, notifier


def _never_called(conflicts):
    raise AssertionError("confirm gate should not run without conflicts")


class TestScheduleSubmitter:
    """Tests for ScheduleSubmitter."""

    def test_clean_submit_without_drafts(self):
        """No conflicts and no drafts still submits and reloads."""
        client = StubPersistenceClient(SubmitResponse(success=True, processed_count=0))
        submitter, store, notifier = _build(client)
        reload = ReloadCounter()
        appointments = [_appointment(1, "2025-01-13 10:00", driver=11)]

        result = asyncio.run(submitter.submit(WEEK_START, appointments, _never_called, reload))

        assert result.succeeded
        assert result.processed_count == 0
        assert result.conflicts == []
        assert client.calls == [("submit", "2025-01-13")]
        assert reload.count == 1
        assert notifier.toasts == [("Schedule submitted! 0 assignments processed.", "success")]
        assert submitter.state is SubmitState.IDLE
        assert submitter.history == [
            SubmitState.VALIDATING,
            SubmitState.CONFIRMED,
            SubmitState.SUBMITTING,
            SubmitState.SUCCESS,
            SubmitState.IDLE,
        ]

    def test_cancelled_confirmation_makes_no_call(self):
        client = StubPersistenceClient()
        submitter, store, notifier = _build(client)
        store.set(1, 11)
        seen = []

        def decline(conflicts):
            seen.extend(conflicts)
            return False

        result = asyncio.run(
            submitter.submit(WEEK_START, _conflicting_pair(), decline, ReloadCounter())
        )

        assert result.outcome is SubmitOutcome.CANCELLED
        assert len(seen) == 1
        assert client.calls == []
        assert store.has_draft(1)
        assert submitter.history == [SubmitState.VALIDATING, SubmitState.CANCELLED, SubmitState.IDLE]

    def test_confirmed_conflicts_are_submitted(self):
        client = StubPersistenceClient(SubmitResponse(success=True, processed_count=2))
        submitter, store, notifier = _build(client)
        store.set(1, 11)
        store.set(2, 11)

        result = asyncio.run(
            submitter.submit(WEEK_START, _conflicting_pair(), lambda conflicts: True, ReloadCounter())
        )

        assert result.succeeded
        assert result.processed_count == 2
        assert len(result.conflicts) == 1
        assert len(store) == 0

    def test_async_confirm_gate(self):
        client = StubPersistenceClient()
        submitter, _, _ = _build(client)

        async def decline(conflicts):
            await asyncio.sleep(0)
            return False

        result = asyncio.run(
            submitter.submit(WEEK_START, _conflicting_pair(), decline, ReloadCounter())
        )

        assert result.outcome is SubmitOutcome.CANCELLED

    def test_drafts_resolve_conflicts_before_validation(self):
        client = StubPersistenceClient()
        submitter, store, _ = _build(client)
        store.set(2, 12)

        assert submitter.validate(_conflicting_pair()) == []

    def test_failure_keeps_drafts(self):
        client = StubPersistenceClient(error=OperationsApiError("Request to submit-weekly-schedule failed"))
        submitter, store, notifier = _build(client)
        store.set(1, 12)
        reload = ReloadCounter()

        result = asyncio.run(
            submitter.submit(WEEK_START, [_appointment(1, "2025-01-13 10:00")], _never_called, reload)
        )

        assert result.outcome is SubmitOutcome.FAILURE
        assert "submit-weekly-schedule" in result.error
        assert store.get(1).driver_id == 12
        assert reload.count == 0
        assert notifier.toasts[-1][1] == "danger"
        assert submitter.state is SubmitState.IDLE
        assert SubmitState.FAILURE in submitter.history

    def test_rejected_response_is_a_failure(self):
        client = StubPersistenceClient(SubmitResponse(success=False, message="Week is locked"))
        submitter, store, notifier = _build(client)

        result = asyncio.run(submitter.submit(WEEK_START, [], _never_called, ReloadCounter()))

        assert result.outcome is SubmitOutcome.FAILURE
        assert notifier.toasts == [("Error: Week is locked", "danger")]

    def test_pending_draft_is_flushed_before_submit(self):
        client = StubPersistenceClient()
        notifier = RecordingNotifier()
        gateway = DraftPersistenceGateway(
            client=client,
            notifier=notifier,
            identity=StaticIdentity("Pat"),
            week_start=lambda: WEEK_START,
            debounce_seconds=30,
        )
        submitter, _, _ = _build(client, notifier=notifier, gateway=gateway)

        async def scenario():
            gateway.schedule(1, 11)
            return await submitter.submit(WEEK_START, [], _never_called, ReloadCounter())

        result = asyncio.run(scenario())

        assert result.succeeded
        assert client.calls == [("save", 1, 11), ("submit", "2025-01-13")]

    def test_submit_while_busy(self):
        client = StubPersistenceClient()
        submitter, _, _ = _build(client)

        async def scenario():
            gate = asyncio.Event()

            async def slow_confirm(conflicts):
                await gate.wait()
                return True

            first = asyncio.ensure_future(
                submitter.submit(WEEK_START, _conflicting_pair(), slow_confirm, ReloadCounter())
            )
            await asyncio.sleep(0)
            second = await submitter.submit(WEEK_START, [], _never_called, ReloadCounter())
            gate.set()
            return await first, second

        first, second = asyncio.run(scenario())

        assert second.outcome is SubmitOutcome.BUSY
        assert first.succeeded
        assert client.calls == [("submit", "2025-01-13")]

    def test_unexpected_error_returns_to_idle(self):
        """A non-domain error propagates but never leaves the submitter stuck."""
        client = StubPersistenceClient(error=ValueError("invalid literal for int()"))
        submitter, store, _ = _build(client)
        store.set(1, 12)

        with pytest.raises(ValueError):
            asyncio.run(submitter.submit(WEEK_START, [], _never_called, ReloadCounter()))

        assert submitter.state is SubmitState.IDLE
        assert submitter.history[-2:] == [SubmitState.FAILURE, SubmitState.IDLE]
        assert store.get(1).driver_id == 12

        client.error = None
        retry = asyncio.run(submitter.submit(WEEK_START, [], _never_called, ReloadCounter()))

        assert retry.succeeded
