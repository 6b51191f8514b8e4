"""
Validate-then-commit workflow for the weekly schedule.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from pendulum import DateTime

from ..domain.conflicts import ConflictDetector, active_appointments
from ..domain.exceptions import OperationsError, SubmitError
from ..domain.models import Appointment, Conflict
from .draft_store import DraftAssignmentStore
from .persistence import DraftPersistenceGateway
from .protocols import NotificationSinkProtocol, PersistenceClientProtocol

logger = logging.getLogger(__name__)

ConfirmGate = Callable[[List[Conflict]], Union[bool, Awaitable[bool]]]
ReloadCallback = Callable[[], Awaitable[object]]


class SubmitState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    FAILURE = "failure"


class SubmitOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"
    BUSY = "busy"


@dataclass
class SubmitResult:
    outcome: SubmitOutcome
    processed_count: int = 0
    conflicts: List[Conflict] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is SubmitOutcome.SUCCESS


class ScheduleSubmitter:
    """
    Runs the submit state machine:

        IDLE -> VALIDATING -> CONFIRMED -> SUBMITTING -> SUCCESS -> IDLE
                           -> CANCELLED -> IDLE        -> FAILURE -> IDLE

    Conflicts found while validating are a warning the operator may
    override through the confirm gate; with no conflicts the gate is
    skipped. On success drafts are cleared and the page data reloaded; on
    failure drafts are left untouched for another attempt.
    """

    def __init__(
        self,
        client: PersistenceClientProtocol,
        store: DraftAssignmentStore,
        conflict_detector: ConflictDetector,
        notifier: NotificationSinkProtocol,
        gateway: Optional[DraftPersistenceGateway] = None,
    ) -> None:
        self._client = client
        self._store = store
        self._conflict_detector = conflict_detector
        self._notifier = notifier
        self._gateway = gateway
        self.state = SubmitState.IDLE
        self.history: List[SubmitState] = []

    def _transition(self, state: SubmitState) -> None:
        logger.debug("Submit state %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def validate(self, appointments: Sequence[Appointment]) -> List[Conflict]:
        return self._conflict_detector.detect(
            active_appointments(appointments),
            self._store.effective_driver,
        )

    async def submit(
        self,
        week_start: DateTime,
        appointments: Sequence[Appointment],
        confirm: ConfirmGate,
        reload: ReloadCallback,
    ) -> SubmitResult:
        if self.state is not SubmitState.IDLE:
            logger.warning("Submit ignored: a submit is already %s", self.state.value)
            return SubmitResult(outcome=SubmitOutcome.BUSY)

        self.history = []
        self._transition(SubmitState.VALIDATING)
        conflicts = self.validate(appointments)

        if conflicts:
            logger.info("Submit validation found %d driver conflict(s)", len(conflicts))
            accepted = confirm(conflicts)
            if inspect.isawaitable(accepted):
                accepted = await accepted
            if not accepted:
                self._transition(SubmitState.CANCELLED)
                self._transition(SubmitState.IDLE)
                return SubmitResult(outcome=SubmitOutcome.CANCELLED, conflicts=conflicts)

        self._transition(SubmitState.CONFIRMED)
        self._transition(SubmitState.SUBMITTING)

        try:
            if self._gateway is not None:
                await self._gateway.flush_pending()
            response = await self._client.submit_schedule(week_start)
            if not response.success:
                raise SubmitError(response.message or "Failed to submit schedule")
            self._transition(SubmitState.SUCCESS)
        except OperationsError as exc:
            logger.error("Error submitting schedule: %s", exc)
            self._transition(SubmitState.FAILURE)
            self._notifier.show_toast(f"Error: {exc}", "danger")
            self._transition(SubmitState.IDLE)
            return SubmitResult(
                outcome=SubmitOutcome.FAILURE,
                conflicts=conflicts,
                error=str(exc),
            )
        finally:
            if self.state is SubmitState.SUBMITTING:
                logger.error("Submit aborted by an unexpected error; returning to idle")
                self._transition(SubmitState.FAILURE)
                self._transition(SubmitState.IDLE)

        self._notifier.show_toast(
            f"Schedule submitted! {response.processed_count} assignments processed.",
            "success",
        )
        self._store.clear_all()

        try:
            await reload()
        finally:
            self._transition(SubmitState.IDLE)

        return SubmitResult(
            outcome=SubmitOutcome.SUCCESS,
            processed_count=response.processed_count,
            conflicts=conflicts,
        )
