"""
In-memory overlay of draft driver assignments.

The store is the client-side source of truth until the schedule is
submitted: its values override ``Appointment.confirmed_driver_id`` for
display, statistics and conflict detection.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional

from pendulum import DateTime

from ..domain.models import Appointment, DraftAssignment

logger = logging.getLogger(__name__)

DraftListener = Callable[[DraftAssignment], None]


class DraftAssignmentStore:
    """
    Maps appointment id -> DraftAssignment.

    ``get`` returns None when no draft exists; a draft whose ``driver_id``
    is None is an explicit unassignment and hides the confirmed driver.
    """

    def __init__(self) -> None:
        self._drafts: Dict[int, DraftAssignment] = {}
        self._listeners: List[DraftListener] = []

    def __len__(self) -> int:
        return len(self._drafts)

    def __contains__(self, appointment_id: object) -> bool:
        return appointment_id in self._drafts

    def subscribe(self, listener: DraftListener) -> None:
        """Register a callback run synchronously after every ``set``."""
        self._listeners.append(listener)

    def get(self, appointment_id: int) -> Optional[DraftAssignment]:
        return self._drafts.get(appointment_id)

    def has_draft(self, appointment_id: int) -> bool:
        return appointment_id in self._drafts

    def driver_for(self, appointment_id: int) -> Optional[int]:
        """Draft driver id; None both for unassignment and for no draft."""
        draft = self._drafts.get(appointment_id)
        return draft.driver_id if draft is not None else None

    def drafts(self) -> List[DraftAssignment]:
        return list(self._drafts.values())

    def set(
        self,
        appointment_id: int,
        driver_id: Optional[int],
        edited_by: Optional[str] = None,
        edited_at: Optional[DateTime] = None,
    ) -> DraftAssignment:
        """Record a user edit and notify listeners."""
        draft = DraftAssignment(
            appointment_id=appointment_id,
            driver_id=driver_id,
            edited_by=edited_by,
            edited_at=edited_at,
        )
        self._drafts[appointment_id] = draft
        logger.debug("Draft set: appointment %s -> driver %s", appointment_id, driver_id)

        for listener in self._listeners:
            listener(draft)

        return draft

    def effective_driver(self, appointment: Appointment) -> Optional[int]:
        """Draft driver when a draft exists, otherwise the confirmed driver."""
        draft = self._drafts.get(appointment.id)
        if draft is not None:
            return draft.driver_id
        return appointment.confirmed_driver_id

    def load(self, drafts: Iterable[DraftAssignment]) -> None:
        """Replace the contents with server-side drafts without notifying."""
        self._drafts = {draft.appointment_id: draft for draft in drafts}

    def clear_all(self) -> None:
        self._drafts.clear()
