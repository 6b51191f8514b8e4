"""
Debounced write path for draft assignments.

A single timer is shared by all appointments: every ``schedule`` call
restarts it, and when the quiet period elapses only the most recent edit is
written. Earlier edits of a burst stay in the DraftAssignmentStore (so the
calendar is never wrong) and reach the backend with the next edit of the
same appointment, or are superseded by the next full reload.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Set, Tuple

import pendulum
from pendulum import DateTime

from ..domain.exceptions import OperationsError
from ..domain.models import LastEdit
from .protocols import (
    IdentityProviderProtocol,
    NotificationSinkProtocol,
    PersistenceClientProtocol,
)

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.5

PendingEdit = Tuple[int, Optional[int], DateTime]


class DraftPersistenceGateway:
    """
    Coalesces draft edits and flushes them to the persistence client.

    Writes are optimistic: a failed flush is logged and reported as a
    warning, but the local draft is kept and nothing is retried.
    """

    def __init__(
        self,
        client: PersistenceClientProtocol,
        notifier: NotificationSinkProtocol,
        identity: IdentityProviderProtocol,
        week_start: Callable[[], DateTime],
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        clock: Callable[[], DateTime] = pendulum.now,
    ) -> None:
        self._client = client
        self._notifier = notifier
        self._identity = identity
        self._week_start = week_start
        self._clock = clock
        self.debounce_seconds = debounce_seconds

        self._timer: Optional[asyncio.TimerHandle] = None
        self._pending: Optional[PendingEdit] = None
        self._in_flight: Set["asyncio.Task[bool]"] = set()
        self.last_edit: Optional[LastEdit] = None

    @property
    def has_pending(self) -> bool:
        """True while a debounced edit is waiting for its quiet period."""
        return self._pending is not None

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def schedule(self, appointment_id: int, driver_id: Optional[int]) -> None:
        """
        Restart the shared debounce timer with this edit as its payload.

        The week is captured now, so a later week change does not leak into
        the write. Must be called from inside a running event loop.
        """
        loop = asyncio.get_running_loop()
        self._cancel_timer()
        self._pending = (appointment_id, driver_id, self._week_start())
        self._timer = loop.call_later(self.debounce_seconds, self._fire)

    def cancel_pending(self) -> Optional[PendingEdit]:
        """Drop a not-yet-fired edit (week change, navigation away)."""
        self._cancel_timer()
        dropped, self._pending = self._pending, None
        if dropped is not None:
            logger.info(
                "Discarded unflushed draft: appointment %s -> driver %s", dropped[0], dropped[1]
            )
        return dropped

    async def flush_pending(self) -> Optional[bool]:
        """
        Fire the pending edit now instead of waiting for the quiet period.

        Returns the flush outcome, or None when nothing was pending.
        """
        self._cancel_timer()
        task = self._fire()
        if task is None:
            return None
        return await task

    async def drain(self) -> None:
        """Wait for every flush already dispatched to finish."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight))

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> Optional["asyncio.Task[bool]"]:
        self._timer = None
        payload, self._pending = self._pending, None
        if payload is None:
            return None

        task = asyncio.ensure_future(self._flush(*payload))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def _flush(
        self,
        appointment_id: int,
        driver_id: Optional[int],
        week_start: DateTime,
    ) -> bool:
        logger.info("Saving draft: appointment %s -> driver %s", appointment_id, driver_id)

        try:
            result = await self._client.save_draft(appointment_id, driver_id, week_start)
        except OperationsError as exc:
            logger.error("Error saving draft for appointment %s: %s", appointment_id, exc)
            self._notifier.show_toast("Failed to save draft assignment", "warning")
            return False

        if not result.success:
            logger.error(
                "Failed to save draft for appointment %s: %s",
                appointment_id,
                result.message or "rejected by server",
            )
            self._notifier.show_toast("Failed to save draft assignment", "warning")
            return False

        self.last_edit = LastEdit(
            edited_by=result.edited_by or self._identity.display_name(),
            edited_at=result.edited_at or self._clock(),
        )
        return True
