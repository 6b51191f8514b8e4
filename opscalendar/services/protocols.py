"""
Protocols describing the collaborators the scheduling services depend on.

The HTTP adapter, the in-memory mock and test stubs all satisfy these
structurally; nothing needs to inherit from them.
"""

from __future__ import annotations

from typing import Optional, Protocol

from pendulum import DateTime

from ..domain.models import DraftSaveResult, OperationsData, SubmitResponse


class DataLoaderProtocol(Protocol):
    """Loads everything the calendar shows for a visible week range."""

    async def load_operations_data(self, week_start: DateTime) -> OperationsData:
        """Return appointments, drivers, clinics and drafts for the range."""


class PersistenceClientProtocol(Protocol):
    """Write side of the operations gateway."""

    async def save_draft(
        self,
        appointment_id: int,
        driver_id: Optional[int],
        week_start: DateTime,
    ) -> DraftSaveResult:
        """Persist one draft assignment."""

    async def submit_schedule(self, week_start: DateTime) -> SubmitResponse:
        """Commit every draft of the range as confirmed assignments."""


class OperationsClientProtocol(DataLoaderProtocol, PersistenceClientProtocol, Protocol):
    """A single backend that both loads and persists."""


class NotificationSinkProtocol(Protocol):
    """Fire-and-forget user notifications (toasts)."""

    def show_toast(self, message: str, severity: str = "info") -> None:
        """Display a message; severity is success, info, warning or danger."""


class IdentityProviderProtocol(Protocol):
    """The operator currently using the calendar."""

    def display_name(self) -> str:
        """Name shown in "last edited by"."""


class StaticIdentity:
    """Identity provider backed by a fixed, configured operator name."""

    def __init__(self, name: Optional[str] = None) -> None:
        self._name = name or "you"

    def display_name(self) -> str:
        return self._name
