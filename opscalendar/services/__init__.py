"""
Service layer that orchestrates adapters and domain logic.
"""

from .draft_store import DraftAssignmentStore
from .operations_page import CalendarView, OperationsPageController, PageState
from .persistence import DraftPersistenceGateway
from .protocols import (
    DataLoaderProtocol,
    IdentityProviderProtocol,
    NotificationSinkProtocol,
    OperationsClientProtocol,
    PersistenceClientProtocol,
    StaticIdentity,
)
from .submitter import ScheduleSubmitter, SubmitOutcome, SubmitResult, SubmitState

__all__ = [
    "CalendarView",
    "DataLoaderProtocol",
    "DraftAssignmentStore",
    "DraftPersistenceGateway",
    "IdentityProviderProtocol",
    "NotificationSinkProtocol",
    "OperationsClientProtocol",
    "OperationsPageController",
    "PageState",
    "PersistenceClientProtocol",
    "ScheduleSubmitter",
    "StaticIdentity",
    "SubmitOutcome",
    "SubmitResult",
    "SubmitState",
]
