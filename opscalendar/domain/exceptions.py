"""
Domain-specific exception hierarchy for the operations calendar.
"""


class OperationsError(Exception):
    """Base class for all application-level errors."""


class OperationsApiError(OperationsError):
    """Raised when the operations gateway cannot be reached or answers badly."""


class DataLoadError(OperationsError):
    """Raised when the operations data for a week cannot be loaded."""


class DraftSaveError(OperationsError):
    """Raised when a draft assignment write is rejected."""


class SubmitError(OperationsError):
    """Raised when the weekly schedule batch commit is rejected."""
