"""
Adapters layer - External integrations (operations gateway, terminal, keyring).
"""

from .mock_operations_client import InMemoryOperationsClient
from .notifications import ConsoleNotificationSink
from .operations_client import OperationsApiClient
from .token_store import TokenStore

__all__ = [
    "ConsoleNotificationSink",
    "InMemoryOperationsClient",
    "OperationsApiClient",
    "TokenStore",
]
