"""Infrastructure layer public API."""

from medequip_transfers.infrastructure.cache import QueryCache
from medequip_transfers.infrastructure.notifications import (
    LoggingTransferNotifier,
    NoopTransferNotifier,
)
from medequip_transfers.infrastructure.preferences import InMemoryViewPreferenceStore
from medequip_transfers.infrastructure.rpc import InMemoryTransferBackend, PostgrestRpcClient

__all__ = [
    "InMemoryTransferBackend",
    "InMemoryViewPreferenceStore",
    "LoggingTransferNotifier",
    "NoopTransferNotifier",
    "PostgrestRpcClient",
    "QueryCache",
]
