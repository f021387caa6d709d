"""Remote procedure adapters."""

from medequip_transfers.infrastructure.rpc.in_memory_backend import InMemoryTransferBackend
from medequip_transfers.infrastructure.rpc.postgrest_client import PostgrestRpcClient

__all__ = ["InMemoryTransferBackend", "PostgrestRpcClient"]
