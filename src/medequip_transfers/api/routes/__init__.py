"""Route modules public API."""

from medequip_transfers.api.routes.health import router as health_router
from medequip_transfers.api.routes.rpc import router as rpc_router
from medequip_transfers.api.routes.transfers import router as transfers_router

__all__ = ["health_router", "rpc_router", "transfers_router"]
