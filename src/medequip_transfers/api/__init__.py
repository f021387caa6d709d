"""HTTP API layer."""

from medequip_transfers.api.router import api_router

__all__ = ["api_router"]
