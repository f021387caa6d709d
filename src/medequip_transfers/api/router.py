"""Top-level API router composition."""

from fastapi import APIRouter

from medequip_transfers.api.routes import health_router, rpc_router, transfers_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(transfers_router)
api_router.include_router(rpc_router)

__all__ = ["api_router"]
