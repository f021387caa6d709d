"""Health check routes."""

from fastapi import APIRouter, Depends

from medequip_transfers.api.dependencies import get_settings
from medequip_transfers.config import Settings

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz(settings: Settings = Depends(get_settings)) -> dict[str, str]:
    """Liveness probe."""

    return {"status": "ok", "backend": settings.backend.value}


__all__ = ["router"]
