"""Whitelisted remote procedure proxy."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Path

from medequip_transfers.api.dependencies import get_transfer_services
from medequip_transfers.api.errors import raise_http_exception
from medequip_transfers.api.security import get_current_actor
from medequip_transfers.application.query_keys import TRANSFERS_ROOT
from medequip_transfers.bootstrap import TransferServices
from medequip_transfers.domain.actors import ActorContext
from medequip_transfers.domain.rpc import READ_FUNCTIONS, parse_rpc_function

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rpc", tags=["rpc"])


@router.post("/{fn}", status_code=200)
async def call_rpc(
    fn: str = Path(...),
    args: dict[str, Any] | None = Body(default=None),
    actor: ActorContext = Depends(get_current_actor),
    services: TransferServices = Depends(get_transfer_services),
) -> Any:
    """Forward one call; identity comes from the session, never the body."""

    try:
        function = parse_rpc_function(fn)
        result = await services.backend.call(function, args or {}, actor=actor)
    except Exception as exc:  # noqa: BLE001
        raise_http_exception(exc)

    if function not in READ_FUNCTIONS:
        services.cache.invalidate(TRANSFERS_ROOT)
        logger.info("RPC %s called by user %s.", function, actor.user_id)
    return result


__all__ = ["router"]
