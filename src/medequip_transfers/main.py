"""FastAPI application entrypoint."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from medequip_transfers import __version__
from medequip_transfers.api import api_router
from medequip_transfers.api.dependencies import get_settings, get_transfer_services

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build FastAPI application."""

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        """Build singleton dependencies at startup."""

        services = get_transfer_services()
        logger.info("Transfer services ready (backend=%s).", type(services.backend).__name__)
        yield

    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()


def run() -> None:
    """Run local development server."""

    settings = get_settings()
    uvicorn.run(
        "medequip_transfers.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
    )


__all__ = ["app", "create_app", "run"]
