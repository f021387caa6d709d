"""Dependency providers for FastAPI routes."""

from functools import lru_cache

from medequip_transfers.bootstrap import TransferServices, build_transfer_services
from medequip_transfers.config import Settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return singleton settings."""

    return Settings()


@lru_cache(maxsize=1)
def get_transfer_services() -> TransferServices:
    """Return singleton service graph."""

    return build_transfer_services(get_settings())


__all__ = ["get_settings", "get_transfer_services"]
