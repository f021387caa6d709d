"""Paginated, filtered transfer list for the table view."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from medequip_transfers.application.query_keys import table_list_key
from medequip_transfers.application.services.transfer_list_source import TransferListSource
from medequip_transfers.domain.actors import ActorContext
from medequip_transfers.domain.filters import TransferFilter, sanitize_filter
from medequip_transfers.domain.ports import QueryCachePort
from medequip_transfers.domain.query_models import TransferPage


class TableQueryService:
    """Serve table pages through the shared query cache."""

    def __init__(
        self,
        list_source: TransferListSource,
        cache: QueryCachePort,
        *,
        stale_seconds: float | None = None,
    ) -> None:
        self._list_source = list_source
        self._cache = cache
        self._stale_seconds = stale_seconds

    async def fetch_page(
        self,
        actor: ActorContext,
        transfer_filter: TransferFilter | Mapping[str, Any] | None = None,
    ) -> TransferPage:
        """Return the page described by `transfer_filter`.

        Identical concurrent requests share one backend call; only transient
        failures are retried, and only by the cache.
        """

        canonical = sanitize_filter(transfer_filter)

        async def load() -> TransferPage:
            return await self._list_source.list_page(actor, canonical)

        return await self._cache.fetch(
            table_list_key(actor, canonical),
            load,
            stale_seconds=self._stale_seconds,
        )


__all__ = ["TableQueryService"]
