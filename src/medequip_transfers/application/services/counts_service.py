"""Per-status totals for the table header and kanban column badges."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from medequip_transfers.application.query_keys import table_counts_key
from medequip_transfers.application.services.transfer_list_source import TransferListSource
from medequip_transfers.domain.actors import ActorContext
from medequip_transfers.domain.filters import TransferFilter, sanitize_filter
from medequip_transfers.domain.ports import QueryCachePort
from medequip_transfers.domain.query_models import TransferStatusCounts


class CountsService:
    """Count transfers per status under every filter dimension except status."""

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

    async def fetch_counts(
        self,
        actor: ActorContext,
        transfer_filter: TransferFilter | Mapping[str, Any] | None = None,
    ) -> TransferStatusCounts:
        canonical = sanitize_filter(transfer_filter).without_status().without_pagination()

        async def load() -> TransferStatusCounts:
            return await self._list_source.count_statuses(actor, canonical)

        return await self._cache.fetch(
            table_counts_key(actor, canonical),
            load,
            stale_seconds=self._stale_seconds,
        )


__all__ = ["CountsService"]
