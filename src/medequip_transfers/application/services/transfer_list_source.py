"""List/count data source with legacy-backend fallback."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from enum import StrEnum
from typing import Any

from medequip_transfers.application.services.legacy_filtering import (
    apply_legacy_filters,
    build_counts,
    paginate,
)
from medequip_transfers.domain.actors import ActorContext
from medequip_transfers.domain.entities import TransferRequest
from medequip_transfers.domain.errors import RpcFunctionNotFoundError, TransferBackendError
from medequip_transfers.domain.filters import TransferFilter
from medequip_transfers.domain.ports import TransferRpcBackend
from medequip_transfers.domain.query_models import TransferPage, TransferStatusCounts
from medequip_transfers.domain.rpc import RpcFunction
from medequip_transfers.domain.transfer_types import TransferStatus

logger = logging.getLogger(__name__)


class ListStrategy(StrEnum):
    """How list and count reads are served."""

    PRIMARY = "primary"
    LEGACY = "legacy"


class TransferListSource:
    """Pick the filtered RPC functions when present, else filter a batch locally.

    A missing function is remembered for `capability_recheck_seconds` so the
    degraded path does not pay for a failed probe on every read.
    """

    def __init__(
        self,
        backend: TransferRpcBackend,
        *,
        legacy_batch_size: int = 5000,
        capability_recheck_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._backend = backend
        self._legacy_batch_size = max(legacy_batch_size, 1)
        self._capability_recheck_seconds = max(capability_recheck_seconds, 0.0)
        self._clock = clock
        self._missing_until: dict[RpcFunction, float] = {}

    def strategy(self, function: RpcFunction) -> ListStrategy:
        """Return the strategy the next read through `function` will use."""

        missing_until = self._missing_until.get(function)
        if missing_until is not None and self._clock() < missing_until:
            return ListStrategy.LEGACY
        return ListStrategy.PRIMARY

    async def list_page(self, actor: ActorContext, transfer_filter: TransferFilter) -> TransferPage:
        """Return one page of matching transfers."""

        function = RpcFunction.TRANSFER_REQUEST_LIST
        if self.strategy(function) is ListStrategy.PRIMARY:
            try:
                payload = await self._backend.call(
                    function, transfer_filter.rpc_args(), actor=actor
                )
            except RpcFunctionNotFoundError as exc:
                self._mark_missing(function, exc)
            else:
                return _page_from_payload(payload, transfer_filter)

        records = await self.legacy_batch(actor, transfer_filter.facility_id)
        matching = apply_legacy_filters(records, transfer_filter)
        return TransferPage(
            data=paginate(matching, transfer_filter.page, transfer_filter.page_size),
            total=len(matching),
            page=transfer_filter.page,
            page_size=transfer_filter.page_size,
        )

    async def count_statuses(
        self,
        actor: ActorContext,
        transfer_filter: TransferFilter,
    ) -> TransferStatusCounts:
        """Return per-status totals, ignoring any status constraint."""

        transfer_filter = transfer_filter.without_status()
        function = RpcFunction.TRANSFER_REQUEST_COUNTS
        if self.strategy(function) is ListStrategy.PRIMARY:
            try:
                payload = await self._backend.call(
                    function, transfer_filter.rpc_args(paginate=False), actor=actor
                )
            except RpcFunctionNotFoundError as exc:
                self._mark_missing(function, exc)
            else:
                return _counts_from_payload(payload)

        records = await self.legacy_batch(actor, transfer_filter.facility_id)
        return TransferStatusCounts.from_counts(
            build_counts(apply_legacy_filters(records, transfer_filter))
        )

    async def legacy_batch(
        self,
        actor: ActorContext,
        facility_id: int | None = None,
    ) -> list[TransferRequest]:
        """Fetch one large unfiltered, tenant-scoped batch."""

        payload = await self._backend.call(
            RpcFunction.TRANSFER_REQUEST_LIST_ENHANCED,
            {
                "p_facility_id": facility_id,
                "p_page": 1,
                "p_page_size": self._legacy_batch_size,
            },
            actor=actor,
        )
        rows = payload.get("data", []) if isinstance(payload, Mapping) else payload or []
        return [TransferRequest.from_row(row) for row in rows]

    def _mark_missing(self, function: RpcFunction, exc: RpcFunctionNotFoundError) -> None:
        if function not in self._missing_until:
            logger.warning(
                "Backend function '%s' is unavailable (%s); serving reads from "
                "client-side filtering of up to %s records.",
                function,
                exc,
                self._legacy_batch_size,
            )
        self._missing_until[function] = self._clock() + self._capability_recheck_seconds


def _page_from_payload(payload: Any, transfer_filter: TransferFilter) -> TransferPage:
    if not isinstance(payload, Mapping):
        raise TransferBackendError("transfer_request_list returned an unexpected payload.")
    rows = payload.get("data") or []
    return TransferPage(
        data=[TransferRequest.from_row(row) for row in rows],
        total=int(payload.get("total") or 0),
        page=int(payload.get("page") or transfer_filter.page),
        page_size=int(payload.get("pageSize") or transfer_filter.page_size),
    )


def _counts_from_payload(payload: Any) -> TransferStatusCounts:
    row = payload[0] if isinstance(payload, list) and payload else payload
    if not isinstance(row, Mapping):
        row = {}
    return TransferStatusCounts.from_counts(
        {status: int(row.get(f"{status.value}_count") or 0) for status in TransferStatus}
    )


__all__ = ["ListStrategy", "TransferListSource"]
