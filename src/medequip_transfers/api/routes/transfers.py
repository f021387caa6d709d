"""Transfer read-model routes: table list, status counts and kanban."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from medequip_transfers.api.dependencies import get_transfer_services
from medequip_transfers.api.errors import raise_http_exception
from medequip_transfers.api.security import get_current_actor
from medequip_transfers.bootstrap import TransferServices
from medequip_transfers.domain.actors import ActorContext
from medequip_transfers.domain.entities import TransferRequest
from medequip_transfers.domain.filters import MAX_PAGE_SIZE, TransferFilter, sanitize_filter
from medequip_transfers.domain.permissions import capabilities
from medequip_transfers.domain.query_models import (
    KanbanResponse,
    TransferCountsResponse,
    TransferListResponse,
)

router = APIRouter(prefix="/api/transfers", tags=["transfers"])

DEFAULT_KANBAN_LIMIT = 100


def _filter_params(
    q: str | None = Query(default=None),
    statuses: str | None = Query(default=None),
    types: str | None = Query(default=None),
    page: str | None = Query(default=None),
    page_size: str | None = Query(default=None, alias="pageSize"),
    facility_id: str | None = Query(default=None, alias="facilityId"),
    date_from: str | None = Query(default=None, alias="dateFrom"),
    date_to: str | None = Query(default=None, alias="dateTo"),
    assignee_ids: str | None = Query(default=None, alias="assigneeIds"),
) -> TransferFilter:
    try:
        return sanitize_filter(
            {
                "q": q,
                "statuses": statuses,
                "types": types,
                "page": page,
                "page_size": page_size,
                "facility_id": facility_id,
                "date_from": date_from,
                "date_to": date_to,
                "assignee_ids": assignee_ids,
            }
        )
    except Exception as exc:  # noqa: BLE001
        raise_http_exception(exc)


def serialize_transfer(record: TransferRequest, actor: ActorContext) -> dict[str, Any]:
    """Wire row plus the actor's affordances for it."""

    row = record.to_row()
    allowed = capabilities(actor, record)
    row["capabilities"] = {
        "canEdit": allowed.can_edit,
        "canDelete": allowed.can_delete,
        "nextStatus": None if allowed.next_status is None else allowed.next_status.value,
        "availableActions": [action.value for action in allowed.available_actions],
    }
    return row


def _parse_positive_int(name: str, value: str | None) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"{name} must be an integer") from exc


@router.get("/list", response_model=TransferListResponse, status_code=200)
async def list_transfers(
    transfer_filter: TransferFilter = Depends(_filter_params),
    actor: ActorContext = Depends(get_current_actor),
    services: TransferServices = Depends(get_transfer_services),
) -> TransferListResponse:
    """Return one filtered table page."""

    try:
        page = await services.table_query_service.fetch_page(actor, transfer_filter)
    except Exception as exc:  # noqa: BLE001
        raise_http_exception(exc)
    return TransferListResponse(
        data=[serialize_transfer(record, actor) for record in page.data],
        total=page.total,
        page=page.page,
        page_size=page.page_size,
    )


@router.get("/counts", response_model=TransferCountsResponse, status_code=200)
async def count_transfers(
    transfer_filter: TransferFilter = Depends(_filter_params),
    actor: ActorContext = Depends(get_current_actor),
    services: TransferServices = Depends(get_transfer_services),
) -> TransferCountsResponse:
    """Return per-status totals under every filter except status."""

    try:
        counts = await services.counts_service.fetch_counts(actor, transfer_filter)
    except Exception as exc:  # noqa: BLE001
        raise_http_exception(exc)
    return TransferCountsResponse(
        total_count=counts.total_count,
        column_counts={status.value: count for status, count in counts.column_counts.items()},
    )


@router.get("/kanban", response_model=KanbanResponse, status_code=200)
async def kanban_transfers(
    transfer_filter: TransferFilter = Depends(_filter_params),
    limit: str | None = Query(default=None),
    cursor: str | None = Query(default=None),
    exclude_completed: bool = Query(default=False, alias="excludeCompleted"),
    actor: ActorContext = Depends(get_current_actor),
    services: TransferServices = Depends(get_transfer_services),
) -> KanbanResponse:
    """Return the first page of every status column."""

    per_column_limit = _parse_positive_int("limit", limit)
    if per_column_limit is None:
        per_column_limit = DEFAULT_KANBAN_LIMIT
    if not 1 <= per_column_limit <= MAX_PAGE_SIZE:
        raise HTTPException(
            status_code=400,
            detail=f"limit must be between 1 and {MAX_PAGE_SIZE}",
        )
    cursor_id = _parse_positive_int("cursor", cursor)

    try:
        snapshot = await services.kanban_loader.load_initial(
            actor,
            transfer_filter,
            per_column_limit=per_column_limit,
            exclude_completed=exclude_completed,
            cursor=cursor_id,
        )
    except Exception as exc:  # noqa: BLE001
        raise_http_exception(exc)

    transfers = {
        status.value: [serialize_transfer(record, actor) for record in tasks]
        for status, tasks in snapshot.columns.items()
    }
    ids = [record.id for tasks in snapshot.columns.values() for record in tasks]
    return KanbanResponse(
        transfers=transfers,
        total_count=snapshot.total_count,
        cursor=min(ids) if ids else None,
    )


__all__ = ["router", "serialize_transfer"]
