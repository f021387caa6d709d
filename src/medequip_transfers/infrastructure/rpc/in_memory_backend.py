"""In-memory transfer backend for local runs and tests."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from medequip_transfers.domain.actors import ActorContext
from medequip_transfers.domain.drafts import TransferDraft, normalize_changes
from medequip_transfers.domain.entities import EquipmentSummary, TransferRequest
from medequip_transfers.domain.errors import (
    RpcFunctionNotFoundError,
    TransferNotFoundError,
    TransferPermissionError,
    TransferValidationError,
)
from medequip_transfers.domain.filters import TransferFilter, filter_from_rpc_args
from medequip_transfers.domain.permissions import can_delete, can_edit, can_transition
from medequip_transfers.domain.rpc import MISSING_FUNCTION_CODE, RpcFunction
from medequip_transfers.domain.status_graph import ensure_transition
from medequip_transfers.domain.transfer_types import (
    TransferStatus,
    TransferType,
    parse_transfer_status,
)

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class InMemoryTransferBackend:
    """Implements the transfer RPC functions over process memory.

    Permission, status-graph and tenant rules are re-checked here exactly as a
    database backend would, independently of what callers checked first.
    """

    def __init__(
        self,
        *,
        legacy_mode: bool = False,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._legacy_mode = legacy_mode
        self._clock = clock
        self._equipment: dict[int, EquipmentSummary] = {}
        self._transfers: dict[int, TransferRequest] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()

    @property
    def legacy_mode(self) -> bool:
        return self._legacy_mode

    def register_equipment(self, equipment: EquipmentSummary) -> None:
        """Add or replace an equipment registry entry."""

        self._equipment[equipment.id] = equipment

    def insert(self, record: TransferRequest) -> TransferRequest:
        """Store a record as-is, bypassing lifecycle rules (fixtures, imports)."""

        self._transfers[record.id] = record
        self._next_id = max(self._next_id, record.id + 1)
        return record

    def get(self, transfer_id: int) -> TransferRequest | None:
        return self._transfers.get(transfer_id)

    async def call(
        self,
        function: RpcFunction,
        args: Mapping[str, Any] | None = None,
        *,
        actor: ActorContext,
    ) -> Any:
        """Dispatch one whitelisted function."""

        payload = dict(args or {})
        if self._legacy_mode and function in (
            RpcFunction.TRANSFER_REQUEST_LIST,
            RpcFunction.TRANSFER_REQUEST_COUNTS,
        ):
            raise RpcFunctionNotFoundError(
                f"Could not find the function public.{function.value}",
                status_code=404,
                code=MISSING_FUNCTION_CODE,
            )

        handlers: dict[RpcFunction, Callable[[dict[str, Any], ActorContext], Any]] = {
            RpcFunction.TRANSFER_REQUEST_LIST: self._list,
            RpcFunction.TRANSFER_REQUEST_LIST_ENHANCED: self._list_enhanced,
            RpcFunction.TRANSFER_REQUEST_COUNTS: self._counts,
            RpcFunction.GET_TRANSFERS_KANBAN: self._kanban,
            RpcFunction.TRANSFER_REQUEST_CREATE: self._create,
            RpcFunction.TRANSFER_REQUEST_UPDATE: self._update,
            RpcFunction.TRANSFER_REQUEST_UPDATE_STATUS: self._update_status,
            RpcFunction.TRANSFER_REQUEST_COMPLETE: self._complete,
            RpcFunction.TRANSFER_REQUEST_DELETE: self._delete,
        }
        async with self._lock:
            return handlers[function](payload, actor)

    def _visible(self, actor: ActorContext) -> list[TransferRequest]:
        facilities = actor.visible_facility_ids()
        records = [
            record
            for record in self._transfers.values()
            if facilities is None or record.facility_id in facilities
        ]
        records.sort(key=lambda record: (record.created_at, record.id), reverse=True)
        return records

    def _matching(
        self, actor: ActorContext, transfer_filter: TransferFilter
    ) -> list[TransferRequest]:
        return [record for record in self._visible(actor) if transfer_filter.matches(record)]

    def _list(self, args: dict[str, Any], actor: ActorContext) -> dict[str, Any]:
        transfer_filter = filter_from_rpc_args(args)
        matching = self._matching(actor, transfer_filter)
        start = (transfer_filter.page - 1) * transfer_filter.page_size
        page = matching[start : start + transfer_filter.page_size]
        return {
            "data": [record.to_row() for record in page],
            "total": len(matching),
            "page": transfer_filter.page,
            "pageSize": transfer_filter.page_size,
        }

    def _list_enhanced(self, args: dict[str, Any], actor: ActorContext) -> list[dict[str, Any]]:
        page = _int_arg(args, "p_page", 1, minimum=1)
        page_size = _int_arg(args, "p_page_size", 5000, minimum=1)
        facility_id = _int_arg(args, "p_facility_id", None)
        records = self._visible(actor)
        if facility_id is not None:
            records = [record for record in records if record.facility_id == facility_id]
        start = (page - 1) * page_size
        return [record.to_row() for record in records[start : start + page_size]]

    def _counts(self, args: dict[str, Any], actor: ActorContext) -> list[dict[str, int]]:
        transfer_filter = filter_from_rpc_args(args).without_status()
        counts = {f"{status.value}_count": 0 for status in TransferStatus}
        for record in self._matching(actor, transfer_filter):
            counts[f"{record.status.value}_count"] += 1
        return [counts]

    def _kanban(self, args: dict[str, Any], actor: ActorContext) -> dict[str, Any]:
        transfer_filter = filter_from_rpc_args(args)
        requested = transfer_filter.statuses or tuple(TransferStatus)
        limit = _int_arg(args, "p_per_column_limit", 30, minimum=1)
        exclude_completed = bool(args.get("p_exclude_completed"))
        cursor = _int_arg(args, "p_cursor", None)
        matching = self._matching(actor, transfer_filter.without_status())
        columns: dict[str, Any] = {}
        for status in requested:
            if exclude_completed and status is TransferStatus.COMPLETED:
                continue
            in_column = [record for record in matching if record.status is status]
            page = in_column
            if cursor is not None:
                page = [record for record in page if record.id < cursor]
            columns[status.value] = {
                "tasks": [record.to_row() for record in page[:limit]],
                "total": len(in_column),
            }
        return {"columns": columns}

    def _create(self, args: dict[str, Any], actor: ActorContext) -> dict[str, Any]:
        if actor.is_view_only:
            raise TransferPermissionError("Role may not create transfer requests.")
        draft = TransferDraft.from_mapping(args.get("p_data") or {})
        draft.validate()

        equipment = self._equipment.get(draft.equipment_id)
        facilities = actor.visible_facility_ids()
        if equipment is None or (
            facilities is not None and equipment.facility_id not in facilities
        ):
            raise TransferNotFoundError(f"Equipment {draft.equipment_id} was not found.")

        source_department = draft.source_department or equipment.managing_department
        if (
            not actor.is_managerial
            and (not actor.is_department_scoped or source_department != actor.department)
        ):
            raise TransferPermissionError(
                "Only the managing department may request a transfer of this equipment."
            )

        now = self._clock()
        transfer_id = self._next_id
        self._next_id += 1
        record = TransferRequest(
            id=transfer_id,
            code=f"TR-{now.year}-{transfer_id:05d}",
            type=draft.type,
            status=TransferStatus.PENDING_APPROVAL,
            equipment_id=equipment.id,
            equipment=equipment,
            facility_id=equipment.facility_id,
            created_at=now,
            updated_at=now,
            requester_id=draft.requester_id or actor.user_id,
            created_by=actor.user_id,
            updated_by=actor.user_id,
            reason=draft.reason,
            source_department=source_department,
            destination_department=draft.destination_department,
            purpose=draft.purpose,
            receiving_organization=draft.receiving_organization,
            receiving_address=draft.receiving_address,
            contact_person=draft.contact_person,
            contact_phone=draft.contact_phone,
            expected_return_date=draft.expected_return_date,
        )
        self._transfers[transfer_id] = record
        logger.debug("Created transfer %s (%s).", record.code, record.type)
        return record.to_row()

    def _update(self, args: dict[str, Any], actor: ActorContext) -> dict[str, Any]:
        record = self._load(args, actor)
        if not can_edit(actor, record):
            raise TransferPermissionError(f"Transfer {record.code} cannot be edited.")
        changes = normalize_changes(args.get("p_data") or {})
        updated = replace(record, **changes, updated_at=self._clock(), updated_by=actor.user_id)
        if updated.type is TransferType.INTERNAL and (
            updated.source_department == updated.destination_department
        ):
            raise TransferValidationError("Source and destination departments must differ.")
        self._transfers[record.id] = updated
        return updated.to_row()

    def _update_status(self, args: dict[str, Any], actor: ActorContext) -> dict[str, Any]:
        record = self._load(args, actor)
        target = parse_transfer_status(str(args.get("p_status") or ""))
        if target is TransferStatus.COMPLETED:
            raise TransferValidationError(
                "Use transfer_request_complete to complete a transfer."
            )
        updated = self._advance(record, target, actor, args.get("p_payload") or {})
        return updated.to_row()

    def _complete(self, args: dict[str, Any], actor: ActorContext) -> dict[str, Any]:
        record = self._load(args, actor)
        updated = self._advance(
            record, TransferStatus.COMPLETED, actor, args.get("p_payload") or {}
        )
        return updated.to_row()

    def _delete(self, args: dict[str, Any], actor: ActorContext) -> dict[str, Any]:
        record = self._load(args, actor)
        if not can_delete(actor, record):
            raise TransferPermissionError(f"Transfer {record.code} cannot be deleted.")
        del self._transfers[record.id]
        return {"id": record.id, "deleted": True}

    def _load(self, args: dict[str, Any], actor: ActorContext) -> TransferRequest:
        try:
            transfer_id = int(args["p_id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise TransferValidationError("p_id must be an integer.") from exc
        record = self._transfers.get(transfer_id)
        facilities = actor.visible_facility_ids()
        if record is None or (facilities is not None and record.facility_id not in facilities):
            raise TransferNotFoundError(f"Transfer {transfer_id} was not found.")
        return record

    def _advance(
        self,
        record: TransferRequest,
        target: TransferStatus,
        actor: ActorContext,
        payload: Mapping[str, Any],
    ) -> TransferRequest:
        ensure_transition(record.type, record.status, target)
        if not can_transition(actor, record, target):
            raise TransferPermissionError(
                f"Role '{actor.role}' may not move {record.code} to '{target}'."
            )

        now = self._clock()
        changes: dict[str, Any] = {
            "status": target,
            "updated_at": now,
            "updated_by": actor.user_id,
        }
        if target is TransferStatus.APPROVED:
            changes["approved_at"] = record.approved_at or now
            changes["approver_id"] = (
                record.approver_id or payload.get("approver_id") or actor.user_id
            )
            if payload.get("approval_note"):
                changes["approval_note"] = payload["approval_note"]
        elif target is TransferStatus.IN_TRANSFER:
            changes["handed_over_at"] = record.handed_over_at or _payload_time(
                payload, "handed_over_at", now
            )
        elif target is TransferStatus.COMPLETED:
            changes["completed_at"] = record.completed_at or now
            if record.status is TransferStatus.HANDED_OVER:
                changes["returned_at"] = record.returned_at or _payload_time(
                    payload, "returned_at", now
                )

        updated = replace(record, **changes)
        self._transfers[record.id] = updated
        logger.debug("Transfer %s moved %s -> %s.", record.code, record.status, target)
        return updated


def _int_arg(
    args: Mapping[str, Any],
    name: str,
    default: int | None,
    *,
    minimum: int | None = None,
) -> int | None:
    value = args.get(name)
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise TransferValidationError(f"{name} must be an integer.")
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise TransferValidationError(f"{name} must be an integer.") from exc
    if minimum is not None and parsed < minimum:
        raise TransferValidationError(f"{name} must be >= {minimum}.")
    return parsed


def _payload_time(payload: Mapping[str, Any], name: str, default: datetime) -> datetime:
    value = payload.get(name)
    if value is None or value == "":
        return default
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value))
        except ValueError as exc:
            raise TransferValidationError(f"{name} must be an ISO timestamp.") from exc
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


__all__ = ["InMemoryTransferBackend"]
