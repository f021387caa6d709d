"""Write path: lifecycle transitions, create, update and delete."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Any

from medequip_transfers.application.query_keys import TRANSFERS_ROOT
from medequip_transfers.domain.actors import ActorContext
from medequip_transfers.domain.drafts import TransferDraft, normalize_changes
from medequip_transfers.domain.entities import TransferRequest
from medequip_transfers.domain.errors import (
    TransferBackendError,
    TransferError,
    TransferPermissionError,
)
from medequip_transfers.domain.permissions import can_delete, can_edit, can_transition
from medequip_transfers.domain.ports import QueryCachePort, TransferNotifier, TransferRpcBackend
from medequip_transfers.domain.rpc import RpcFunction
from medequip_transfers.domain.status_graph import action_for
from medequip_transfers.domain.transfer_types import (
    TransferAction,
    TransferStatus,
    TransferType,
)

logger = logging.getLogger(__name__)

_ACTION_MESSAGES: dict[TransferAction, str] = {
    TransferAction.APPROVE: "Transfer request approved.",
    TransferAction.START: "Transfer started.",
    TransferAction.HANDOVER: "Equipment handed over to the receiving organization.",
    TransferAction.RETURN: "Equipment returned; transfer completed.",
    TransferAction.COMPLETE: "Transfer completed.",
}
_TYPED_ACTION_MESSAGES: dict[tuple[TransferAction, TransferType], str] = {
    (TransferAction.START, TransferType.EXTERNAL): "Equipment dispatched to the external party.",
    (TransferAction.COMPLETE, TransferType.INTERNAL): (
        "Internal transfer completed; equipment now belongs to the destination department."
    ),
    (TransferAction.COMPLETE, TransferType.DISPOSAL): (
        "Disposal completed; equipment taken out of service."
    ),
}


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True, frozen=True)
class TransitionOutcome:
    """Result of one dispatched mutation."""

    message: str
    action: TransferAction | None = None
    record: TransferRequest | None = None


class TransitionDispatcher:
    """Validate locally, issue exactly one RPC, then invalidate and notify.

    Local rule violations raise before any backend call. Backend failures are
    reported to the notifier and re-raised without retry or cache changes.
    """

    def __init__(
        self,
        backend: TransferRpcBackend,
        cache: QueryCachePort,
        notifier: TransferNotifier,
        *,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._backend = backend
        self._cache = cache
        self._notifier = notifier
        self._clock = clock

    async def transition(
        self,
        actor: ActorContext,
        record: TransferRequest,
        target_status: TransferStatus,
    ) -> TransitionOutcome:
        """Move `record` one step forward to `target_status`."""

        action = action_for(record.type, record.status, target_status)
        if not can_transition(actor, record, target_status):
            raise TransferPermissionError(
                f"Role '{actor.role}' may not {action} transfer {record.code}."
            )

        function, args = self._transition_call(action, actor, record, target_status)
        message = _TYPED_ACTION_MESSAGES.get((action, record.type), _ACTION_MESSAGES[action])
        result = await self._dispatch(actor, function, args, message)
        logger.info(
            "Transfer %s: %s (%s -> %s) by user %s.",
            record.code,
            action,
            record.status,
            target_status,
            actor.user_id,
        )
        return TransitionOutcome(message=message, action=action, record=_record_from(result))

    async def delete(self, actor: ActorContext, record: TransferRequest) -> TransitionOutcome:
        """Delete a request that is still awaiting approval."""

        if not can_delete(actor, record):
            raise TransferPermissionError(f"Transfer {record.code} cannot be deleted.")
        message = f"Transfer request {record.code} deleted."
        await self._dispatch(
            actor, RpcFunction.TRANSFER_REQUEST_DELETE, {"p_id": record.id}, message
        )
        logger.info("Transfer %s deleted by user %s.", record.code, actor.user_id)
        return TransitionOutcome(message=message, record=record)

    async def create(
        self,
        actor: ActorContext,
        draft: TransferDraft | Mapping[str, Any],
    ) -> TransferRequest:
        """Request a new transfer; it starts in `pending_approval`."""

        if actor.is_view_only:
            raise TransferPermissionError("Role may not create transfer requests.")
        if not isinstance(draft, TransferDraft):
            draft = TransferDraft.from_mapping(draft)
        draft.validate()

        result = await self._dispatch(
            actor,
            RpcFunction.TRANSFER_REQUEST_CREATE,
            {"p_data": draft.to_args()},
            "Transfer request created.",
        )
        created = _record_from(result)
        if created is None:
            raise TransferBackendError("transfer_request_create returned no record.")
        logger.info("Transfer %s created by user %s.", created.code, actor.user_id)
        return created

    async def update(
        self,
        actor: ActorContext,
        record: TransferRequest,
        changes: Mapping[str, Any],
    ) -> TransferRequest:
        """Edit payload fields; type, equipment and status are fixed."""

        normalized = normalize_changes(changes)
        if not can_edit(actor, record):
            raise TransferPermissionError(f"Transfer {record.code} cannot be edited.")

        wire_changes = {
            key: value.isoformat() if isinstance(value, date) else value
            for key, value in normalized.items()
        }
        result = await self._dispatch(
            actor,
            RpcFunction.TRANSFER_REQUEST_UPDATE,
            {"p_id": record.id, "p_data": wire_changes},
            f"Transfer request {record.code} updated.",
        )
        return _record_from(result) or record

    async def _dispatch(
        self,
        actor: ActorContext,
        function: RpcFunction,
        args: dict[str, Any],
        success_message: str,
    ) -> Any:
        try:
            result = await self._backend.call(function, args, actor=actor)
        except TransferError as exc:
            await self._notifier.notify_failure(actor, str(exc))
            raise
        self._cache.invalidate(TRANSFERS_ROOT)
        await self._notifier.notify_success(actor, success_message)
        return result

    def _transition_call(
        self,
        action: TransferAction,
        actor: ActorContext,
        record: TransferRequest,
        target_status: TransferStatus,
    ) -> tuple[RpcFunction, dict[str, Any]]:
        if action is TransferAction.APPROVE:
            return RpcFunction.TRANSFER_REQUEST_UPDATE_STATUS, {
                "p_id": record.id,
                "p_status": target_status.value,
                "p_payload": {"approver_id": actor.user_id},
            }
        if action is TransferAction.START:
            return RpcFunction.TRANSFER_REQUEST_UPDATE_STATUS, {
                "p_id": record.id,
                "p_status": target_status.value,
                "p_payload": {"handed_over_at": self._clock().isoformat()},
            }
        if action is TransferAction.HANDOVER:
            return RpcFunction.TRANSFER_REQUEST_UPDATE_STATUS, {
                "p_id": record.id,
                "p_status": target_status.value,
                "p_payload": {},
            }
        if action is TransferAction.RETURN:
            return RpcFunction.TRANSFER_REQUEST_COMPLETE, {
                "p_id": record.id,
                "p_payload": {"returned_at": self._clock().isoformat()},
            }
        return RpcFunction.TRANSFER_REQUEST_COMPLETE, {"p_id": record.id, "p_payload": {}}


def _record_from(result: Any) -> TransferRequest | None:
    if isinstance(result, list) and result:
        result = result[0]
    if isinstance(result, Mapping) and "code" in result:
        return TransferRequest.from_row(result)
    return None


__all__ = ["TransitionDispatcher", "TransitionOutcome"]
