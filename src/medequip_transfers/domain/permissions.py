"""Role-based permission predicates for transfer requests.

These are pure and advisory for UI/affordance decisions. The backend
re-enforces every rule.
"""

from __future__ import annotations

from dataclasses import dataclass

from medequip_transfers.domain.actors import ActorContext
from medequip_transfers.domain.entities import TransferRequest
from medequip_transfers.domain.errors import InvalidTransitionError
from medequip_transfers.domain.status_graph import action_for, next_status
from medequip_transfers.domain.transfer_types import (
    EDITABLE_STATUSES,
    TransferAction,
    TransferStatus,
)


@dataclass(slots=True, frozen=True)
class TransferCapabilities:
    """What an actor may do with one record."""

    can_edit: bool
    can_delete: bool
    next_status: TransferStatus | None
    available_actions: tuple[TransferAction, ...]


def _matches_department(actor: ActorContext, *departments: str | None) -> bool:
    if not actor.is_department_scoped or not actor.department:
        return False
    return any(department == actor.department for department in departments if department)


def can_edit(actor: ActorContext, record: TransferRequest) -> bool:
    if actor.is_view_only:
        return False
    if record.status not in EDITABLE_STATUSES:
        return False
    return actor.is_managerial or _matches_department(
        actor, record.source_department, record.destination_department
    )


def can_delete(actor: ActorContext, record: TransferRequest) -> bool:
    if actor.is_view_only:
        return False
    if record.status is not TransferStatus.PENDING_APPROVAL:
        return False
    return actor.is_managerial or _matches_department(actor, record.source_department)


def can_transition(
    actor: ActorContext,
    record: TransferRequest,
    target: TransferStatus,
) -> bool:
    """Return whether the actor may move the record to `target`."""

    if actor.is_view_only:
        return False
    try:
        action = action_for(record.type, record.status, target)
    except InvalidTransitionError:
        return False

    if actor.is_managerial:
        return True
    if action is TransferAction.APPROVE:
        return False
    if action in (TransferAction.START, TransferAction.RETURN):
        return _matches_department(actor, record.source_department)
    return _matches_department(
        actor, record.source_department, record.destination_department
    )


def capabilities(actor: ActorContext, record: TransferRequest) -> TransferCapabilities:
    """Summarise edit/delete/transition affordances for one record."""

    target = next_status(record.type, record.status)
    actions: tuple[TransferAction, ...] = ()
    if target is not None and can_transition(actor, record, target):
        actions = (action_for(record.type, record.status, target),)
    return TransferCapabilities(
        can_edit=can_edit(actor, record),
        can_delete=can_delete(actor, record),
        next_status=target,
        available_actions=actions,
    )


__all__ = [
    "TransferCapabilities",
    "can_delete",
    "can_edit",
    "can_transition",
    "capabilities",
]
