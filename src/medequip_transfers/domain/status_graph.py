"""Legal status sequences per transfer type."""

from __future__ import annotations

from enum import StrEnum

from medequip_transfers.domain.errors import InvalidTransitionError
from medequip_transfers.domain.transfer_types import (
    TransferAction,
    TransferStatus,
    TransferType,
)

_STATUS_FLOWS: dict[TransferType, tuple[TransferStatus, ...]] = {
    TransferType.INTERNAL: (
        TransferStatus.PENDING_APPROVAL,
        TransferStatus.APPROVED,
        TransferStatus.IN_TRANSFER,
        TransferStatus.COMPLETED,
    ),
    TransferType.EXTERNAL: (
        TransferStatus.PENDING_APPROVAL,
        TransferStatus.APPROVED,
        TransferStatus.IN_TRANSFER,
        TransferStatus.HANDED_OVER,
        TransferStatus.COMPLETED,
    ),
    TransferType.DISPOSAL: (
        TransferStatus.PENDING_APPROVAL,
        TransferStatus.APPROVED,
        TransferStatus.COMPLETED,
    ),
}


class StepState(StrEnum):
    """Progress indicator state for one step."""

    DONE = "done"
    CURRENT = "current"
    UPCOMING = "upcoming"


def allowed_statuses(transfer_type: TransferType) -> tuple[TransferStatus, ...]:
    """Return the ordered legal statuses for a transfer type."""

    return _STATUS_FLOWS[transfer_type]


def is_legal_status(transfer_type: TransferType, status: TransferStatus) -> bool:
    """Return whether a status belongs to the type's sequence."""

    return status in _STATUS_FLOWS[transfer_type]


def current_index(transfer_type: TransferType, status: TransferStatus) -> int:
    """Return the position of a status in the type's sequence."""

    flow = _STATUS_FLOWS[transfer_type]
    try:
        return flow.index(status)
    except ValueError as exc:
        raise InvalidTransitionError(
            f"Status '{status}' is not valid for {transfer_type} transfers."
        ) from exc


def next_status(transfer_type: TransferType, status: TransferStatus) -> TransferStatus | None:
    """Return the single legal next status, or None once completed."""

    flow = _STATUS_FLOWS[transfer_type]
    index = current_index(transfer_type, status)
    if index + 1 >= len(flow):
        return None
    return flow[index + 1]


def ensure_transition(
    transfer_type: TransferType,
    current: TransferStatus,
    target: TransferStatus,
) -> None:
    """Reject anything but a single forward step along the type's sequence."""

    expected = next_status(transfer_type, current)
    if expected is None:
        raise InvalidTransitionError(
            f"{transfer_type.capitalize()} transfer is already '{current}'; "
            "no further transitions are allowed."
        )
    if target != expected:
        raise InvalidTransitionError(
            f"Cannot move {transfer_type} transfer from '{current}' to '{target}'; "
            f"the only legal next status is '{expected}'."
        )


def action_for(
    transfer_type: TransferType,
    current: TransferStatus,
    target: TransferStatus,
) -> TransferAction:
    """Name the legal step from `current` to `target`."""

    ensure_transition(transfer_type, current, target)
    if target is TransferStatus.APPROVED:
        return TransferAction.APPROVE
    if target is TransferStatus.IN_TRANSFER:
        return TransferAction.START
    if target is TransferStatus.HANDED_OVER:
        return TransferAction.HANDOVER
    if current is TransferStatus.HANDED_OVER:
        return TransferAction.RETURN
    return TransferAction.COMPLETE


def progress(
    transfer_type: TransferType,
    status: TransferStatus,
) -> list[tuple[TransferStatus, StepState]]:
    """Return steps with their state for a progress indicator."""

    index = current_index(transfer_type, status)
    steps: list[tuple[TransferStatus, StepState]] = []
    for position, step in enumerate(_STATUS_FLOWS[transfer_type]):
        if position < index:
            steps.append((step, StepState.DONE))
        elif position == index:
            steps.append((step, StepState.CURRENT))
        else:
            steps.append((step, StepState.UPCOMING))
    return steps


__all__ = [
    "StepState",
    "action_for",
    "allowed_statuses",
    "current_index",
    "ensure_transition",
    "is_legal_status",
    "next_status",
    "progress",
]
