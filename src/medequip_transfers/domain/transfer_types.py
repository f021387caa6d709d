"""Transfer type, status and action enums."""

from enum import StrEnum

from medequip_transfers.domain.errors import TransferValidationError


class TransferType(StrEnum):
    """Fixed transfer categories."""

    INTERNAL = "internal"
    EXTERNAL = "external"
    DISPOSAL = "disposal"


class TransferStatus(StrEnum):
    """Lifecycle states; not every state is legal for every type."""

    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    IN_TRANSFER = "in_transfer"
    HANDED_OVER = "handed_over"
    COMPLETED = "completed"


class TransferAction(StrEnum):
    """Named single-step transitions."""

    APPROVE = "approve"
    START = "start"
    HANDOVER = "handover"
    RETURN = "return"
    COMPLETE = "complete"


class ExternalPurpose(StrEnum):
    """Why equipment leaves the hospital on an external transfer."""

    REPAIR = "repair"
    LOAN = "loan"
    OTHER = "other"


ALL_STATUSES: tuple[TransferStatus, ...] = tuple(TransferStatus)
ACTIVE_STATUSES: tuple[TransferStatus, ...] = tuple(
    status for status in TransferStatus if status is not TransferStatus.COMPLETED
)
EDITABLE_STATUSES = frozenset({TransferStatus.PENDING_APPROVAL, TransferStatus.APPROVED})


def parse_transfer_type(value: str) -> TransferType:
    """Parse a wire value into a transfer type."""

    try:
        return TransferType(value.strip().lower())
    except ValueError as exc:
        raise TransferValidationError(f"Unknown transfer type '{value}'.") from exc


def parse_transfer_status(value: str) -> TransferStatus:
    """Parse a wire value into a transfer status."""

    try:
        return TransferStatus(value.strip().lower())
    except ValueError as exc:
        raise TransferValidationError(f"Unknown transfer status '{value}'.") from exc


__all__ = [
    "ACTIVE_STATUSES",
    "ALL_STATUSES",
    "EDITABLE_STATUSES",
    "ExternalPurpose",
    "TransferAction",
    "TransferStatus",
    "TransferType",
    "parse_transfer_status",
    "parse_transfer_type",
]
