"""Create/update payloads for transfer requests."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any

from medequip_transfers.domain.errors import TransferValidationError
from medequip_transfers.domain.transfer_types import (
    ExternalPurpose,
    TransferType,
    parse_transfer_type,
)

IMMUTABLE_FIELDS = frozenset({"id", "code", "type", "equipment_id", "status"})
EDITABLE_FIELDS = frozenset(
    {
        "reason",
        "source_department",
        "destination_department",
        "purpose",
        "receiving_organization",
        "receiving_address",
        "contact_person",
        "contact_phone",
        "expected_return_date",
        "approval_note",
    }
)


@dataclass(slots=True, frozen=True)
class TransferDraft:
    """Fields supplied when requesting a new transfer."""

    type: TransferType
    equipment_id: int
    reason: str
    source_department: str | None = None
    destination_department: str | None = None
    purpose: ExternalPurpose | None = None
    receiving_organization: str | None = None
    receiving_address: str | None = None
    contact_person: str | None = None
    contact_phone: str | None = None
    expected_return_date: date | None = None
    requester_id: int | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> TransferDraft:
        """Parse a wire payload; raises on missing or malformed fields."""

        try:
            transfer_type = parse_transfer_type(str(data["type"]))
            equipment_id = int(data["equipment_id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise TransferValidationError(
                "Transfer draft requires a valid 'type' and 'equipment_id'."
            ) from exc

        unknown = set(data) - EDITABLE_FIELDS - {"type", "equipment_id", "requester_id"}
        if unknown:
            raise TransferValidationError(
                f"Unknown transfer fields: {', '.join(sorted(unknown))}."
            )

        values = normalize_changes(
            {key: value for key, value in data.items() if key in EDITABLE_FIELDS}
        )
        values.pop("approval_note", None)
        requester_id = data.get("requester_id")
        if requester_id is not None:
            try:
                requester_id = int(requester_id)
            except (TypeError, ValueError) as exc:
                raise TransferValidationError("requester_id must be an integer.") from exc
        return cls(
            type=transfer_type,
            equipment_id=equipment_id,
            reason=values.pop("reason", None) or "",
            requester_id=requester_id,
            **values,
        )

    def validate(self) -> None:
        """Check the type-specific payload."""

        if not self.reason.strip():
            raise TransferValidationError("A reason is required.")
        if self.type is TransferType.INTERNAL:
            if not self.source_department or not self.destination_department:
                raise TransferValidationError(
                    "Internal transfers require source and destination departments."
                )
            if self.source_department == self.destination_department:
                raise TransferValidationError(
                    "Source and destination departments must differ."
                )
        elif self.type is TransferType.EXTERNAL:
            if not self.receiving_organization:
                raise TransferValidationError(
                    "External transfers require a receiving organization."
                )

    def to_args(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["type"] = self.type.value
        payload["purpose"] = None if self.purpose is None else self.purpose.value
        if self.expected_return_date is not None:
            payload["expected_return_date"] = self.expected_return_date.isoformat()
        return {key: value for key, value in payload.items() if value is not None}


def normalize_changes(changes: Mapping[str, Any]) -> dict[str, Any]:
    """Validate an update payload and coerce typed fields."""

    immutable = IMMUTABLE_FIELDS.intersection(changes)
    if immutable:
        raise TransferValidationError(
            f"Fields cannot be changed: {', '.join(sorted(immutable))}."
        )
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise TransferValidationError(f"Unknown transfer fields: {', '.join(sorted(unknown))}.")

    normalized = dict(changes)
    purpose = normalized.get("purpose")
    if purpose is not None and not isinstance(purpose, ExternalPurpose):
        try:
            normalized["purpose"] = ExternalPurpose(str(purpose))
        except ValueError as exc:
            raise TransferValidationError(f"Unknown external purpose '{purpose}'.") from exc
    return_date = normalized.get("expected_return_date")
    if return_date is not None and not isinstance(return_date, date):
        try:
            normalized["expected_return_date"] = date.fromisoformat(str(return_date))
        except ValueError as exc:
            raise TransferValidationError(
                "expected_return_date must be a YYYY-MM-DD date."
            ) from exc
    return normalized


__all__ = ["EDITABLE_FIELDS", "IMMUTABLE_FIELDS", "TransferDraft", "normalize_changes"]
