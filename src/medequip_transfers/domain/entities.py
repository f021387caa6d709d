"""Domain entities."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any

from medequip_transfers.domain.errors import TransferValidationError
from medequip_transfers.domain.transfer_types import (
    ExternalPurpose,
    TransferStatus,
    TransferType,
    parse_transfer_status,
    parse_transfer_type,
)

_LIFECYCLE_TIMESTAMPS = (
    "created_at",
    "approved_at",
    "handed_over_at",
    "returned_at",
    "completed_at",
)


@dataclass(slots=True, frozen=True)
class EquipmentSummary:
    """Equipment fields joined onto transfer rows."""

    id: int
    name: str | None = None
    code: str | None = None
    model: str | None = None
    serial: str | None = None
    managing_department: str | None = None
    facility_id: int | None = None
    facility_name: str | None = None


@dataclass(slots=True)
class TransferRequest:
    """One equipment transfer and its lifecycle state."""

    id: int
    code: str
    type: TransferType
    status: TransferStatus
    equipment_id: int
    created_at: datetime
    equipment: EquipmentSummary | None = None
    facility_id: int | None = None
    requester_id: int | None = None
    approver_id: int | None = None
    created_by: int | None = None
    updated_by: int | None = None
    reason: str = ""
    source_department: str | None = None
    destination_department: str | None = None
    purpose: ExternalPurpose | None = None
    receiving_organization: str | None = None
    receiving_address: str | None = None
    contact_person: str | None = None
    contact_phone: str | None = None
    expected_return_date: date | None = None
    approval_note: str | None = None
    approved_at: datetime | None = None
    handed_over_at: datetime | None = None
    returned_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> TransferRequest:
        """Build an entity from a backend row."""

        try:
            transfer_id = int(row["id"])
            code = str(row["code"])
            transfer_type = parse_transfer_type(str(row["type"]))
            status = parse_transfer_status(str(row["status"]))
            equipment_id = int(row["equipment_id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise TransferValidationError(f"Malformed transfer row: {exc}") from exc

        created_at = _parse_datetime(row.get("created_at"))
        if created_at is None:
            raise TransferValidationError(f"Transfer {transfer_id} has no created_at.")

        equipment_row = row.get("equipment")
        equipment = None
        if isinstance(equipment_row, Mapping):
            equipment = EquipmentSummary(
                id=int(equipment_row.get("id") or equipment_id),
                name=equipment_row.get("name"),
                code=equipment_row.get("code"),
                model=equipment_row.get("model"),
                serial=equipment_row.get("serial"),
                managing_department=equipment_row.get("managing_department"),
                facility_id=_optional_int(equipment_row.get("facility_id")),
                facility_name=equipment_row.get("facility_name"),
            )

        facility_id = _optional_int(row.get("facility_id"))
        if facility_id is None and equipment is not None:
            facility_id = equipment.facility_id

        purpose_value = row.get("purpose")
        return cls(
            id=transfer_id,
            code=code,
            type=transfer_type,
            status=status,
            equipment_id=equipment_id,
            created_at=created_at,
            equipment=equipment,
            facility_id=facility_id,
            requester_id=_optional_int(row.get("requester_id")),
            approver_id=_optional_int(row.get("approver_id")),
            created_by=_optional_int(row.get("created_by")),
            updated_by=_optional_int(row.get("updated_by")),
            reason=row.get("reason") or "",
            source_department=row.get("source_department"),
            destination_department=row.get("destination_department"),
            purpose=None if not purpose_value else ExternalPurpose(purpose_value),
            receiving_organization=row.get("receiving_organization"),
            receiving_address=row.get("receiving_address"),
            contact_person=row.get("contact_person"),
            contact_phone=row.get("contact_phone"),
            expected_return_date=_parse_date(row.get("expected_return_date")),
            approval_note=row.get("approval_note"),
            approved_at=_parse_datetime(row.get("approved_at")),
            handed_over_at=_parse_datetime(row.get("handed_over_at")),
            returned_at=_parse_datetime(row.get("returned_at")),
            completed_at=_parse_datetime(row.get("completed_at")),
            updated_at=_parse_datetime(row.get("updated_at")),
        )

    def to_row(self) -> dict[str, Any]:
        """Serialize to the backend/wire row shape."""

        row: dict[str, Any] = {
            "id": self.id,
            "code": self.code,
            "type": self.type.value,
            "status": self.status.value,
            "equipment_id": self.equipment_id,
            "facility_id": self.facility_id,
            "requester_id": self.requester_id,
            "approver_id": self.approver_id,
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "reason": self.reason,
            "source_department": self.source_department,
            "destination_department": self.destination_department,
            "purpose": None if self.purpose is None else self.purpose.value,
            "receiving_organization": self.receiving_organization,
            "receiving_address": self.receiving_address,
            "contact_person": self.contact_person,
            "contact_phone": self.contact_phone,
            "expected_return_date": (
                None if self.expected_return_date is None
                else self.expected_return_date.isoformat()
            ),
            "approval_note": self.approval_note,
            "updated_at": _format_datetime(self.updated_at),
            "equipment": None,
        }
        for name in _LIFECYCLE_TIMESTAMPS:
            row[name] = _format_datetime(getattr(self, name))
        if self.equipment is not None:
            row["equipment"] = {
                "id": self.equipment.id,
                "name": self.equipment.name,
                "code": self.equipment.code,
                "model": self.equipment.model,
                "serial": self.equipment.serial,
                "managing_department": self.equipment.managing_department,
                "facility_id": self.equipment.facility_id,
                "facility_name": self.equipment.facility_name,
            }
        return row

    @property
    def equipment_name(self) -> str | None:
        return None if self.equipment is None else self.equipment.name


def _optional_int(value: object) -> int | None:
    if value is None or value == "":
        return None
    return int(value)  # type: ignore[arg-type]


def _parse_datetime(value: object) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value))
        except ValueError as exc:
            raise TransferValidationError(f"Invalid timestamp '{value}'.") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _parse_date(value: object) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as exc:
        raise TransferValidationError(f"Invalid date '{value}'.") from exc


def _format_datetime(value: datetime | None) -> str | None:
    return None if value is None else value.isoformat()


__all__ = ["EquipmentSummary", "TransferRequest"]
