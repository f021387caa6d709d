"""Canonical transfer filter and its sanitizer."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime
from typing import Any

from medequip_transfers.domain.entities import TransferRequest
from medequip_transfers.domain.errors import TransferValidationError
from medequip_transfers.domain.transfer_types import TransferStatus, TransferType

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500

_KEY_ALIASES: dict[str, tuple[str, ...]] = {
    "q": ("q", "search"),
    "statuses": ("statuses", "status"),
    "types": ("types", "type"),
    "facility_id": ("facility_id", "facilityId"),
    "date_from": ("date_from", "dateFrom"),
    "date_to": ("date_to", "dateTo"),
    "assignee_ids": ("assignee_ids", "assigneeIds"),
    "page": ("page",),
    "page_size": ("page_size", "pageSize"),
}


@dataclass(slots=True, frozen=True)
class TransferFilter:
    """Canonical read filter.

    Collections are sorted tuples or None; None means "no constraint".
    Two semantically equal filters compare equal and share a cache key.
    """

    q: str | None = None
    statuses: tuple[TransferStatus, ...] | None = None
    types: tuple[TransferType, ...] | None = None
    facility_id: int | None = None
    date_from: date | None = None
    date_to: date | None = None
    assignee_ids: tuple[int, ...] | None = None
    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible representation."""

        return {
            "q": self.q,
            "statuses": None if self.statuses is None else [s.value for s in self.statuses],
            "types": None if self.types is None else [t.value for t in self.types],
            "facility_id": self.facility_id,
            "date_from": None if self.date_from is None else self.date_from.isoformat(),
            "date_to": None if self.date_to is None else self.date_to.isoformat(),
            "assignee_ids": None if self.assignee_ids is None else list(self.assignee_ids),
            "page": self.page,
            "page_size": self.page_size,
        }

    def cache_key(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    def without_status(self) -> TransferFilter:
        return replace(self, statuses=None)

    def without_pagination(self) -> TransferFilter:
        return replace(self, page=DEFAULT_PAGE, page_size=DEFAULT_PAGE_SIZE)

    def for_status(self, status: TransferStatus, page: int, page_size: int) -> TransferFilter:
        """Narrow to a single status column page."""

        _validate_page(page, page_size)
        return replace(self, statuses=(status,), page=page, page_size=page_size)

    def rpc_args(self, *, paginate: bool = True) -> dict[str, Any]:
        """Return `p_`-prefixed arguments for the backend list functions."""

        values = self.to_dict()
        if not paginate:
            values.pop("page")
            values.pop("page_size")
        return {f"p_{name}": value for name, value in values.items()}

    def matches(self, record: TransferRequest) -> bool:
        """Apply every non-pagination constraint to one record."""

        if self.statuses is not None and record.status not in self.statuses:
            return False
        if self.types is not None and record.type not in self.types:
            return False
        if self.facility_id is not None and record.facility_id != self.facility_id:
            return False
        created_on = record.created_at.astimezone(UTC).date()
        if self.date_from is not None and created_on < self.date_from:
            return False
        if self.date_to is not None and created_on > self.date_to:
            return False
        if self.assignee_ids is not None and record.requester_id not in self.assignee_ids:
            return False
        if self.q is not None:
            needle = self.q.lower()
            haystack = (
                record.code,
                record.reason,
                None if record.equipment is None else record.equipment.name,
                None if record.equipment is None else record.equipment.code,
            )
            if not any(value and needle in value.lower() for value in haystack):
                return False
        return True


def filter_from_rpc_args(args: Mapping[str, Any]) -> TransferFilter:
    """Inverse of `TransferFilter.rpc_args()`."""

    return sanitize_filter(
        {name[2:]: value for name, value in args.items() if name.startswith("p_")}
    )


def sanitize_filter(raw: Mapping[str, Any] | TransferFilter | None = None) -> TransferFilter:
    """Canonicalise a raw filter mapping.

    Unknown status/type values are dropped silently, collections are
    deduplicated and sorted, empty collections and blank search become None.
    Out-of-range pagination and malformed or inverted dates raise
    `TransferValidationError`.
    """

    if isinstance(raw, TransferFilter):
        raw = raw.to_dict()
    values = _normalize_keys(raw or {})

    q = values.get("q")
    q = q.strip() if isinstance(q, str) else None
    statuses = _enum_tuple(values.get("statuses"), TransferStatus)
    types = _enum_tuple(values.get("types"), TransferType)
    assignee_ids = _int_tuple(values.get("assignee_ids"))
    facility_id = _optional_int(values.get("facility_id"), "facility_id")
    date_from = _parse_date(values.get("date_from"), "date_from")
    date_to = _parse_date(values.get("date_to"), "date_to")
    if date_from is not None and date_to is not None and date_from > date_to:
        raise TransferValidationError("date_from must not be after date_to.")

    page = _optional_int(values.get("page"), "page")
    page_size = _optional_int(values.get("page_size"), "page_size")
    page = DEFAULT_PAGE if page is None else page
    page_size = DEFAULT_PAGE_SIZE if page_size is None else page_size
    _validate_page(page, page_size)

    return TransferFilter(
        q=q or None,
        statuses=statuses,
        types=types,
        facility_id=facility_id,
        date_from=date_from,
        date_to=date_to,
        assignee_ids=assignee_ids,
        page=page,
        page_size=page_size,
    )


def _normalize_keys(raw: Mapping[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for canonical, aliases in _KEY_ALIASES.items():
        for alias in aliases:
            if alias in raw and raw[alias] is not None:
                values[canonical] = raw[alias]
                break
    return values


def _validate_page(page: int, page_size: int) -> None:
    if page < 1:
        raise TransferValidationError("page must be >= 1.")
    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        raise TransferValidationError(f"page_size must be between 1 and {MAX_PAGE_SIZE}.")


def _split(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[object] = value.split(",")
    elif isinstance(value, Iterable):
        items = value
    else:
        items = [value]
    return [str(item).strip() for item in items if str(item).strip()]


def _enum_tuple(value: object, enum_type: type[TransferStatus] | type[TransferType]) -> Any:
    known = {member.value for member in enum_type}
    accepted = sorted({item.lower() for item in _split(value) if item.lower() in known})
    if not accepted:
        return None
    return tuple(enum_type(item) for item in accepted)


def _int_tuple(value: object) -> tuple[int, ...] | None:
    accepted: set[int] = set()
    for item in _split(value):
        try:
            accepted.add(int(item))
        except (TypeError, ValueError):
            continue
    if not accepted:
        return None
    return tuple(sorted(accepted))


def _optional_int(value: object, name: str) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise TransferValidationError(f"{name} must be an integer.")
    try:
        return int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError) as exc:
        raise TransferValidationError(f"{name} must be an integer.") from exc


def _parse_date(value: object, name: str) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise TransferValidationError(f"{name} must be a YYYY-MM-DD date.") from exc


__all__ = [
    "DEFAULT_PAGE",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "TransferFilter",
    "filter_from_rpc_args",
    "sanitize_filter",
]
