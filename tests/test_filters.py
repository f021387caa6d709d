from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from medequip_transfers.domain.errors import TransferValidationError
from medequip_transfers.domain.filters import (
    DEFAULT_PAGE_SIZE,
    TransferFilter,
    filter_from_rpc_args,
    sanitize_filter,
)
from medequip_transfers.domain.transfer_types import TransferStatus, TransferType


def test_sanitize_defaults_to_first_page() -> None:
    transfer_filter = sanitize_filter(None)

    assert transfer_filter == TransferFilter()
    assert transfer_filter.page == 1
    assert transfer_filter.page_size == DEFAULT_PAGE_SIZE


def test_sanitize_drops_unknown_values_and_sorts() -> None:
    transfer_filter = sanitize_filter(
        {
            "statuses": "approved,bogus,pending_approval,approved",
            "types": ["EXTERNAL", "internal", "teleport"],
        }
    )

    assert transfer_filter.statuses == (
        TransferStatus.APPROVED,
        TransferStatus.PENDING_APPROVAL,
    )
    assert transfer_filter.types == (TransferType.EXTERNAL, TransferType.INTERNAL)


def test_sanitize_accepts_camel_case_keys() -> None:
    transfer_filter = sanitize_filter(
        {
            "search": "  ventilator ",
            "facilityId": "10",
            "dateFrom": "2025-03-01",
            "dateTo": "2025-03-31",
            "assigneeIds": "7, x, 3,7",
            "pageSize": "20",
        }
    )

    assert transfer_filter.q == "ventilator"
    assert transfer_filter.facility_id == 10
    assert transfer_filter.date_from == date(2025, 3, 1)
    assert transfer_filter.date_to == date(2025, 3, 31)
    assert transfer_filter.assignee_ids == (3, 7)
    assert transfer_filter.page_size == 20


def test_empty_collections_and_blank_search_mean_no_constraint() -> None:
    transfer_filter = sanitize_filter({"q": "   ", "statuses": [], "types": "bogus"})

    assert transfer_filter.q is None
    assert transfer_filter.statuses is None
    assert transfer_filter.types is None


@pytest.mark.parametrize(
    "raw",
    [
        {"page": 0},
        {"page_size": 0},
        {"page_size": 501},
        {"page": "two"},
        {"facility_id": "north"},
        {"date_from": "03/01/2025"},
        {"date_from": "2025-04-01", "date_to": "2025-03-01"},
    ],
)
def test_sanitize_rejects_invalid_input(raw) -> None:
    with pytest.raises(TransferValidationError):
        sanitize_filter(raw)


def test_equivalent_filters_share_a_cache_key() -> None:
    left = sanitize_filter({"statuses": ["approved", "pending_approval"], "q": "vent"})
    right = sanitize_filter({"status": "pending_approval,approved,approved", "search": " vent"})

    assert left == right
    assert left.cache_key() == right.cache_key()
    assert left.cache_key() != sanitize_filter({"q": "vent"}).cache_key()


def test_for_status_narrows_to_one_column_page() -> None:
    transfer_filter = sanitize_filter({"statuses": "approved", "q": "vent"})

    narrowed = transfer_filter.for_status(TransferStatus.IN_TRANSFER, 2, 30)

    assert narrowed.statuses == (TransferStatus.IN_TRANSFER,)
    assert narrowed.page == 2
    assert narrowed.page_size == 30
    assert narrowed.q == "vent"
    with pytest.raises(TransferValidationError):
        transfer_filter.for_status(TransferStatus.APPROVED, 0, 30)


def test_rpc_args_round_trip() -> None:
    transfer_filter = sanitize_filter(
        {"statuses": "approved", "facility_id": 10, "date_to": "2025-03-05", "page": 3}
    )

    args = transfer_filter.rpc_args()

    assert args["p_statuses"] == ["approved"]
    assert args["p_date_to"] == "2025-03-05"
    assert args["p_page"] == 3
    assert filter_from_rpc_args(args) == transfer_filter
    assert "p_page" not in transfer_filter.rpc_args(paginate=False)


def test_matches_applies_every_dimension(make_transfer) -> None:
    record = make_transfer(
        status=TransferStatus.APPROVED,
        created_at=datetime(2025, 3, 5, 23, 30, tzinfo=UTC),
        requester_id=7,
    )

    assert sanitize_filter({"date_to": "2025-03-05"}).matches(record)
    assert not sanitize_filter({"date_from": "2025-03-06"}).matches(record)
    assert sanitize_filter({"q": "eq-vent"}).matches(record)
    assert sanitize_filter({"q": "VENTILATOR"}).matches(record)
    assert not sanitize_filter({"q": "ultrasound"}).matches(record)
    assert sanitize_filter({"assignee_ids": [7]}).matches(record)
    assert not sanitize_filter({"assignee_ids": [8]}).matches(record)
    assert not sanitize_filter({"statuses": "completed"}).matches(record)
    assert not sanitize_filter({"types": "disposal"}).matches(record)
    assert not sanitize_filter({"facility_id": 20}).matches(record)


def test_filter_instances_are_canonicalised_again() -> None:
    built = TransferFilter(
        statuses=(TransferStatus.PENDING_APPROVAL, TransferStatus.APPROVED),
        assignee_ids=(9, 4, 9),
        q="  vent ",
    )

    sanitized = sanitize_filter(built)

    assert sanitized.statuses == (TransferStatus.APPROVED, TransferStatus.PENDING_APPROVAL)
    assert sanitized.assignee_ids == (4, 9)
    assert sanitized.q == "vent"
    assert sanitized.cache_key() == sanitize_filter(
        {"statuses": "approved,pending_approval", "assigneeIds": "4,9", "q": "vent"}
    ).cache_key()
