"""Client-side filtering for backends without the filtered list functions."""

from collections.abc import Iterable

from medequip_transfers.domain.entities import TransferRequest
from medequip_transfers.domain.filters import TransferFilter
from medequip_transfers.domain.transfer_types import TransferStatus


def apply_legacy_filters(
    records: Iterable[TransferRequest],
    transfer_filter: TransferFilter,
) -> list[TransferRequest]:
    """Keep records matching every filter dimension, preserving batch order."""

    return [record for record in records if transfer_filter.matches(record)]


def paginate(records: list[TransferRequest], page: int, page_size: int) -> list[TransferRequest]:
    page = max(1, page)
    page_size = max(1, page_size)
    start = (page - 1) * page_size
    return records[start : start + page_size]


def build_counts(records: Iterable[TransferRequest]) -> dict[TransferStatus, int]:
    counts = {status: 0 for status in TransferStatus}
    for record in records:
        counts[record.status] += 1
    return counts


__all__ = ["apply_legacy_filters", "build_counts", "paginate"]
