"""Read-model results and HTTP response payloads."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from medequip_transfers.domain.entities import TransferRequest
from medequip_transfers.domain.transfer_types import TransferStatus


@dataclass(slots=True, frozen=True)
class TransferPage:
    """One table page plus the total matching the filter."""

    data: list[TransferRequest]
    total: int
    page: int
    page_size: int


@dataclass(slots=True, frozen=True)
class TransferStatusCounts:
    """Per-status totals; `total_count` is always the column sum."""

    column_counts: dict[TransferStatus, int]

    @property
    def total_count(self) -> int:
        return sum(self.column_counts.values())

    @classmethod
    def from_counts(cls, counts: dict[TransferStatus, int]) -> TransferStatusCounts:
        return cls(column_counts={status: counts.get(status, 0) for status in TransferStatus})


@dataclass(slots=True, frozen=True)
class KanbanColumnPage:
    """One incremental page of a single kanban column."""

    status: TransferStatus
    tasks: list[TransferRequest]
    total: int
    page: int
    page_size: int

    @property
    def has_more(self) -> bool:
        return self.page * self.page_size < self.total


@dataclass(slots=True, frozen=True)
class KanbanSnapshot:
    """First page of every column plus per-column totals."""

    columns: dict[TransferStatus, list[TransferRequest]]
    totals: dict[TransferStatus, int]
    per_column_limit: int

    @property
    def total_count(self) -> int:
        return sum(self.totals.values())


@dataclass(slots=True)
class MergedKanbanColumn:
    """Initial tasks followed by incremental pages, in arrival order."""

    status: TransferStatus
    tasks: list[TransferRequest] = field(default_factory=list)
    total: int = 0
    has_more: bool = False
    loading: bool = False
    error: str | None = None


class TransferApiModel(BaseModel):
    """Base model for transfer HTTP payloads."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class TransferListResponse(TransferApiModel):
    data: list[dict[str, Any]]
    total: int
    page: int
    page_size: int = Field(alias="pageSize")


class TransferCountsResponse(TransferApiModel):
    total_count: int = Field(alias="totalCount")
    column_counts: dict[str, int] = Field(alias="columnCounts")


class KanbanResponse(TransferApiModel):
    """Kanban payload grouped by status; `cursor` is the last item id."""

    transfers: dict[str, list[dict[str, Any]]]
    total_count: int = Field(alias="totalCount")
    cursor: int | None = None


__all__ = [
    "KanbanColumnPage",
    "KanbanResponse",
    "KanbanSnapshot",
    "MergedKanbanColumn",
    "TransferApiModel",
    "TransferCountsResponse",
    "TransferListResponse",
    "TransferPage",
    "TransferStatusCounts",
]
