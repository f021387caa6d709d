"""Cache keys for transfer read models.

Every key starts with `TRANSFERS_ROOT` so one prefix invalidation refreshes
every transfer view, and carries the actor scope so tenants never share
entries.
"""

from medequip_transfers.domain.actors import ActorContext
from medequip_transfers.domain.filters import TransferFilter

TRANSFERS_ROOT: tuple[str, ...] = ("transfers",)


def table_list_key(actor: ActorContext, transfer_filter: TransferFilter) -> tuple[str, ...]:
    return (*TRANSFERS_ROOT, "table", "list", actor.scope_key, transfer_filter.cache_key())


def table_counts_key(actor: ActorContext, transfer_filter: TransferFilter) -> tuple[str, ...]:
    return (*TRANSFERS_ROOT, "table", "counts", actor.scope_key, transfer_filter.cache_key())


def kanban_prefix(actor: ActorContext, transfer_filter: TransferFilter) -> tuple[str, ...]:
    return (*TRANSFERS_ROOT, "kanban", actor.scope_key, transfer_filter.cache_key())


def kanban_initial_key(
    actor: ActorContext,
    transfer_filter: TransferFilter,
    *,
    per_column_limit: int,
    exclude_completed: bool,
    cursor: int | None = None,
) -> tuple[str, ...]:
    options = f"limit={per_column_limit}|exclude_completed={exclude_completed}|cursor={cursor}"
    return (*kanban_prefix(actor, transfer_filter), options)


__all__ = [
    "TRANSFERS_ROOT",
    "kanban_initial_key",
    "kanban_prefix",
    "table_counts_key",
    "table_list_key",
]
