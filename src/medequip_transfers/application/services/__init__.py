"""Application services public API."""

from medequip_transfers.application.services.counts_service import CountsService
from medequip_transfers.application.services.kanban_loader import (
    KanbanBoard,
    KanbanColumnLoader,
)
from medequip_transfers.application.services.table_query_service import TableQueryService
from medequip_transfers.application.services.transfer_list_source import (
    ListStrategy,
    TransferListSource,
)
from medequip_transfers.application.services.transition_dispatcher import (
    TransitionDispatcher,
    TransitionOutcome,
)

__all__ = [
    "CountsService",
    "KanbanBoard",
    "KanbanColumnLoader",
    "ListStrategy",
    "TableQueryService",
    "TransferListSource",
    "TransitionDispatcher",
    "TransitionOutcome",
]
