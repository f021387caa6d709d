"""Domain public API."""

from medequip_transfers.domain.actors import ActorContext, UserRole, parse_role
from medequip_transfers.domain.drafts import TransferDraft
from medequip_transfers.domain.entities import EquipmentSummary, TransferRequest
from medequip_transfers.domain.errors import (
    InvalidTransitionError,
    KanbanLoadError,
    RpcFunctionNotFoundError,
    TransferBackendError,
    TransferBackendUnavailableError,
    TransferError,
    TransferNotFoundError,
    TransferPermissionError,
    TransferValidationError,
)
from medequip_transfers.domain.filters import TransferFilter, sanitize_filter
from medequip_transfers.domain.permissions import (
    TransferCapabilities,
    can_delete,
    can_edit,
    can_transition,
    capabilities,
)
from medequip_transfers.domain.ports import (
    QueryCachePort,
    TransferNotifier,
    TransferRpcBackend,
    ViewPreferenceStore,
)
from medequip_transfers.domain.preferences import CardDensity, ViewMode, ViewPreferences
from medequip_transfers.domain.query_models import (
    KanbanColumnPage,
    KanbanSnapshot,
    MergedKanbanColumn,
    TransferPage,
    TransferStatusCounts,
)
from medequip_transfers.domain.rpc import RpcFunction
from medequip_transfers.domain.transfer_types import (
    ExternalPurpose,
    TransferAction,
    TransferStatus,
    TransferType,
)

__all__ = [
    "ActorContext",
    "CardDensity",
    "EquipmentSummary",
    "ExternalPurpose",
    "InvalidTransitionError",
    "KanbanColumnPage",
    "KanbanLoadError",
    "KanbanSnapshot",
    "MergedKanbanColumn",
    "QueryCachePort",
    "RpcFunction",
    "RpcFunctionNotFoundError",
    "TransferAction",
    "TransferBackendError",
    "TransferBackendUnavailableError",
    "TransferCapabilities",
    "TransferDraft",
    "TransferError",
    "TransferFilter",
    "TransferNotFoundError",
    "TransferNotifier",
    "TransferPage",
    "TransferPermissionError",
    "TransferRequest",
    "TransferRpcBackend",
    "TransferStatus",
    "TransferStatusCounts",
    "TransferType",
    "TransferValidationError",
    "UserRole",
    "ViewMode",
    "ViewPreferenceStore",
    "ViewPreferences",
    "can_delete",
    "can_edit",
    "can_transition",
    "capabilities",
    "parse_role",
    "sanitize_filter",
]
