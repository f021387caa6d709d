"""Remote procedure names exposed by the transfer backend."""

from enum import StrEnum

from medequip_transfers.domain.errors import TransferPermissionError

MISSING_FUNCTION_CODE = "PGRST202"


class RpcFunction(StrEnum):
    """Whitelisted backend functions."""

    TRANSFER_REQUEST_LIST = "transfer_request_list"
    TRANSFER_REQUEST_LIST_ENHANCED = "transfer_request_list_enhanced"
    TRANSFER_REQUEST_COUNTS = "transfer_request_counts"
    GET_TRANSFERS_KANBAN = "get_transfers_kanban"
    TRANSFER_REQUEST_CREATE = "transfer_request_create"
    TRANSFER_REQUEST_UPDATE = "transfer_request_update"
    TRANSFER_REQUEST_UPDATE_STATUS = "transfer_request_update_status"
    TRANSFER_REQUEST_COMPLETE = "transfer_request_complete"
    TRANSFER_REQUEST_DELETE = "transfer_request_delete"


READ_FUNCTIONS = frozenset(
    {
        RpcFunction.TRANSFER_REQUEST_LIST,
        RpcFunction.TRANSFER_REQUEST_LIST_ENHANCED,
        RpcFunction.TRANSFER_REQUEST_COUNTS,
        RpcFunction.GET_TRANSFERS_KANBAN,
    }
)


def parse_rpc_function(name: str) -> RpcFunction:
    """Resolve a whitelisted function name; anything else is forbidden."""

    try:
        return RpcFunction(name)
    except ValueError as exc:
        raise TransferPermissionError(f"Function '{name}' is not allowed.") from exc


__all__ = [
    "MISSING_FUNCTION_CODE",
    "READ_FUNCTIONS",
    "RpcFunction",
    "parse_rpc_function",
]
