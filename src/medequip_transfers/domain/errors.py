"""Domain exceptions for transfer lifecycle operations."""


class TransferError(Exception):
    """Base class for transfer errors."""


class TransferNotFoundError(TransferError):
    """Raised when a transfer request cannot be found."""


class TransferValidationError(TransferError):
    """Raised when input validation fails."""


class InvalidTransitionError(TransferValidationError):
    """Raised when a status change is not the legal next step for the type."""


class TransferPermissionError(TransferError):
    """Raised when the actor may not perform an operation."""


class TransferBackendError(TransferError):
    """Raised when a remote procedure call fails."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class RpcFunctionNotFoundError(TransferBackendError):
    """Raised when the backend does not expose the requested function."""


class TransferBackendUnavailableError(TransferBackendError):
    """Raised on transient transport failures."""


class KanbanLoadError(TransferError):
    """Raised when the initial kanban load fails for the whole board."""


__all__ = [
    "InvalidTransitionError",
    "KanbanLoadError",
    "RpcFunctionNotFoundError",
    "TransferBackendError",
    "TransferBackendUnavailableError",
    "TransferError",
    "TransferNotFoundError",
    "TransferPermissionError",
    "TransferValidationError",
]
