"""Translate domain errors into HTTP responses."""

from typing import NoReturn

from fastapi import HTTPException

from medequip_transfers.domain.errors import (
    KanbanLoadError,
    TransferBackendError,
    TransferNotFoundError,
    TransferPermissionError,
    TransferValidationError,
)


def raise_http_exception(exc: Exception) -> NoReturn:
    if isinstance(exc, HTTPException):
        raise exc
    if isinstance(exc, TransferNotFoundError):
        raise HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, TransferValidationError):
        raise HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, TransferPermissionError):
        raise HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, TransferBackendError):
        status_code = exc.status_code
        if status_code is None or not 400 <= status_code < 500:
            status_code = 502
        raise HTTPException(status_code=status_code, detail=str(exc))
    if isinstance(exc, KanbanLoadError):
        raise HTTPException(status_code=502, detail=str(exc))
    raise HTTPException(status_code=500, detail="Unexpected transfer error")


__all__ = ["raise_http_exception"]
