"""Ports for the transfer backend, notifications and preferences."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol, TypeVar, runtime_checkable

from medequip_transfers.domain.actors import ActorContext
from medequip_transfers.domain.preferences import ViewPreferences
from medequip_transfers.domain.rpc import RpcFunction

T = TypeVar("T")


@runtime_checkable
class TransferRpcBackend(Protocol):
    """Remote procedure port; every operation is one named function call."""

    async def call(
        self,
        function: RpcFunction,
        args: Mapping[str, Any] | None = None,
        *,
        actor: ActorContext,
    ) -> Any:
        """Invoke `function` with `args` on behalf of `actor`."""


class TransferNotifier(Protocol):
    """Outbound user-facing success/failure notifications."""

    async def notify_success(self, actor: ActorContext, message: str) -> None:
        """Report a completed operation."""

    async def notify_failure(self, actor: ActorContext, message: str) -> None:
        """Report a failed operation with the backend's message."""


class QueryCachePort(Protocol):
    """Keyed read cache shared by every read model."""

    async def fetch(
        self,
        key: tuple[str, ...],
        fetcher: Callable[[], Awaitable[T]],
        *,
        stale_seconds: float | None = None,
        retry_attempts: int | None = None,
    ) -> T:
        """Return a fresh value for `key`, running `fetcher` at most once."""

    def invalidate(self, prefix: tuple[str, ...]) -> int:
        """Drop entries under `prefix`; in-flight results are discarded."""

    def cancel(self, prefix: tuple[str, ...]) -> int:
        """Abort in-flight fetches under `prefix`."""


class ViewPreferenceStore(Protocol):
    """Persistence port for per-user view preferences."""

    async def get(self, user_id: int) -> ViewPreferences:
        """Return stored preferences, or defaults."""

    async def set(self, user_id: int, preferences: ViewPreferences) -> None:
        """Store preferences for a user."""


__all__ = [
    "QueryCachePort",
    "TransferNotifier",
    "TransferRpcBackend",
    "ViewPreferenceStore",
]
