"""No-op notifier for headless runs."""

from medequip_transfers.domain.actors import ActorContext
from medequip_transfers.domain.ports import TransferNotifier


class NoopTransferNotifier(TransferNotifier):
    """Discard user-facing notifications."""

    async def notify_success(self, actor: ActorContext, message: str) -> None:
        _ = (actor, message)

    async def notify_failure(self, actor: ActorContext, message: str) -> None:
        _ = (actor, message)


__all__ = ["NoopTransferNotifier"]
