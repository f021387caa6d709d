"""Notifier that writes user-facing messages to the application log."""

import logging

from medequip_transfers.domain.actors import ActorContext
from medequip_transfers.domain.ports import TransferNotifier

logger = logging.getLogger(__name__)


class LoggingTransferNotifier(TransferNotifier):
    """Log success at INFO and failures at WARNING."""

    async def notify_success(self, actor: ActorContext, message: str) -> None:
        logger.info("[user %s] %s", actor.user_id, message)

    async def notify_failure(self, actor: ActorContext, message: str) -> None:
        logger.warning("[user %s] %s", actor.user_id, message)


__all__ = ["LoggingTransferNotifier"]
