"""User-facing notification adapters."""

from medequip_transfers.infrastructure.notifications.logging_transfer_notifier import (
    LoggingTransferNotifier,
)
from medequip_transfers.infrastructure.notifications.noop_transfer_notifier import (
    NoopTransferNotifier,
)

__all__ = ["LoggingTransferNotifier", "NoopTransferNotifier"]
