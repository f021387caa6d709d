"""Application bootstrap/wiring."""

import logging
from dataclasses import dataclass

from medequip_transfers.application.services import (
    CountsService,
    KanbanColumnLoader,
    TableQueryService,
    TransferListSource,
    TransitionDispatcher,
)
from medequip_transfers.config import BackendKind, NotifierKind, Settings
from medequip_transfers.domain.ports import (
    TransferNotifier,
    TransferRpcBackend,
    ViewPreferenceStore,
)
from medequip_transfers.infrastructure.cache import QueryCache
from medequip_transfers.infrastructure.notifications import (
    LoggingTransferNotifier,
    NoopTransferNotifier,
)
from medequip_transfers.infrastructure.preferences import InMemoryViewPreferenceStore
from medequip_transfers.infrastructure.rpc import InMemoryTransferBackend, PostgrestRpcClient

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class TransferServices:
    """Composed service graph shared by the API."""

    backend: TransferRpcBackend
    cache: QueryCache
    list_source: TransferListSource
    table_query_service: TableQueryService
    counts_service: CountsService
    kanban_loader: KanbanColumnLoader
    dispatcher: TransitionDispatcher
    notifier: TransferNotifier
    preference_store: ViewPreferenceStore


def _build_backend(settings: Settings) -> TransferRpcBackend:
    if settings.backend == BackendKind.POSTGREST:
        if (
            settings.rpc_base_url is None
            or settings.rpc_api_key is None
            or settings.rpc_jwt_secret is None
        ):
            raise ValueError(
                "MEDEQUIP_RPC_BASE_URL, MEDEQUIP_RPC_API_KEY and MEDEQUIP_RPC_JWT_SECRET "
                "are required when MEDEQUIP_BACKEND=postgrest."
            )
        logger.info("Using PostgREST transfer backend at '%s'.", settings.rpc_base_url)
        return PostgrestRpcClient(
            settings.rpc_base_url,
            api_key=settings.rpc_api_key,
            jwt_secret=settings.rpc_jwt_secret,
            timeout_seconds=settings.rpc_timeout_seconds,
        )
    if settings.backend_legacy_mode:
        logger.warning(
            "In-memory backend started in legacy mode; list and count functions are disabled."
        )
    return InMemoryTransferBackend(legacy_mode=settings.backend_legacy_mode)


def _build_notifier(settings: Settings) -> TransferNotifier:
    if settings.notifier == NotifierKind.LOGGING:
        return LoggingTransferNotifier()
    return NoopTransferNotifier()


def build_transfer_services(settings: Settings) -> TransferServices:
    """Compose service graph."""

    backend = _build_backend(settings)
    cache = QueryCache(
        stale_seconds=settings.query_stale_seconds,
        retry_attempts=settings.query_retry_attempts,
        retry_base_delay_seconds=settings.query_retry_base_delay_seconds,
        retry_max_delay_seconds=settings.query_retry_max_delay_seconds,
    )
    list_source = TransferListSource(
        backend,
        legacy_batch_size=settings.legacy_batch_size,
        capability_recheck_seconds=settings.capability_recheck_seconds,
    )
    table_query_service = TableQueryService(list_source, cache)
    counts_service = CountsService(
        list_source,
        cache,
        stale_seconds=settings.counts_stale_seconds,
    )
    preference_store = InMemoryViewPreferenceStore()
    kanban_loader = KanbanColumnLoader(
        backend,
        table_query_service,
        cache,
        per_column_limit=settings.kanban_per_column_limit,
        poll_interval_seconds=settings.kanban_poll_interval_seconds,
        preference_store=preference_store,
    )
    notifier = _build_notifier(settings)
    return TransferServices(
        backend=backend,
        cache=cache,
        list_source=list_source,
        table_query_service=table_query_service,
        counts_service=counts_service,
        kanban_loader=kanban_loader,
        dispatcher=TransitionDispatcher(backend, cache, notifier),
        notifier=notifier,
        preference_store=preference_store,
    )


__all__ = ["TransferServices", "build_transfer_services"]
