"""Kanban read model: one batched initial load plus per-column paging."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from contextlib import suppress
from typing import Any

from medequip_transfers.application.query_keys import kanban_initial_key, kanban_prefix
from medequip_transfers.application.services.table_query_service import TableQueryService
from medequip_transfers.domain.actors import ActorContext
from medequip_transfers.domain.entities import TransferRequest
from medequip_transfers.domain.errors import (
    KanbanLoadError,
    TransferBackendError,
    TransferError,
)
from medequip_transfers.domain.filters import TransferFilter, sanitize_filter
from medequip_transfers.domain.ports import (
    QueryCachePort,
    TransferRpcBackend,
    ViewPreferenceStore,
)
from medequip_transfers.domain.query_models import (
    KanbanColumnPage,
    KanbanSnapshot,
    MergedKanbanColumn,
)
from medequip_transfers.domain.rpc import RpcFunction
from medequip_transfers.domain.transfer_types import TransferStatus

logger = logging.getLogger(__name__)


class KanbanColumnLoader:
    """Load kanban columns for an actor and filter."""

    def __init__(
        self,
        backend: TransferRpcBackend,
        table_query_service: TableQueryService,
        cache: QueryCachePort,
        *,
        per_column_limit: int = 30,
        poll_interval_seconds: float = 60.0,
        stale_seconds: float | None = None,
        preference_store: ViewPreferenceStore | None = None,
    ) -> None:
        self._backend = backend
        self._table_query_service = table_query_service
        self._cache = cache
        self._per_column_limit = max(per_column_limit, 1)
        self._poll_interval_seconds = max(poll_interval_seconds, 0.01)
        self._stale_seconds = stale_seconds
        self._preference_store = preference_store

    @property
    def per_column_limit(self) -> int:
        return self._per_column_limit

    def is_enabled(self, actor: ActorContext, transfer_filter: TransferFilter) -> bool:
        """Multi-facility actors must pick a facility before anything loads."""

        return not (actor.is_multi_facility and transfer_filter.facility_id is None)

    async def load_initial(
        self,
        actor: ActorContext,
        transfer_filter: TransferFilter | Mapping[str, Any] | None = None,
        *,
        per_column_limit: int | None = None,
        exclude_completed: bool = False,
        cursor: int | None = None,
    ) -> KanbanSnapshot:
        """Fetch the first page of each requested column and its total in one call.

        A `statuses` filter narrows the board to those columns.
        """

        canonical = sanitize_filter(transfer_filter).without_pagination()
        limit = self._per_column_limit if per_column_limit is None else per_column_limit
        if not self.is_enabled(actor, canonical):
            return KanbanSnapshot(columns={}, totals={}, per_column_limit=limit)

        async def load() -> KanbanSnapshot:
            args = canonical.rpc_args(paginate=False)
            args.update(
                {
                    "p_per_column_limit": limit,
                    "p_exclude_completed": exclude_completed,
                    "p_cursor": cursor,
                }
            )
            payload = await self._backend.call(
                RpcFunction.GET_TRANSFERS_KANBAN, args, actor=actor
            )
            return _snapshot_from_payload(payload, limit)

        key = kanban_initial_key(
            actor,
            canonical,
            per_column_limit=limit,
            exclude_completed=exclude_completed,
            cursor=cursor,
        )
        return await self._cache.fetch(key, load, stale_seconds=self._stale_seconds)

    async def load_column_page(
        self,
        actor: ActorContext,
        transfer_filter: TransferFilter | Mapping[str, Any] | None,
        status: TransferStatus,
        page: int,
        *,
        per_column_limit: int | None = None,
    ) -> KanbanColumnPage:
        """Fetch page `page` of one column; page 1 overlaps the initial load."""

        limit = self._per_column_limit if per_column_limit is None else per_column_limit
        column_filter = sanitize_filter(transfer_filter).for_status(status, page, limit)
        result = await self._table_query_service.fetch_page(actor, column_filter)
        return KanbanColumnPage(
            status=status,
            tasks=result.data,
            total=result.total,
            page=page,
            page_size=limit,
        )

    def cancel(self, actor: ActorContext, transfer_filter: TransferFilter) -> int:
        """Abort outstanding initial loads for a filter."""

        canonical = transfer_filter.without_pagination()
        return self._cache.cancel(kanban_prefix(actor, canonical))

    async def open_board(
        self,
        actor: ActorContext,
        transfer_filter: TransferFilter | Mapping[str, Any] | None = None,
        *,
        exclude_completed: bool | None = None,
    ) -> KanbanBoard:
        """Create a board view model; completed work is hidden per user preference."""

        if exclude_completed is None:
            exclude_completed = False
            if self._preference_store is not None and actor.user_id is not None:
                preferences = await self._preference_store.get(actor.user_id)
                exclude_completed = not preferences.show_completed
        return KanbanBoard(
            self,
            actor,
            sanitize_filter(transfer_filter),
            per_column_limit=self._per_column_limit,
            poll_interval_seconds=self._poll_interval_seconds,
            exclude_completed=exclude_completed,
        )


class KanbanBoard:
    """Stateful board: initial snapshot, incremental column pages and polling.

    Incremental pages use offset pagination; concurrent writes between polls
    can shift a row across a page boundary so it shows twice or not at all
    until the next filter change.
    """

    def __init__(
        self,
        loader: KanbanColumnLoader,
        actor: ActorContext,
        transfer_filter: TransferFilter,
        *,
        per_column_limit: int,
        poll_interval_seconds: float,
        exclude_completed: bool = False,
    ) -> None:
        self._loader = loader
        self._actor = actor
        self._filter = transfer_filter
        self._per_column_limit = per_column_limit
        self._poll_interval_seconds = poll_interval_seconds
        self._exclude_completed = exclude_completed

        self._snapshot: KanbanSnapshot | None = None
        self._pages: dict[TransferStatus, list[KanbanColumnPage]] = {}
        self._errors: dict[TransferStatus, str] = {}
        self._pending: dict[TransferStatus, asyncio.Task[KanbanColumnPage]] = {}
        self._generation = 0

        self._poll_task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()
        self._visible = asyncio.Event()
        self._visible.set()
        self._lifecycle_lock = asyncio.Lock()

    @property
    def filter(self) -> TransferFilter:
        return self._filter

    @property
    def snapshot(self) -> KanbanSnapshot | None:
        return self._snapshot

    @property
    def enabled(self) -> bool:
        return self._loader.is_enabled(self._actor, self._filter)

    @property
    def exclude_completed(self) -> bool:
        return self._exclude_completed

    @property
    def statuses(self) -> tuple[TransferStatus, ...]:
        statuses = self._filter.statuses or tuple(TransferStatus)
        if self._exclude_completed:
            return tuple(s for s in statuses if s is not TransferStatus.COMPLETED)
        return tuple(statuses)

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def refresh(self) -> KanbanSnapshot | None:
        """(Re)load the initial page of every column.

        Raises `KanbanLoadError` when the whole board cannot load.
        """

        if not self.enabled:
            self._snapshot = None
            return None
        generation = self._generation
        try:
            snapshot = await self._loader.load_initial(
                self._actor,
                self._filter,
                per_column_limit=self._per_column_limit,
                exclude_completed=self._exclude_completed,
            )
        except asyncio.CancelledError:
            if _cancelled_from_outside():
                raise
            return None
        except TransferError as exc:
            raise KanbanLoadError(f"Kanban board failed to load: {exc}") from exc
        if generation == self._generation:
            self._snapshot = snapshot
        return snapshot

    async def load_more(self, status: TransferStatus) -> KanbanColumnPage | None:
        """Fetch the next page of one column.

        Failures are recorded on the column and logged; other columns and the
        caller are unaffected.
        """

        if self._snapshot is None or status in self._pending:
            return None
        if not self.column(status).has_more:
            return None

        pages = self._pages.setdefault(status, [])
        next_page = len(pages) + 2
        generation = self._generation
        task = asyncio.create_task(
            self._loader.load_column_page(
                self._actor,
                self._filter,
                status,
                next_page,
                per_column_limit=self._per_column_limit,
            ),
            name=f"kanban-column-{status}-page-{next_page}",
        )
        self._pending[status] = task
        try:
            page = await task
        except asyncio.CancelledError:
            if _cancelled_from_outside():
                raise
            return None
        except TransferError as exc:
            if generation == self._generation:
                self._errors[status] = str(exc)
            logger.warning(
                "Loading page %s of kanban column '%s' failed: %s",
                next_page,
                status,
                exc,
            )
            return None
        finally:
            if self._pending.get(status) is task:
                del self._pending[status]

        if generation != self._generation:
            return None
        self._errors.pop(status, None)
        pages.append(page)
        return page

    def column(self, status: TransferStatus) -> MergedKanbanColumn:
        """Merge the initial tasks with incremental pages for one column."""

        initial: list[TransferRequest] = []
        total = 0
        if self._snapshot is not None:
            initial = self._snapshot.columns.get(status, [])
            total = self._snapshot.totals.get(status, 0)

        pages = self._pages.get(status, [])
        tasks = list(initial)
        for page in pages:
            tasks.extend(page.tasks)
        if pages:
            has_more = pages[-1].has_more
            total = pages[-1].total
        else:
            has_more = len(initial) >= self._per_column_limit
        return MergedKanbanColumn(
            status=status,
            tasks=tasks,
            total=total,
            has_more=has_more,
            loading=status in self._pending,
            error=self._errors.get(status),
        )

    def columns(self) -> list[MergedKanbanColumn]:
        return [self.column(status) for status in self.statuses]

    def set_filter(
        self, transfer_filter: TransferFilter | Mapping[str, Any] | None
    ) -> None:
        """Switch filter: drop incremental pages and abort work for the old one."""

        canonical = sanitize_filter(transfer_filter)
        if canonical == self._filter:
            return
        previous = self._filter
        self._generation += 1
        self._filter = canonical
        for task in self._pending.values():
            task.cancel()
        self._pending.clear()
        self._pages.clear()
        self._errors.clear()
        self._snapshot = None
        self._loader.cancel(self._actor, previous)

    def set_visible(self, visible: bool) -> None:
        """Pause polling while hidden."""

        if visible:
            self._visible.set()
        else:
            self._visible.clear()

    async def start_polling(self) -> None:
        """Start the background refresh loop if not already running."""

        async with self._lifecycle_lock:
            task = self._poll_task
            if task is not None and not task.done():
                return
            self._stopping.clear()
            self._poll_task = asyncio.create_task(
                self._run_loop(),
                name="kanban-board-poller",
            )

    async def stop_polling(self) -> None:
        async with self._lifecycle_lock:
            task = self._poll_task
            if task is None:
                return
            self._poll_task = None
            self._stopping.set()
            task.cancel()

        with suppress(asyncio.CancelledError):
            await task

    async def _run_loop(self) -> None:
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(
                    self._stopping.wait(),
                    timeout=self._poll_interval_seconds,
                )
            except TimeoutError:
                pass
            if self._stopping.is_set():
                return
            await self._visible.wait()
            try:
                await self.refresh()
            except Exception:
                logger.exception("Kanban board refresh failed.")


def _cancelled_from_outside() -> bool:
    # A fetch aborted by set_filter is not a cancellation of the caller.
    current = asyncio.current_task()
    return current is not None and current.cancelling() > 0


def _snapshot_from_payload(payload: Any, per_column_limit: int) -> KanbanSnapshot:
    if not isinstance(payload, Mapping) or not isinstance(payload.get("columns"), Mapping):
        raise TransferBackendError("get_transfers_kanban returned an unexpected payload.")
    columns: dict[TransferStatus, list[TransferRequest]] = {}
    totals: dict[TransferStatus, int] = {}
    for status in TransferStatus:
        column = payload["columns"].get(status.value)
        if not isinstance(column, Mapping):
            continue
        columns[status] = [TransferRequest.from_row(row) for row in column.get("tasks") or []]
        totals[status] = int(column.get("total") or 0)
    return KanbanSnapshot(columns=columns, totals=totals, per_column_limit=per_column_limit)


__all__ = ["KanbanBoard", "KanbanColumnLoader"]
