from __future__ import annotations

import asyncio
import logging

import pytest

from medequip_transfers.application.services import (
    KanbanColumnLoader,
    TableQueryService,
    TransferListSource,
)
from medequip_transfers.domain.errors import KanbanLoadError, TransferBackendError
from medequip_transfers.domain.preferences import ViewPreferences
from medequip_transfers.domain.rpc import RpcFunction
from medequip_transfers.domain.transfer_types import TransferStatus
from medequip_transfers.infrastructure.cache import QueryCache
from medequip_transfers.infrastructure.preferences import InMemoryViewPreferenceStore


def _loader(backend, *, cache=None, poll_interval_seconds=60.0, preference_store=None):
    cache = cache if cache is not None else QueryCache()
    table_query_service = TableQueryService(TransferListSource(backend), cache)
    return KanbanColumnLoader(
        backend,
        table_query_service,
        cache,
        per_column_limit=30,
        poll_interval_seconds=poll_interval_seconds,
        preference_store=preference_store,
    )


def _seed(backend, make_transfer, *, pending=70, approved=35) -> None:
    for transfer_id in range(1, pending + 1):
        backend.insert(make_transfer(transfer_id))
    for offset in range(1, approved + 1):
        backend.insert(make_transfer(1000 + offset, status=TransferStatus.APPROVED))
    backend.insert(make_transfer(2000, status=TransferStatus.COMPLETED))


def test_initial_load_then_incremental_pages(
    backend, make_transfer, manager, recording_backend_factory
) -> None:
    _seed(backend, make_transfer)
    recording = recording_backend_factory(backend)
    loader = _loader(recording)

    async def main():
        board = await loader.open_board(manager)
        await board.refresh()
        first = board.column(TransferStatus.PENDING_APPROVAL)
        page_two = await board.load_more(TransferStatus.PENDING_APPROVAL)
        second = board.column(TransferStatus.PENDING_APPROVAL)
        await board.load_more(TransferStatus.PENDING_APPROVAL)
        third = board.column(TransferStatus.PENDING_APPROVAL)
        return first, page_two, second, third, board

    first, page_two, second, third, board = asyncio.run(main())

    assert [record.id for record in first.tasks] == list(range(70, 40, -1))
    assert first.total == 70
    assert first.has_more is True
    assert page_two is not None
    assert page_two.page == 2
    assert [record.id for record in page_two.tasks] == list(range(40, 10, -1))
    assert [record.id for record in second.tasks] == list(range(70, 10, -1))
    assert second.has_more is True
    assert [record.id for record in third.tasks] == list(range(70, 0, -1))
    assert third.has_more is False
    assert recording.count(RpcFunction.GET_TRANSFERS_KANBAN) == 1
    assert recording.count(RpcFunction.TRANSFER_REQUEST_LIST) == 2
    assert board.snapshot is not None
    assert board.snapshot.total_count == 106


def test_initial_load_is_a_single_call_with_per_column_totals(
    backend, make_transfer, manager, recording_backend_factory
) -> None:
    _seed(backend, make_transfer)
    recording = recording_backend_factory(backend)
    loader = _loader(recording)

    snapshot = asyncio.run(loader.load_initial(manager))

    assert len(snapshot.columns[TransferStatus.PENDING_APPROVAL]) == 30
    assert snapshot.totals[TransferStatus.APPROVED] == 35
    assert snapshot.totals[TransferStatus.COMPLETED] == 1
    assert snapshot.totals[TransferStatus.IN_TRANSFER] == 0
    assert recording.calls == [
        (
            RpcFunction.GET_TRANSFERS_KANBAN,
            {
                "p_q": None,
                "p_statuses": None,
                "p_types": None,
                "p_facility_id": None,
                "p_date_from": None,
                "p_date_to": None,
                "p_assignee_ids": None,
                "p_per_column_limit": 30,
                "p_exclude_completed": False,
                "p_cursor": None,
            },
        )
    ]


def test_status_filter_narrows_the_board_to_those_columns(
    backend, make_transfer, manager, recording_backend_factory
) -> None:
    _seed(backend, make_transfer)
    recording = recording_backend_factory(backend)
    loader = _loader(recording)

    async def main():
        snapshot = await loader.load_initial(manager, {"statuses": "approved"})
        board = await loader.open_board(manager, {"statuses": "approved"})
        await board.refresh()
        return snapshot, board

    snapshot, board = asyncio.run(main())

    assert list(snapshot.columns) == [TransferStatus.APPROVED]
    assert snapshot.total_count == 35
    assert recording.calls[0][1]["p_statuses"] == ["approved"]
    assert board.statuses == (TransferStatus.APPROVED,)
    assert [column.total for column in board.columns()] == [35]
    assert recording.count(RpcFunction.GET_TRANSFERS_KANBAN) == 1


def test_multi_facility_actor_needs_a_facility_before_loading(
    backend, make_transfer, regional_leader, recording_backend_factory
) -> None:
    _seed(backend, make_transfer)
    recording = recording_backend_factory(backend)
    loader = _loader(recording)

    async def main():
        board = await loader.open_board(regional_leader)
        gated = await board.refresh()
        board.set_filter({"facility_id": 10})
        loaded = await board.refresh()
        return board, gated, loaded

    board, gated, loaded = asyncio.run(main())

    assert gated is None
    assert board.enabled is True
    assert loaded is not None
    assert loaded.totals[TransferStatus.PENDING_APPROVAL] == 70
    assert recording.count(RpcFunction.GET_TRANSFERS_KANBAN) == 1


def test_column_failure_is_isolated(
    backend, make_transfer, manager, recording_backend_factory, caplog
) -> None:
    _seed(backend, make_transfer)
    recording = recording_backend_factory(backend)
    recording.fail(RpcFunction.TRANSFER_REQUEST_LIST, TransferBackendError("statement timeout"))
    loader = _loader(recording)

    async def main():
        board = await loader.open_board(manager)
        await board.refresh()
        failed = await board.load_more(TransferStatus.PENDING_APPROVAL)
        loaded = await board.load_more(TransferStatus.APPROVED)
        return board, failed, loaded

    with caplog.at_level(logging.WARNING):
        board, failed, loaded = asyncio.run(main())

    pending = board.column(TransferStatus.PENDING_APPROVAL)
    approved = board.column(TransferStatus.APPROVED)
    assert failed is None
    assert pending.error == "statement timeout"
    assert len(pending.tasks) == 30
    assert loaded is not None
    assert approved.error is None
    assert len(approved.tasks) == 35
    assert approved.has_more is False
    assert "pending_approval" in caplog.text


def test_whole_board_failure_raises_kanban_load_error(
    backend, make_transfer, manager, recording_backend_factory
) -> None:
    _seed(backend, make_transfer)
    recording = recording_backend_factory(backend)
    recording.fail(RpcFunction.GET_TRANSFERS_KANBAN, TransferBackendError("relation missing"))
    loader = _loader(recording)

    async def main() -> None:
        board = await loader.open_board(manager)
        await board.refresh()

    with pytest.raises(KanbanLoadError, match="relation missing"):
        asyncio.run(main())


def test_filter_change_discards_incremental_pages(
    backend, make_transfer, manager, recording_backend_factory
) -> None:
    _seed(backend, make_transfer)
    recording = recording_backend_factory(backend)
    loader = _loader(recording)

    async def main():
        board = await loader.open_board(manager)
        await board.refresh()
        await board.load_more(TransferStatus.PENDING_APPROVAL)
        board.set_filter({"q": "TR-2025-0006"})
        reset = board.column(TransferStatus.PENDING_APPROVAL)
        await board.refresh()
        return reset, board.column(TransferStatus.PENDING_APPROVAL)

    reset, filtered = asyncio.run(main())

    assert reset.tasks == []
    assert reset.has_more is False
    assert [record.id for record in filtered.tasks] == list(range(69, 59, -1))
    assert filtered.has_more is False


def test_completed_column_hidden_by_preference(
    backend, make_transfer, manager, recording_backend_factory
) -> None:
    _seed(backend, make_transfer)
    recording = recording_backend_factory(backend)
    store = InMemoryViewPreferenceStore()
    loader = _loader(recording, preference_store=store)

    async def main():
        hidden = await loader.open_board(manager)
        await hidden.refresh()
        await store.set(manager.user_id, ViewPreferences(show_completed=True))
        shown = await loader.open_board(manager)
        await shown.refresh()
        return hidden, shown

    hidden, shown = asyncio.run(main())

    assert hidden.exclude_completed is True
    assert TransferStatus.COMPLETED not in hidden.statuses
    assert TransferStatus.COMPLETED not in hidden.snapshot.columns
    assert shown.exclude_completed is False
    assert len(shown.columns()) == len(TransferStatus)
    assert recording.calls[0][1]["p_exclude_completed"] is True
    assert recording.calls[1][1]["p_exclude_completed"] is False


def test_polling_refreshes_while_visible(
    backend, make_transfer, manager, recording_backend_factory
) -> None:
    _seed(backend, make_transfer, pending=3, approved=1)
    recording = recording_backend_factory(backend)
    loader = _loader(recording, cache=QueryCache(stale_seconds=0), poll_interval_seconds=0.01)

    async def main() -> tuple[int, int, bool]:
        board = await loader.open_board(manager)
        await board.start_polling()
        await asyncio.sleep(0.1)
        board.set_visible(False)
        await asyncio.sleep(0.05)
        paused_at = recording.count(RpcFunction.GET_TRANSFERS_KANBAN)
        await asyncio.sleep(0.1)
        paused_after = recording.count(RpcFunction.GET_TRANSFERS_KANBAN)
        await board.stop_polling()
        return paused_at, paused_after, board.polling

    paused_at, paused_after, polling = asyncio.run(main())

    assert paused_at >= 2
    assert paused_after == paused_at
    assert polling is False


class GatedBackend:
    """Hold list calls until released."""

    def __init__(self, inner) -> None:
        self.inner = inner
        self.gate = asyncio.Event()

    async def call(self, function, args=None, *, actor):
        if function is RpcFunction.TRANSFER_REQUEST_LIST:
            await self.gate.wait()
        return await self.inner.call(function, args, actor=actor)


def test_filter_change_drops_in_flight_column_page(backend, make_transfer, manager) -> None:
    _seed(backend, make_transfer)
    gated = GatedBackend(backend)
    loader = _loader(gated)

    async def main():
        board = await loader.open_board(manager)
        await board.refresh()
        pending = asyncio.create_task(board.load_more(TransferStatus.PENDING_APPROVAL))
        await asyncio.sleep(0)
        loading = board.column(TransferStatus.PENDING_APPROVAL).loading
        board.set_filter({"types": "internal"})
        gated.gate.set()
        return loading, await pending, board.column(TransferStatus.PENDING_APPROVAL)

    loading, result, column = asyncio.run(main())

    assert loading is True
    assert result is None
    assert column.tasks == []
    assert column.loading is False
