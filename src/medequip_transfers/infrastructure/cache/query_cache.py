"""Keyed read cache with in-flight deduplication and prefix invalidation."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from medequip_transfers.domain.errors import TransferBackendUnavailableError

logger = logging.getLogger(__name__)

CacheKey = tuple[str, ...]
T = TypeVar("T")


@dataclass(slots=True)
class _CacheEntry:
    value: Any
    fetched_at: float
    max_age: float


@dataclass(slots=True)
class _InFlight:
    task: asyncio.Task[Any] | None = None
    superseded: bool = False


class QueryCache:
    """Serve cached reads, share concurrent fetches and drop superseded results.

    A fetch started before `invalidate()` never populates the cache; callers
    waiting on it transparently wait for a fresh fetch instead. Storing a value
    prunes entries past their stale window and, above `max_entries`, the
    oldest ones.
    """

    def __init__(
        self,
        *,
        stale_seconds: float = 30.0,
        retry_attempts: int = 2,
        retry_base_delay_seconds: float = 0.5,
        retry_max_delay_seconds: float = 5.0,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._stale_seconds = max(stale_seconds, 0.0)
        self._retry_attempts = max(retry_attempts, 0)
        self._retry_base_delay_seconds = max(retry_base_delay_seconds, 0.0)
        self._retry_max_delay_seconds = max(
            retry_max_delay_seconds,
            self._retry_base_delay_seconds,
        )
        self._max_entries = max(max_entries, 1)
        self._clock = clock

        self._entries: dict[CacheKey, _CacheEntry] = {}
        self._inflight: dict[CacheKey, _InFlight] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def fetch(
        self,
        key: CacheKey,
        fetcher: Callable[[], Awaitable[T]],
        *,
        stale_seconds: float | None = None,
        retry_attempts: int | None = None,
    ) -> T:
        """Return a fresh cached value or run `fetcher` once for all waiters."""

        max_age = self._stale_seconds if stale_seconds is None else max(stale_seconds, 0.0)
        attempts = self._retry_attempts if retry_attempts is None else max(retry_attempts, 0)
        while True:
            entry = self._entries.get(key)
            if entry is not None and self._clock() - entry.fetched_at < max_age:
                return entry.value

            inflight = self._inflight.get(key)
            if inflight is None:
                inflight = _InFlight()
                inflight.task = asyncio.create_task(
                    self._run(key, fetcher, inflight, attempts, max_age),
                    name=f"query-cache:{'/'.join(key)}",
                )
                self._inflight[key] = inflight

            value = await asyncio.shield(inflight.task)
            if not inflight.superseded:
                return value
            logger.debug("Discarding superseded response for %s.", key)

    def invalidate(self, prefix: CacheKey) -> int:
        """Drop cached values under `prefix` and supersede in-flight fetches."""

        keys = {key for key in (*self._entries, *self._inflight) if _matches(key, prefix)}
        for key in keys:
            self._entries.pop(key, None)
            inflight = self._inflight.pop(key, None)
            if inflight is not None:
                inflight.superseded = True
        return len(keys)

    def cancel(self, prefix: CacheKey) -> int:
        """Abort in-flight fetches under `prefix`."""

        keys = [key for key in self._inflight if _matches(key, prefix)]
        for key in keys:
            inflight = self._inflight.pop(key)
            inflight.superseded = True
            if inflight.task is not None:
                inflight.task.cancel()
        return len(keys)

    def peek(self, key: CacheKey) -> Any | None:
        """Return the cached value regardless of age, without fetching."""

        entry = self._entries.get(key)
        return None if entry is None else entry.value

    def is_fetching(self, key: CacheKey) -> bool:
        return key in self._inflight

    async def _run(
        self,
        key: CacheKey,
        fetcher: Callable[[], Awaitable[Any]],
        inflight: _InFlight,
        retry_attempts: int,
        max_age: float,
    ) -> Any:
        try:
            value = await self._fetch_with_retry(key, fetcher, retry_attempts)
            if not inflight.superseded:
                now = self._clock()
                self._entries[key] = _CacheEntry(value=value, fetched_at=now, max_age=max_age)
                self._prune(now, keep=key)
            return value
        finally:
            if self._inflight.get(key) is inflight:
                del self._inflight[key]

    def _prune(self, now: float, *, keep: CacheKey) -> None:
        expired = [
            key
            for key, entry in self._entries.items()
            if key != keep and now - entry.fetched_at >= entry.max_age
        ]
        for key in expired:
            del self._entries[key]
        overflow = len(self._entries) - self._max_entries
        if overflow > 0:
            oldest = sorted(self._entries, key=lambda key: self._entries[key].fetched_at)
            for key in oldest[:overflow]:
                del self._entries[key]

    async def _fetch_with_retry(
        self,
        key: CacheKey,
        fetcher: Callable[[], Awaitable[Any]],
        retry_attempts: int,
    ) -> Any:
        attempt = 0
        while True:
            try:
                return await fetcher()
            except TransferBackendUnavailableError as exc:
                if attempt >= retry_attempts:
                    raise
                delay = min(
                    self._retry_base_delay_seconds * (2**attempt),
                    self._retry_max_delay_seconds,
                )
                attempt += 1
                logger.info(
                    "Retrying %s after transient failure (attempt %s/%s): %s",
                    key,
                    attempt,
                    retry_attempts,
                    exc,
                )
                await asyncio.sleep(delay)


def _matches(key: CacheKey, prefix: CacheKey) -> bool:
    return key[: len(prefix)] == prefix


__all__ = ["CacheKey", "QueryCache"]
