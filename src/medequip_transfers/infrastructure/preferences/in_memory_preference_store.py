"""In-memory view preference store."""

from __future__ import annotations

import asyncio

from medequip_transfers.domain.ports import ViewPreferenceStore
from medequip_transfers.domain.preferences import ViewPreferences


class InMemoryViewPreferenceStore(ViewPreferenceStore):
    """Per-process preferences keyed by user id."""

    def __init__(self) -> None:
        self._preferences: dict[int, ViewPreferences] = {}
        self._lock = asyncio.Lock()

    async def get(self, user_id: int) -> ViewPreferences:
        async with self._lock:
            return self._preferences.get(user_id, ViewPreferences())

    async def set(self, user_id: int, preferences: ViewPreferences) -> None:
        async with self._lock:
            self._preferences[user_id] = preferences


__all__ = ["InMemoryViewPreferenceStore"]
