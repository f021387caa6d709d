"""View preference store implementations."""

from medequip_transfers.infrastructure.preferences.in_memory_preference_store import (
    InMemoryViewPreferenceStore,
)

__all__ = ["InMemoryViewPreferenceStore"]
