"""Per-user view preferences."""

from dataclasses import dataclass
from enum import StrEnum


class ViewMode(StrEnum):
    TABLE = "table"
    KANBAN = "kanban"


class CardDensity(StrEnum):
    COMPACT = "compact"
    RICH = "rich"


@dataclass(slots=True, frozen=True)
class ViewPreferences:
    """Display options persisted per user."""

    view_mode: ViewMode = ViewMode.TABLE
    density: CardDensity = CardDensity.COMPACT
    show_completed: bool = False


__all__ = ["CardDensity", "ViewMode", "ViewPreferences"]
