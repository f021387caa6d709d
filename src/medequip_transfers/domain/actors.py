"""Session-derived actor identity."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class UserRole(StrEnum):
    """Application roles carried in the session."""

    GLOBAL = "global"
    ADMIN = "admin"
    REGIONAL_LEADER = "regional_leader"
    EQUIPMENT_MANAGER = "equipment_manager"
    DEPARTMENT_MANAGER = "department_manager"
    TECHNICIAN = "technician"
    USER = "user"


MANAGERIAL_ROLES = frozenset({UserRole.GLOBAL, UserRole.ADMIN, UserRole.EQUIPMENT_MANAGER})
VIEW_ONLY_ROLES = frozenset({UserRole.REGIONAL_LEADER, UserRole.USER})
MULTI_FACILITY_ROLES = frozenset({UserRole.GLOBAL, UserRole.ADMIN, UserRole.REGIONAL_LEADER})
DEPARTMENT_SCOPED_ROLES = frozenset({UserRole.DEPARTMENT_MANAGER})

# Role names still issued by older sessions.
ROLE_ALIASES: dict[str, UserRole] = {
    "to_qltb": UserRole.EQUIPMENT_MANAGER,
    "qltb_khoa": UserRole.DEPARTMENT_MANAGER,
}


def parse_role(value: str | None) -> UserRole:
    """Normalize a raw session role; unknown roles get the least privilege."""

    normalized = (value or "").strip().lower()
    if normalized in ROLE_ALIASES:
        return ROLE_ALIASES[normalized]
    try:
        return UserRole(normalized)
    except ValueError:
        return UserRole.USER


@dataclass(slots=True, frozen=True)
class ActorContext:
    """Who is acting, and within which organisational scope."""

    user_id: int | None
    role: UserRole
    department: str | None = None
    facility_id: int | None = None
    allowed_facility_ids: tuple[int, ...] = field(default_factory=tuple)

    @property
    def is_managerial(self) -> bool:
        return self.role in MANAGERIAL_ROLES

    @property
    def is_view_only(self) -> bool:
        return self.role in VIEW_ONLY_ROLES

    @property
    def is_multi_facility(self) -> bool:
        return self.role in MULTI_FACILITY_ROLES

    @property
    def is_department_scoped(self) -> bool:
        return self.role in DEPARTMENT_SCOPED_ROLES

    @property
    def is_global(self) -> bool:
        return self.role in {UserRole.GLOBAL, UserRole.ADMIN}

    @property
    def scope_key(self) -> str:
        """Stable key for the actor's visibility scope."""

        facilities = ",".join(str(value) for value in sorted(self.allowed_facility_ids))
        return (
            f"{self.role.value}|{self.facility_id or ''}|{facilities}"
            f"|{self.department or ''}|{self.user_id or ''}"
        )

    def visible_facility_ids(self) -> frozenset[int] | None:
        """Facilities the actor may read; None means unrestricted."""

        if self.is_global:
            return None
        if self.role is UserRole.REGIONAL_LEADER:
            return frozenset(self.allowed_facility_ids)
        if self.facility_id is None:
            return frozenset()
        return frozenset({self.facility_id})


__all__ = [
    "ActorContext",
    "DEPARTMENT_SCOPED_ROLES",
    "MANAGERIAL_ROLES",
    "MULTI_FACILITY_ROLES",
    "ROLE_ALIASES",
    "UserRole",
    "VIEW_ONLY_ROLES",
    "parse_role",
]
