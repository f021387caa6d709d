from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from medequip_transfers.domain.actors import ActorContext, UserRole
from medequip_transfers.domain.entities import EquipmentSummary, TransferRequest
from medequip_transfers.domain.rpc import RpcFunction
from medequip_transfers.domain.transfer_types import (
    ExternalPurpose,
    TransferStatus,
    TransferType,
)
from medequip_transfers.infrastructure.rpc import InMemoryTransferBackend

BASE_TIME = datetime(2025, 3, 1, 8, 0, tzinfo=UTC)

VENTILATOR = EquipmentSummary(
    id=100,
    name="Ventilator V60",
    code="EQ-VENT-01",
    model="V60",
    serial="SN-0001",
    managing_department="Cardiology",
    facility_id=10,
    facility_name="Central Hospital",
)
ULTRASOUND = EquipmentSummary(
    id=200,
    name="Ultrasound Logiq",
    code="EQ-US-07",
    managing_department="Radiology",
    facility_id=20,
    facility_name="North Clinic",
)


class RecordingBackend:
    """Delegate to an inner backend, recording calls and injecting failures."""

    def __init__(self, inner: Any) -> None:
        self.inner = inner
        self.calls: list[tuple[RpcFunction, dict[str, Any]]] = []
        self._failures: dict[RpcFunction, list[Exception]] = {}

    def fail(self, function: RpcFunction, *errors: Exception) -> None:
        self._failures.setdefault(function, []).extend(errors)

    def count(self, function: RpcFunction) -> int:
        return sum(1 for called, _ in self.calls if called is function)

    async def call(
        self,
        function: RpcFunction,
        args: Mapping[str, Any] | None = None,
        *,
        actor: ActorContext,
    ) -> Any:
        self.calls.append((function, dict(args or {})))
        pending = self._failures.get(function)
        if pending:
            raise pending.pop(0)
        return await self.inner.call(function, args, actor=actor)


class RecordingNotifier:
    def __init__(self) -> None:
        self.successes: list[str] = []
        self.failures: list[str] = []

    async def notify_success(self, actor: ActorContext, message: str) -> None:
        self.successes.append(message)

    async def notify_failure(self, actor: ActorContext, message: str) -> None:
        self.failures.append(message)


@pytest.fixture
def manager() -> ActorContext:
    return ActorContext(
        user_id=1,
        role=UserRole.EQUIPMENT_MANAGER,
        department="Equipment Office",
        facility_id=10,
    )


@pytest.fixture
def global_admin() -> ActorContext:
    return ActorContext(user_id=2, role=UserRole.GLOBAL)


@pytest.fixture
def regional_leader() -> ActorContext:
    return ActorContext(
        user_id=3,
        role=UserRole.REGIONAL_LEADER,
        allowed_facility_ids=(10, 20),
    )


@pytest.fixture
def cardiology_head() -> ActorContext:
    return ActorContext(
        user_id=4,
        role=UserRole.DEPARTMENT_MANAGER,
        department="Cardiology",
        facility_id=10,
    )


@pytest.fixture
def radiology_head() -> ActorContext:
    return ActorContext(
        user_id=5,
        role=UserRole.DEPARTMENT_MANAGER,
        department="Radiology",
        facility_id=10,
    )


@pytest.fixture
def technician() -> ActorContext:
    return ActorContext(
        user_id=6,
        role=UserRole.TECHNICIAN,
        department="Cardiology",
        facility_id=10,
    )


@pytest.fixture
def base_time() -> datetime:
    return BASE_TIME


@pytest.fixture
def ventilator() -> EquipmentSummary:
    return VENTILATOR


@pytest.fixture
def ultrasound() -> EquipmentSummary:
    return ULTRASOUND


@pytest.fixture
def make_transfer() -> Callable[..., TransferRequest]:
    def factory(
        transfer_id: int = 1,
        *,
        transfer_type: TransferType = TransferType.INTERNAL,
        status: TransferStatus = TransferStatus.PENDING_APPROVAL,
        equipment: EquipmentSummary = VENTILATOR,
        created_at: datetime | None = None,
        **overrides: Any,
    ) -> TransferRequest:
        values: dict[str, Any] = {
            "id": transfer_id,
            "code": f"TR-2025-{transfer_id:05d}",
            "type": transfer_type,
            "status": status,
            "equipment_id": equipment.id,
            "equipment": equipment,
            "facility_id": equipment.facility_id,
            "created_at": created_at or BASE_TIME + timedelta(minutes=transfer_id),
            "requester_id": 4,
            "reason": "Scheduled reassignment",
            "source_department": equipment.managing_department,
        }
        if transfer_type is TransferType.INTERNAL:
            values["destination_department"] = "Radiology"
        elif transfer_type is TransferType.EXTERNAL:
            values["receiving_organization"] = "MedTech Service Co."
            values["purpose"] = ExternalPurpose.REPAIR
        values.update(overrides)
        return TransferRequest(**values)

    return factory


@pytest.fixture
def backend() -> InMemoryTransferBackend:
    in_memory = InMemoryTransferBackend(clock=lambda: BASE_TIME)
    in_memory.register_equipment(VENTILATOR)
    in_memory.register_equipment(ULTRASOUND)
    return in_memory


@pytest.fixture
def legacy_backend() -> InMemoryTransferBackend:
    in_memory = InMemoryTransferBackend(legacy_mode=True, clock=lambda: BASE_TIME)
    in_memory.register_equipment(VENTILATOR)
    in_memory.register_equipment(ULTRASOUND)
    return in_memory


@pytest.fixture
def recording_backend_factory() -> Callable[[Any], RecordingBackend]:
    return RecordingBackend


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
