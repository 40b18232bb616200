"""
Pytest configuration and fixtures.

Service and controller tests run against in-memory repositories that mirror
the public methods of the asyncpg repositories, and a fake pool whose
``transaction()`` restores the store when the block raises.
"""

from contextlib import asynccontextmanager
from copy import deepcopy
from datetime import date, datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from logistics_api.audit import AuditContext
from logistics_api.exceptions.driver import DriverAlreadyAssignedException
from logistics_api.exceptions.route import (
    RouteAlreadyExistsException,
    RouteNotFoundException,
)
from logistics_api.exceptions.vehicle import VehicleAlreadyAssignedException
from logistics_api.models.driver import DriverInDB
from logistics_api.models.enums import ASSIGNMENT_HOLDING_STATUSES, StopStatus, VehicleStatus
from logistics_api.models.route import RouteFilters, RouteInDB, RouteListItem
from logistics_api.models.route_history import RouteHistoryCreate, RouteHistoryInDB
from logistics_api.models.route_stop import RouteStopCreate, RouteStopInDB
from logistics_api.models.vehicle import VehicleInDB
from logistics_api.service.route import RouteService
from logistics_api.settings.routing import RoutingConfig

TODAY = date(2024, 1, 10)
PLANNED_DATE = date(2024, 1, 15)
SAO_PAULO = "POINT(-23.561414 -46.656250)"
RIO = "POINT(-22.906847 -43.172896)"

HOLDING_VALUES = {s.value for s in ASSIGNMENT_HOLDING_STATUSES}


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryStore:
    """Tables of the fake database."""

    def __init__(self) -> None:
        self.drivers: dict[UUID, dict[str, Any]] = {}
        self.vehicles: dict[UUID, dict[str, Any]] = {}
        self.routes: dict[UUID, dict[str, Any]] = {}
        self.stops: dict[UUID, list[dict[str, Any]]] = {}
        self.history: list[dict[str, Any]] = []
        self.locks: list[tuple[str, UUID]] = []

    def snapshot(self) -> dict[str, Any]:
        return deepcopy({k: v for k, v in self.__dict__.items() if k != "locks"})

    def restore(self, snapshot: dict[str, Any]) -> None:
        self.__dict__.update(deepcopy(snapshot))

    def live_routes(self) -> list[dict[str, Any]]:
        return [r for r in self.routes.values() if r["deleted_at"] is None]


class FakeConnection:
    def __init__(self, in_transaction: bool) -> None:
        self.in_transaction = in_transaction


class FakeDatabasePool:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self.transactions = 0
        self.rollbacks = 0

    @asynccontextmanager
    async def acquire(self):
        yield FakeConnection(in_transaction=False)

    @asynccontextmanager
    async def transaction(self):
        self.transactions += 1
        snapshot = self.store.snapshot()
        try:
            yield FakeConnection(in_transaction=True)
        except Exception:
            self.rollbacks += 1
            self.store.restore(snapshot)
            raise

    async def get_pool_stats(self) -> dict:
        return {"initialized": True, "size": 1, "free": 1}


class FakeDriverRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def get_driver_by_id(
        self, driver_id: UUID, connection=None, for_update: bool = False
    ) -> Optional[DriverInDB]:
        if for_update:
            self.store.locks.append(("driver", driver_id))
        row = self.store.drivers.get(driver_id)
        return DriverInDB(**row) if row else None


class FakeVehicleRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def get_vehicle_by_id(
        self, vehicle_id: UUID, connection=None, for_update: bool = False
    ) -> Optional[VehicleInDB]:
        if for_update:
            self.store.locks.append(("vehicle", vehicle_id))
        row = self.store.vehicles.get(vehicle_id)
        return VehicleInDB(**row) if row else None


class FakeRouteRepository:
    """Keeps the same uniqueness guarantees as the partial unique indexes."""

    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    def _check_indexes(self, row: dict[str, Any]) -> None:
        for other in self.store.live_routes():
            if other["id"] == row["id"]:
                continue
            if other["route_code"] == row["route_code"]:
                raise RouteAlreadyExistsException(route_code=row["route_code"])
            if row["status"] in HOLDING_VALUES and other["status"] in HOLDING_VALUES:
                if other["driver_id"] == row["driver_id"]:
                    raise DriverAlreadyAssignedException(driver_id=row["driver_id"])
                if other["vehicle_id"] == row["vehicle_id"]:
                    raise VehicleAlreadyAssignedException(vehicle_id=row["vehicle_id"])

    async def create_route(self, values: dict[str, Any], connection=None) -> RouteInDB:
        now = _now()
        row = {name: None for name in RouteInDB.model_fields}
        row.update(difficulty_level=1, created_at=now, updated_at=now, deleted_at=None)
        row.update(values)
        self._check_indexes(row)
        self.store.routes[row["id"]] = row
        return RouteInDB(**row)

    async def get_route_by_id(
        self, route_id: UUID, connection=None, for_update: bool = False
    ) -> RouteInDB:
        row = self.store.routes.get(route_id)
        if row is None or row["deleted_at"] is not None:
            raise RouteNotFoundException(route_id=route_id)
        return RouteInDB(**row)

    async def route_code_exists(
        self, route_code: str, exclude_route_id: Optional[UUID] = None, connection=None
    ) -> bool:
        return any(
            r["route_code"] == route_code and r["id"] != exclude_route_id
            for r in self.store.live_routes()
        )

    async def _find_active(self, column, value, exclude_route_id) -> Optional[RouteInDB]:
        for row in self.store.live_routes():
            if (
                row[column] == value
                and str(row["status"]) in HOLDING_VALUES
                and row["id"] != exclude_route_id
            ):
                return RouteInDB(**row)
        return None

    async def find_active_route_for_driver(
        self, driver_id: UUID, exclude_route_id: Optional[UUID] = None, connection=None
    ) -> Optional[RouteInDB]:
        return await self._find_active("driver_id", driver_id, exclude_route_id)

    async def find_active_route_for_vehicle(
        self, vehicle_id: UUID, exclude_route_id: Optional[UUID] = None, connection=None
    ) -> Optional[RouteInDB]:
        return await self._find_active("vehicle_id", vehicle_id, exclude_route_id)

    async def get_next_code_sequence(
        self, prefix: str, planned_date: date, connection=None
    ) -> int:
        code_prefix = f"{prefix}-{planned_date:%Y%m%d}-"
        sequences = [
            int(r["route_code"][len(code_prefix):])
            for r in self.store.routes.values()
            if r["route_code"].startswith(code_prefix)
        ]
        return max(sequences, default=0) + 1

    def _filtered(self, filters: Optional[RouteFilters]) -> list[dict[str, Any]]:
        filters = filters or RouteFilters()
        rows = self.store.live_routes()
        if filters.route_code:
            rows = [r for r in rows if r["route_code"] == filters.route_code.strip().upper()]
        if filters.status:
            rows = [r for r in rows if r["status"] == filters.status.value]
        if filters.type:
            rows = [r for r in rows if r["type"] == filters.type.value]
        if filters.driver_id:
            rows = [r for r in rows if r["driver_id"] == filters.driver_id]
        if filters.vehicle_id:
            rows = [r for r in rows if r["vehicle_id"] == filters.vehicle_id]
        if filters.planned_date_from:
            rows = [r for r in rows if r["planned_date"] >= filters.planned_date_from]
        if filters.planned_date_to:
            rows = [r for r in rows if r["planned_date"] <= filters.planned_date_to]
        if filters.search:
            needle = filters.search.strip().lower()
            rows = [r for r in rows if needle in r["name"].lower()]
        return sorted(rows, key=lambda r: (r["planned_date"], r["created_at"]), reverse=True)

    async def list_routes(
        self,
        filters: Optional[RouteFilters] = None,
        limit: int = 20,
        offset: int = 0,
        connection=None,
    ) -> list[RouteListItem]:
        rows = self._filtered(filters)[offset : offset + limit]
        return [RouteListItem(**r) for r in rows]

    async def count_routes(self, filters: Optional[RouteFilters] = None, connection=None) -> int:
        return len(self._filtered(filters))

    async def update_route(
        self, route_id: UUID, values: dict[str, Any], connection=None
    ) -> RouteInDB:
        row = self.store.routes.get(route_id)
        if row is None or row["deleted_at"] is not None:
            raise RouteNotFoundException(route_id=route_id)
        candidate = {**row, **values, "updated_at": _now()}
        self._check_indexes(candidate)
        row.update(candidate)
        return RouteInDB(**row)

    async def soft_delete_route(self, route_id: UUID, connection=None) -> None:
        row = self.store.routes.get(route_id)
        if row is None or row["deleted_at"] is not None:
            raise RouteNotFoundException(route_id=route_id)
        row["deleted_at"] = _now()


class FakeRouteStopRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def create_stops(
        self,
        route_id: UUID,
        stops: list[RouteStopCreate],
        distances: Optional[list[Optional[float]]] = None,
        connection=None,
    ) -> list[RouteStopInDB]:
        ordered = sorted(stops, key=lambda s: s.sequence_order)
        distances = distances or [None] * len(ordered)
        now = _now()
        rows = []
        for stop, distance in zip(ordered, distances):
            rows.append(
                {
                    **stop.model_dump(),
                    "id": uuid4(),
                    "route_id": route_id,
                    "status": StopStatus.PENDING,
                    "distance_from_previous_km": distance,
                    "created_at": now,
                    "updated_at": now,
                }
            )
        self.store.stops.setdefault(route_id, []).extend(rows)
        return [RouteStopInDB(**r) for r in rows]

    async def list_stops_by_route(self, route_id: UUID, connection=None) -> list[RouteStopInDB]:
        rows = sorted(self.store.stops.get(route_id, []), key=lambda r: r["sequence_order"])
        return [RouteStopInDB(**r) for r in rows]

    async def delete_stops_by_route(self, route_id: UUID, connection=None) -> int:
        return len(self.store.stops.pop(route_id, []))


class FakeRouteHistoryRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def create_entry(self, entry: RouteHistoryCreate, connection=None) -> RouteHistoryInDB:
        row = {**entry.model_dump(), "id": uuid4(), "created_at": _now()}
        self.store.history.append(row)
        return RouteHistoryInDB(**row)

    async def list_by_route(self, route_id: UUID, connection=None) -> list[RouteHistoryInDB]:
        return [RouteHistoryInDB(**r) for r in self.store.history if r["route_id"] == route_id]


@pytest.fixture(autouse=True)
def frozen_today(monkeypatch):
    """Pin the validator's notion of today so fixed planned dates stay in the future."""
    monkeypatch.setattr("logistics_api.service.route_validator.utc_today", lambda: TODAY)
    return TODAY


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def db_pool(store) -> FakeDatabasePool:
    return FakeDatabasePool(store)


@pytest.fixture
def driver_repository(store):
    return FakeDriverRepository(store)


@pytest.fixture
def vehicle_repository(store):
    return FakeVehicleRepository(store)


@pytest.fixture
def route_repository(store):
    return FakeRouteRepository(store)


@pytest.fixture
def stop_repository(store):
    return FakeRouteStopRepository(store)


@pytest.fixture
def history_repository(store):
    return FakeRouteHistoryRepository(store)


@pytest.fixture
def add_driver(store):
    def _add(is_active: bool = True, full_name: str = "João Silva") -> UUID:
        driver_id = uuid4()
        store.drivers[driver_id] = {
            "id": driver_id,
            "full_name": full_name,
            "is_active": is_active,
            "status": "available",
        }
        return driver_id

    return _add


@pytest.fixture
def add_vehicle(store):
    def _add(
        status: VehicleStatus = VehicleStatus.ACTIVE,
        load_capacity: Optional[float] = 1000.0,
        cargo_volume: Optional[float] = 20.0,
    ) -> UUID:
        vehicle_id = uuid4()
        store.vehicles[vehicle_id] = {
            "id": vehicle_id,
            "license_plate": f"ABC{len(store.vehicles):04d}",
            "status": status,
            "load_capacity": load_capacity,
            "cargo_volume": cargo_volume,
        }
        return vehicle_id

    return _add


@pytest.fixture
def driver_id(add_driver) -> UUID:
    return add_driver()


@pytest.fixture
def vehicle_id(add_vehicle) -> UUID:
    return add_vehicle()


@pytest.fixture
def route_service(
    db_pool,
    route_repository,
    stop_repository,
    history_repository,
    driver_repository,
    vehicle_repository,
) -> RouteService:
    return RouteService(
        db_pool,
        route_repository=route_repository,
        stop_repository=stop_repository,
        history_repository=history_repository,
        driver_repository=driver_repository,
        vehicle_repository=vehicle_repository,
        routing_config=RoutingConfig(),
    )


@pytest.fixture
def audit_context() -> AuditContext:
    return AuditContext(
        request_id="req-123",
        user_id="user-42",
        user_name="Maria Souza",
        user_type="user",
        ip_address="10.0.0.1",
        user_agent="pytest",
    )


@pytest.fixture
def route_payload(driver_id, vehicle_id):
    """Request body of the São Paulo to Rio de Janeiro route."""

    def _payload(**overrides) -> dict[str, Any]:
        payload = {
            "route_code": "RT-20240115-001",
            "name": "São Paulo - Rio",
            "driver_id": str(driver_id),
            "vehicle_id": str(vehicle_id),
            "type": "INTERSTATE",
            "origin_address": "Av. Paulista, 1000, São Paulo",
            "destination_address": "Av. Atlântica, 500, Rio de Janeiro",
            "origin_coordinates": SAO_PAULO,
            "destination_coordinates": RIO,
            "planned_date": PLANNED_DATE.isoformat(),
            "planned_start_time": "08:00:00",
            "planned_end_time": "18:00:00",
        }
        payload.update(overrides)
        return payload

    return _payload


@pytest_asyncio.fixture
async def client(route_service):
    """HTTP client against the app with the route service backed by the fakes."""
    from logistics_api.app import app
    from logistics_api.dependencies.route import get_route_service

    app.dependency_overrides[get_route_service] = lambda: route_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
