"""
Tests for the route service lifecycle against the in-memory repositories.
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from logistics_api.audit import AuditContext
from logistics_api.exceptions.driver import DriverAlreadyAssignedException
from logistics_api.exceptions.route import (
    InvalidStatusTransitionException,
    RouteAlreadyExistsException,
    RouteCapacityExceededException,
    RouteNotFoundException,
    RouteOperationException,
    RouteValidationException,
)
from logistics_api.exceptions.vehicle import VehicleAlreadyAssignedException
from logistics_api.models.enums import HistoryEventType, RouteStatus, StopStatus
from logistics_api.models.route import (
    RouteCancel,
    RouteComplete,
    RouteCreate,
    RouteFilters,
    RouteUpdate,
)
from tests.conftest import RIO, SAO_PAULO

CANCEL_REASON = "Vehicle breakdown on the highway"


@pytest.fixture
def create(route_service, route_payload, audit_context):
    async def _create(**overrides):
        return await route_service.create_route(
            RouteCreate(**route_payload(**overrides)), audit_context
        )

    return _create


class TestCreateRoute:
    async def test_creates_planned_route_with_estimates(self, create, store):
        route = await create()

        assert route.route_code == "RT-20240115-001"
        assert route.status == RouteStatus.PLANNED
        assert 350 < route.estimated_distance_km < 370
        assert route.estimated_duration_minutes > 0
        assert route.estimated_cost == pytest.approx(route.estimated_distance_km * 1.8, abs=0.01)
        assert route.fuel_consumption_estimate > 0
        assert route.max_vehicle_capacity_kg == 1000
        assert list(store.routes) == [route.id]

    async def test_writes_creation_history(self, create, store, audit_context):
        route = await create()

        assert len(store.history) == 1
        entry = store.history[0]
        assert entry["route_id"] == route.id
        assert entry["event_type"] == HistoryEventType.ROUTE_CREATED
        assert entry["new_status"] == RouteStatus.PLANNED
        assert entry["user_id"] == audit_context.user_id
        assert entry["metadata"]["request_id"] == "req-123"

    async def test_locks_driver_and_vehicle(self, create, store, driver_id, vehicle_id):
        await create()
        assert ("driver", driver_id) in store.locks
        assert ("vehicle", vehicle_id) in store.locks

    async def test_generates_route_code(self, create, add_driver, add_vehicle):
        first = await create(route_code=None)
        second = await create(
            route_code=None,
            driver_id=str(add_driver()),
            vehicle_id=str(add_vehicle()),
        )

        assert first.route_code == "RT-20240115-001"
        assert second.route_code == "RT-20240115-002"

    async def test_duplicate_code(self, create, add_driver, add_vehicle):
        await create()
        with pytest.raises(RouteAlreadyExistsException):
            await create(driver_id=str(add_driver()), vehicle_id=str(add_vehicle()))

    async def test_driver_conflict(self, create, add_vehicle, store):
        await create()

        with pytest.raises(DriverAlreadyAssignedException) as exc_info:
            await create(route_code="RT-20240115-002", vehicle_id=str(add_vehicle()))

        assert "RT-20240115-001" in exc_info.value.message
        assert len(store.routes) == 1

    async def test_vehicle_conflict(self, create, add_driver):
        await create()
        with pytest.raises(VehicleAlreadyAssignedException):
            await create(route_code="RT-20240115-002", driver_id=str(add_driver()))

    async def test_capacity_failure_persists_nothing(self, create, store, db_pool):
        with pytest.raises(RouteCapacityExceededException):
            await create(total_load_kg=1500)

        assert store.routes == {}
        assert store.history == []
        assert db_pool.rollbacks == 1

    async def test_past_date_is_rejected(self, create):
        with pytest.raises(RouteValidationException):
            await create(planned_date="2024-01-09", route_code="RT-20240109-001")

    async def test_explicit_estimates_win(self, create):
        route = await create(estimated_distance_km=400, estimated_duration_minutes=300)
        assert route.estimated_distance_km == 400
        assert route.estimated_duration_minutes == 300
        assert route.estimated_cost == 720.0

    async def test_without_coordinates_estimates_stay_empty(self, create):
        route = await create(origin_coordinates=None, destination_coordinates=None)
        assert route.estimated_distance_km is None
        assert route.estimated_cost is None

    async def test_malformed_origin_counts_as_zero_distance(self, create, store):
        route = await create(origin_coordinates="POINT(-23.56,-46.65)")

        assert route.status == RouteStatus.PLANNED
        assert route.origin_coordinates == "POINT(-23.56,-46.65)"
        assert route.estimated_distance_km == 0
        assert route.estimated_cost == 0
        assert list(store.routes) == [route.id]

    async def test_stops_are_stored_in_order(self, create, route_service):
        campinas = "POINT(-22.905560 -47.060830)"
        stops = [
            {
                "customer_address_id": str(uuid4()),
                "sequence_order": 2,
                "address": "Rua Dois, Rio de Janeiro",
            },
            {
                "customer_address_id": str(uuid4()),
                "sequence_order": 1,
                "address": "Rua Um, Campinas",
                "coordinates": campinas,
            },
        ]
        route = await create(stops=stops)

        assert [s.sequence_order for s in route.stops] == [1, 2]
        assert route.stops[0].status == StopStatus.PENDING
        assert route.stops[0].distance_from_previous_km > 0
        assert route.stops[1].distance_from_previous_km is None

        stored = await route_service.get_route_stops(route.id)
        assert [s.address for s in stored] == ["Rua Um, Campinas", "Rua Dois, Rio de Janeiro"]


class TestLifecycle:
    async def test_create_then_cancel(self, create, route_service, audit_context):
        route = await create()

        cancelled = await route_service.cancel_route(
            route.id, RouteCancel(reason=f"  {CANCEL_REASON}  "), audit_context
        )

        assert cancelled.status == RouteStatus.CANCELLED
        assert cancelled.cancellation_reason == CANCEL_REASON
        assert cancelled.cancelled_at is not None

        history = await route_service.get_route_history(route.id)
        assert [h.event_type for h in history] == [
            HistoryEventType.ROUTE_CREATED,
            HistoryEventType.STATUS_CHANGED,
        ]
        assert history[1].previous_status == RouteStatus.PLANNED
        assert history[1].new_status == RouteStatus.CANCELLED
        assert history[1].metadata.reason == CANCEL_REASON

    async def test_cancelled_route_releases_driver(self, create, route_service, audit_context):
        route = await create()
        await route_service.cancel_route(route.id, RouteCancel(reason=CANCEL_REASON), audit_context)

        again = await create(route_code="RT-20240115-002")
        assert again.status == RouteStatus.PLANNED

    async def test_start_twice(self, create, route_service, audit_context):
        route = await create()
        started = await route_service.start_route(route.id, audit_context)
        assert started.status == RouteStatus.IN_PROGRESS
        assert started.actual_start_time is not None

        with pytest.raises(InvalidStatusTransitionException) as exc_info:
            await route_service.start_route(route.id, audit_context)
        assert exc_info.value.current_status == "IN_PROGRESS"

    async def test_pause_and_resume_keep_start_time(self, create, route_service, audit_context):
        route = await create()
        started = await route_service.start_route(route.id, audit_context)

        paused = await route_service.pause_route(route.id, audit_context)
        assert paused.status == RouteStatus.PAUSED

        resumed = await route_service.resume_route(route.id, audit_context)
        assert resumed.status == RouteStatus.IN_PROGRESS
        assert resumed.actual_start_time == started.actual_start_time

    async def test_cannot_complete_planned_route(self, create, route_service, audit_context):
        route = await create()
        with pytest.raises(InvalidStatusTransitionException):
            await route_service.complete_route(route.id, audit_context)

    async def test_complete_sets_duration(self, create, route_service, audit_context, store):
        route = await create()
        await route_service.start_route(route.id, audit_context)
        store.routes[route.id]["actual_start_time"] = datetime.now(timezone.utc) - timedelta(
            minutes=90, seconds=10
        )

        completed = await route_service.complete_route(
            route.id,
            audit_context,
            RouteComplete(actual_distance_km=365.4, notes="Delivered"),
        )

        assert completed.status == RouteStatus.COMPLETED
        assert completed.actual_end_time is not None
        assert completed.actual_duration_minutes == 90
        assert completed.actual_distance_km == 365.4
        assert completed.notes == "Delivered"
        assert completed.is_delayed is False

    async def test_completed_route_cannot_be_cancelled(self, create, route_service, audit_context):
        route = await create()
        await route_service.start_route(route.id, audit_context)
        await route_service.complete_route(route.id, audit_context)

        with pytest.raises(InvalidStatusTransitionException):
            await route_service.cancel_route(
                route.id, RouteCancel(reason=CANCEL_REASON), audit_context
            )

    @pytest.mark.parametrize("reason", ["", "   ", "too short", " " * 5 + "x" * 9 + " " * 5])
    async def test_short_cancel_reason(self, create, route_service, audit_context, store, reason):
        route = await create()

        with pytest.raises(RouteValidationException) as exc_info:
            await route_service.cancel_route(route.id, RouteCancel(reason=reason), audit_context)

        assert exc_info.value.field == "reason"
        assert store.routes[route.id]["status"] == "PLANNED"
        assert len(store.history) == 1

    async def test_long_cancel_reason(self, create, route_service, audit_context):
        route = await create()
        with pytest.raises(RouteValidationException):
            await route_service.cancel_route(route.id, RouteCancel(reason="x" * 501), audit_context)

    async def test_unknown_route(self, route_service, audit_context):
        with pytest.raises(RouteNotFoundException):
            await route_service.start_route(uuid4(), audit_context)


class TestUpdateRoute:
    async def test_update_records_changed_fields(self, create, route_service, audit_context, store):
        route = await create()

        updated = await route_service.update_route(
            route.id, RouteUpdate(name="São Paulo - Rio (expresso)", difficulty_level=3), audit_context
        )

        assert updated.name == "São Paulo - Rio (expresso)"
        assert updated.difficulty_level == 3
        entry = store.history[-1]
        assert entry["event_type"] == HistoryEventType.ROUTE_UPDATED
        assert {c["field_name"] for c in entry["changed_fields"]} == {"name", "difficulty_level"}

    async def test_noop_update_writes_nothing(self, create, route_service, audit_context, store):
        route = await create()
        before = dict(store.routes[route.id])

        result = await route_service.update_route(
            route.id, RouteUpdate(name=route.name, difficulty_level=1), audit_context
        )

        assert result.id == route.id
        assert len(store.history) == 1
        assert store.routes[route.id]["updated_at"] == before["updated_at"]

    async def test_null_for_required_field_is_ignored(self, create, route_service, audit_context):
        route = await create()
        result = await route_service.update_route(route.id, RouteUpdate(name=None), audit_context)
        assert result.name == route.name

    async def test_changing_coordinates_recomputes_estimates(
        self, create, route_service, audit_context
    ):
        route = await create()
        updated = await route_service.update_route(
            route.id, RouteUpdate(destination_coordinates=SAO_PAULO, origin_coordinates=RIO), audit_context
        )
        assert updated.estimated_distance_km == pytest.approx(route.estimated_distance_km)

        shorter = await route_service.update_route(
            route.id, RouteUpdate(destination_coordinates="POINT(-22.950000 -43.200000)"), audit_context
        )
        assert shorter.estimated_distance_km < route.estimated_distance_km

    async def test_in_progress_route_cannot_be_edited(self, create, route_service, audit_context):
        route = await create()
        await route_service.start_route(route.id, audit_context)

        with pytest.raises(RouteOperationException):
            await route_service.update_route(route.id, RouteUpdate(name="Outro nome"), audit_context)

    async def test_reassigning_to_busy_driver(
        self, create, route_service, audit_context, add_driver, add_vehicle
    ):
        other_driver = add_driver()
        await create(
            route_code="RT-20240115-009",
            driver_id=str(other_driver),
            vehicle_id=str(add_vehicle()),
        )
        route = await create()

        with pytest.raises(DriverAlreadyAssignedException):
            await route_service.update_route(
                route.id, RouteUpdate(driver_id=other_driver), audit_context
            )

    async def test_new_vehicle_capacity_is_checked(
        self, create, route_service, audit_context, add_vehicle
    ):
        route = await create(total_load_kg=800)
        small_van = add_vehicle(load_capacity=500)

        with pytest.raises(RouteCapacityExceededException):
            await route_service.update_route(
                route.id, RouteUpdate(vehicle_id=small_van), audit_context
            )

    async def test_replacing_stops(self, create, route_service, audit_context, store):
        route = await create(
            stops=[
                {"customer_address_id": str(uuid4()), "sequence_order": 1, "address": "Rua Um, Centro"}
            ]
        )
        new_stops = [
            {"customer_address_id": str(uuid4()), "sequence_order": i, "address": f"Rua {i}, Centro"}
            for i in (1, 2)
        ]

        updated = await route_service.update_route(
            route.id, RouteUpdate(stops=new_stops), audit_context
        )

        assert len(updated.stops) == 2
        changed = store.history[-1]["changed_fields"]
        assert {"field_name": "stops", "old_value": 1, "new_value": 2} in changed

    async def test_empty_stops_on_stopless_route_writes_nothing(
        self, create, route_service, audit_context, store
    ):
        route = await create()
        before = dict(store.routes[route.id])

        await route_service.update_route(route.id, RouteUpdate(stops=[]), audit_context)

        assert [e["event_type"] for e in store.history] == [HistoryEventType.ROUTE_CREATED]
        assert store.routes[route.id]["updated_at"] == before["updated_at"]

    async def test_resending_same_stops_keeps_them(
        self, create, route_service, audit_context, store
    ):
        stops = [
            {"customer_address_id": str(uuid4()), "sequence_order": i, "address": f"Rua {i}, Centro"}
            for i in (2, 1)
        ]
        route = await create(stops=stops)
        stop_ids = [s["id"] for s in store.stops[route.id]]

        updated = await route_service.update_route(
            route.id, RouteUpdate(stops=stops), audit_context
        )

        assert [s.id for s in updated.stops] == stop_ids
        assert len(store.history) == 1


class TestDeleteRoute:
    async def test_soft_delete(self, create, route_service, audit_context, store):
        route = await create()

        await route_service.delete_route(route.id, audit_context, reason="Duplicated")

        assert store.routes[route.id]["deleted_at"] is not None
        assert store.history[-1]["event_type"] == HistoryEventType.ROUTE_DELETED
        assert store.history[-1]["metadata"]["reason"] == "Duplicated"
        with pytest.raises(RouteNotFoundException):
            await route_service.get_route(route.id)

    async def test_in_progress_route_is_kept(self, create, route_service, audit_context, store):
        route = await create()
        await route_service.start_route(route.id, audit_context)

        with pytest.raises(RouteOperationException) as exc_info:
            await route_service.delete_route(route.id, audit_context)

        assert exc_info.value.operation == "delete"
        assert store.routes[route.id]["deleted_at"] is None

    async def test_deleted_code_still_counts_for_generation(
        self, create, route_service, audit_context
    ):
        route = await create()
        await route_service.delete_route(route.id, audit_context)

        generated = await create(route_code=None)
        assert generated.route_code == "RT-20240115-002"


class TestListRoutes:
    async def test_filters_and_total(self, create, route_service, audit_context, add_driver, add_vehicle):
        first = await create()
        await create(
            route_code="RT-20240115-002",
            driver_id=str(add_driver()),
            vehicle_id=str(add_vehicle()),
            name="Campinas - Santos",
        )
        await route_service.start_route(first.id, audit_context)

        items, total = await route_service.list_routes(RouteFilters(status=RouteStatus.IN_PROGRESS))
        assert total == 1
        assert items[0].id == first.id

        items, total = await route_service.list_routes(RouteFilters(search="santos"))
        assert total == 1
        assert items[0].route_code == "RT-20240115-002"

    async def test_pagination(self, create, route_service, add_driver, add_vehicle):
        for i in range(1, 4):
            await create(
                route_code=f"RT-20240115-00{i}",
                driver_id=str(add_driver()),
                vehicle_id=str(add_vehicle()),
            )

        items, total = await route_service.list_routes(limit=2, offset=2)
        assert total == 3
        assert len(items) == 1

    async def test_past_planned_routes_are_delayed(self, create, route_service):
        await create()
        items, _ = await route_service.list_routes()
        # planned for 2024, long gone by the wall clock
        assert items[0].is_delayed is True

    @pytest.mark.parametrize("limit,offset", [(0, 0), (101, 0), (10, -1)])
    async def test_invalid_pagination(self, route_service, limit, offset):
        with pytest.raises(RouteValidationException):
            await route_service.list_routes(limit=limit, offset=offset)


async def test_system_context_is_recorded(create, route_service, store):
    route = await create()
    await route_service.start_route(route.id, AuditContext.system())

    entry = store.history[-1]
    assert entry["user_type"] == "system"
    assert entry["user_id"] is None
    assert entry["metadata"]["source"] == "system"
