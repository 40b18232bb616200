"""
Service layer for Route entity operations.

This service owns the route lifecycle: it validates assignments, estimates
distance and duration, persists routes and their stops, walks the status
state machine and writes one history entry per mutation. Every mutation runs
inside a single database transaction so that a failed check persists nothing.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional
from uuid import UUID

import structlog
from uuid_utils.compat import uuid7

from logistics_api.audit import AuditContext, AuditOptions, compute_changed_fields
from logistics_api.database import DatabasePool
from logistics_api.exceptions.app import AppException
from logistics_api.exceptions.route import (
    InvalidStatusTransitionException,
    RouteOperationException,
    RouteValidationException,
)
from logistics_api.models.enums import FINAL_STATUSES, HistoryEventType, RouteStatus, RouteType
from logistics_api.models.route import (
    RouteCancel,
    RouteComplete,
    RouteCreate,
    RouteFilters,
    RouteInDB,
    RouteListItem,
    RouteResponse,
    RouteUpdate,
    planned_end_instant,
)
from logistics_api.models.route_history import (
    ChangedField,
    RouteHistoryCreate,
    RouteHistoryResponse,
)
from logistics_api.models.route_stop import RouteStopCreate, RouteStopResponse
from logistics_api.models.vehicle import VehicleInDB
from logistics_api.repository.driver import DriverRepository
from logistics_api.repository.route import RouteRepository
from logistics_api.repository.route_history import RouteHistoryRepository
from logistics_api.repository.route_stop import RouteStopRepository
from logistics_api.repository.vehicle import VehicleRepository
from logistics_api.service.hooks import RouteLifecycleHooks
from logistics_api.service.route_validator import RouteValidator
from logistics_api.settings.routing import RoutingConfig
from logistics_api.utils.coordinates import format_route_code
from logistics_api.utils.distance import DistanceCalculator

logger = structlog.get_logger(__name__)

# Columns that cannot be cleared through an update; a null value is ignored.
NON_NULLABLE_UPDATE_FIELDS = frozenset(
    {
        "route_code",
        "name",
        "driver_id",
        "vehicle_id",
        "type",
        "origin_address",
        "destination_address",
        "planned_date",
        "difficulty_level",
    }
)

ESTIMATE_INPUT_FIELDS = frozenset(
    {"origin_coordinates", "destination_coordinates", "type", "estimated_distance_km"}
)


def _stop_payloads(stops: list[Any]) -> list[dict[str, Any]]:
    """Caller supplied stop fields in sequence order, for comparing stop lists."""
    fields = set(RouteStopCreate.model_fields)
    return [
        s.model_dump(include=fields)
        for s in sorted(stops, key=lambda s: s.sequence_order)
    ]


def _db_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class RouteService:
    """
    Service for managing Route business logic.

    Collaborators are injectable so that tests can swap the repositories,
    the estimator or the hooks without touching a database.
    """

    def __init__(
        self,
        db_pool: DatabasePool,
        route_repository: Optional[RouteRepository] = None,
        stop_repository: Optional[RouteStopRepository] = None,
        history_repository: Optional[RouteHistoryRepository] = None,
        driver_repository: Optional[DriverRepository] = None,
        vehicle_repository: Optional[VehicleRepository] = None,
        calculator: Optional[DistanceCalculator] = None,
        audit_options: AuditOptions = AuditOptions(),
        hooks: Optional[RouteLifecycleHooks] = None,
        routing_config: Optional[RoutingConfig] = None,
    ) -> None:
        """
        Initialize the RouteService.

        Args:
            db_pool: Database pool instance for connection management
            route_repository: Route repository, built from the pool when omitted
            stop_repository: Route stop repository
            history_repository: Route history repository
            driver_repository: Driver repository
            vehicle_repository: Vehicle repository
            calculator: Distance and duration estimator
            audit_options: Which events are written to history
            hooks: Lifecycle hooks called after writes
            routing_config: Business tunables (code prefix, limits, fuel price)
        """
        self.db_pool = db_pool
        self.config = routing_config or RoutingConfig()
        self.route_repository = route_repository or RouteRepository(db_pool)
        self.stop_repository = stop_repository or RouteStopRepository(db_pool)
        self.history_repository = history_repository or RouteHistoryRepository(db_pool)
        self.driver_repository = driver_repository or DriverRepository(db_pool)
        self.vehicle_repository = vehicle_repository or VehicleRepository(db_pool)
        self.calculator = calculator or DistanceCalculator(
            fuel_price_per_liter=self.config.FUEL_PRICE_PER_LITER
        )
        self.audit_options = audit_options
        self.hooks = hooks or RouteLifecycleHooks()
        self.validator = RouteValidator(
            route_repository=self.route_repository,
            driver_repository=self.driver_repository,
            vehicle_repository=self.vehicle_repository,
            max_stops=self.config.MAX_STOPS,
        )

    def _stop_leg_distances(
        self, origin: Optional[str], stops: list[RouteStopCreate]
    ) -> list[Optional[float]]:
        """Distance of each stop from the previous located point, None when unknown."""
        distances: list[Optional[float]] = []
        previous = origin
        for stop in sorted(stops, key=lambda s: s.sequence_order):
            if stop.coordinates and previous:
                distances.append(self.calculator.calculate_distance(previous, stop.coordinates))
            else:
                distances.append(None)
            if stop.coordinates:
                previous = stop.coordinates
        return distances

    def _compute_estimates(
        self,
        route_type: RouteType,
        origin: Optional[str],
        destination: Optional[str],
        stops: list[Any],
        distance_override: Optional[float] = None,
        duration_override: Optional[int] = None,
    ) -> dict[str, Any]:
        """
        Estimate distance, duration, cost and fuel for a route.

        The distance runs origin -> located stops in sequence -> destination.
        Explicit overrides win over the computed values; without any located
        pair of points and no override the estimates stay empty.
        """
        points = [origin] if origin else []
        points.extend(
            s.coordinates for s in sorted(stops, key=lambda s: s.sequence_order) if s.coordinates
        )
        if destination:
            points.append(destination)

        distance = distance_override
        if distance is None and len(points) >= 2:
            distance = self.calculator.calculate_total_distance(points)

        if distance is None:
            return {
                "estimated_distance_km": None,
                "estimated_duration_minutes": duration_override,
                "estimated_cost": None,
                "fuel_consumption_estimate": None,
                "fuel_cost_estimate": None,
            }

        metrics = self.calculator.calculate_metrics_by_type(
            distance, route_type, stop_count=len(stops)
        )
        return {
            "estimated_distance_km": metrics.distance_km,
            "estimated_duration_minutes": (
                duration_override if duration_override is not None else metrics.duration_minutes
            ),
            "estimated_cost": metrics.estimated_cost,
            "fuel_consumption_estimate": metrics.fuel_consumption_liters,
            "fuel_cost_estimate": metrics.fuel_cost,
        }

    async def _generate_route_code(self, planned_date: date, connection) -> str:
        prefix = self.config.ROUTE_CODE_PREFIX
        sequence = await self.route_repository.get_next_code_sequence(
            prefix, planned_date, connection=connection
        )
        return format_route_code(planned_date, sequence, prefix=prefix)

    async def _write_history(
        self,
        route_id: UUID,
        event_type: HistoryEventType,
        description: str,
        context: AuditContext,
        connection,
        previous_status: Optional[RouteStatus] = None,
        new_status: Optional[RouteStatus] = None,
        changed_fields: Optional[list[ChangedField]] = None,
        reason: Optional[str] = None,
    ) -> None:
        await self.history_repository.create_entry(
            RouteHistoryCreate(
                route_id=route_id,
                event_type=event_type,
                description=description,
                previous_status=previous_status,
                new_status=new_status,
                changed_fields=changed_fields or None,
                metadata=context.metadata(reason),
                **context.actor_fields(),
            ),
            connection=connection,
        )

    async def create_route(self, route_data: RouteCreate, context: AuditContext) -> RouteResponse:
        """
        Create a new PLANNED route with its stops.

        Args:
            route_data: Route data to create
            context: Who is creating the route

        Returns:
            Created route

        Raises:
            RouteAlreadyExistsException: If the route code is already in use
            DriverNotFoundException: If the driver does not exist
            DriverInactiveException: If the driver is inactive
            DriverAlreadyAssignedException: If the driver holds another active route
            VehicleNotFoundException: If the vehicle does not exist
            VehicleUnavailableException: If the vehicle cannot be assigned
            VehicleAlreadyAssignedException: If the vehicle holds another active route
            RouteValidationException: If dates or stops are invalid
            RouteCapacityExceededException: If load or volume exceeds the vehicle capacity
        """
        try:
            logger.info(
                "Creating route",
                route_name=route_data.name,
                route_code=route_data.route_code,
                driver_id=str(route_data.driver_id),
                vehicle_id=str(route_data.vehicle_id),
                request_id=context.request_id,
            )

            async with self.db_pool.transaction() as conn:
                route_code = route_data.route_code or await self._generate_route_code(
                    route_data.planned_date, conn
                )
                await self.validator.validate_unique_route_code(route_code, connection=conn)

                driver = await self.validator.validate_driver_exists(
                    route_data.driver_id, connection=conn
                )
                await self.validator.validate_driver_assignment(
                    driver.id, route_data.planned_date, connection=conn
                )

                vehicle = await self.validator.validate_vehicle_exists(
                    route_data.vehicle_id, connection=conn
                )
                await self.validator.validate_vehicle_assignment(
                    vehicle.id, route_data.planned_date, connection=conn, vehicle=vehicle
                )

                self.validator.validate_route_dates(
                    route_data.planned_date,
                    route_data.planned_start_time,
                    route_data.planned_end_time,
                )

                if route_data.total_load_kg is not None or route_data.total_volume_m3 is not None:
                    await self.validator.validate_route_capacity(
                        vehicle.id,
                        route_data.total_load_kg,
                        route_data.total_volume_m3,
                        connection=conn,
                        vehicle=vehicle,
                    )

                self.validator.validate_stops(route_data.stops)

                estimates = self._compute_estimates(
                    route_data.type,
                    route_data.origin_coordinates,
                    route_data.destination_coordinates,
                    route_data.stops,
                    distance_override=route_data.estimated_distance_km,
                    duration_override=route_data.estimated_duration_minutes,
                )

                values = {
                    "id": uuid7(),
                    "route_code": route_code,
                    "name": route_data.name,
                    "description": route_data.description,
                    "driver_id": driver.id,
                    "vehicle_id": vehicle.id,
                    "status": RouteStatus.PLANNED.value,
                    "type": route_data.type.value,
                    "origin_address": route_data.origin_address,
                    "destination_address": route_data.destination_address,
                    "origin_coordinates": route_data.origin_coordinates,
                    "destination_coordinates": route_data.destination_coordinates,
                    "planned_date": route_data.planned_date,
                    "planned_start_time": route_data.planned_start_time,
                    "planned_end_time": route_data.planned_end_time,
                    "total_load_kg": route_data.total_load_kg,
                    "total_volume_m3": route_data.total_volume_m3,
                    "max_vehicle_capacity_kg": vehicle.load_capacity,
                    "max_vehicle_volume_m3": vehicle.cargo_volume,
                    "difficulty_level": route_data.difficulty_level,
                    "notes": route_data.notes,
                    **estimates,
                }
                route = await self.route_repository.create_route(values, connection=conn)

                stops = []
                if route_data.stops:
                    stops = await self.stop_repository.create_stops(
                        route.id,
                        route_data.stops,
                        distances=self._stop_leg_distances(
                            route_data.origin_coordinates, route_data.stops
                        ),
                        connection=conn,
                    )

                if self.audit_options.track_creation:
                    await self._write_history(
                        route.id,
                        HistoryEventType.ROUTE_CREATED,
                        f"{self.audit_options.entity_display_name} {route.route_code} created",
                        context,
                        conn,
                        new_status=RouteStatus.PLANNED,
                    )

            await self.hooks.after_insert(route, context)

            logger.info(
                "Route created successfully",
                route_id=str(route.id),
                route_code=route.route_code,
                stop_count=len(stops),
            )

            return RouteResponse.from_route(
                route, [RouteStopResponse(**s.model_dump()) for s in stops]
            )

        except AppException:
            raise
        except Exception as e:
            logger.error(
                "Failed to create route in service",
                route_name=route_data.name,
                error=str(e),
            )
            raise

    async def get_route(self, route_id: UUID) -> RouteResponse:
        """
        Get a route with its stops and derived metrics.

        Raises:
            RouteNotFoundException: If route not found
        """
        async with self.db_pool.acquire() as conn:
            route = await self.route_repository.get_route_by_id(route_id, connection=conn)
            stops = await self.stop_repository.list_stops_by_route(route_id, connection=conn)
        return RouteResponse.from_route(route, [RouteStopResponse(**s.model_dump()) for s in stops])

    async def list_routes(
        self,
        filters: Optional[RouteFilters] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> tuple[list[RouteListItem], int]:
        """
        List routes with pagination.

        Args:
            filters: Route filters
            limit: Page size, defaults to the configured page limit
            offset: Number of routes to skip

        Returns:
            Tuple of (routes on the page, total matching routes)

        Raises:
            RouteValidationException: If pagination parameters are out of range
        """
        limit = self.config.DEFAULT_PAGE_LIMIT if limit is None else limit
        if limit < 1 or limit > self.config.MAX_PAGE_LIMIT:
            raise RouteValidationException(
                message=f"Limit must be between 1 and {self.config.MAX_PAGE_LIMIT}",
                field="limit",
                value=limit,
            )
        if offset < 0:
            raise RouteValidationException(
                message="Offset cannot be negative",
                field="offset",
                value=offset,
            )

        async with self.db_pool.acquire() as conn:
            items = await self.route_repository.list_routes(
                filters, limit=limit, offset=offset, connection=conn
            )
            total = await self.route_repository.count_routes(filters, connection=conn)

        now = datetime.now(timezone.utc)
        items = [
            item.model_copy(
                update={
                    "is_delayed": item.status not in FINAL_STATUSES
                    and now > planned_end_instant(item.planned_date, item.planned_end_time)
                }
            )
            for item in items
        ]

        logger.debug(
            "Listed routes",
            count=len(items),
            total=total,
            limit=limit,
            offset=offset,
        )
        return items, total

    async def update_route(
        self, route_id: UUID, route_data: RouteUpdate, context: AuditContext
    ) -> RouteResponse:
        """
        Update a PLANNED route.

        Only the fields present in the request are considered; values equal to
        the stored ones are ignored. When nothing changes no write and no
        history entry happen.

        Args:
            route_id: ID of the route to update
            route_data: Fields to change
            context: Who is updating the route

        Returns:
            Updated route

        Raises:
            RouteNotFoundException: If route not found
            RouteOperationException: If the route can no longer be edited
        """
        try:
            logger.info(
                "Updating route",
                route_id=str(route_id),
                fields=sorted(route_data.model_fields_set),
                request_id=context.request_id,
            )

            async with self.db_pool.transaction() as conn:
                current = await self.route_repository.get_route_by_id(
                    route_id, connection=conn, for_update=True
                )
                if not current.can_be_edited():
                    raise RouteOperationException(
                        message=(
                            f"Route {current.route_code} cannot be edited "
                            f"in status {current.status.value}"
                        ),
                        operation="update",
                    )

                updates = route_data.model_dump(exclude_unset=True, exclude={"stops"})
                for name in NON_NULLABLE_UPDATE_FIELDS:
                    if name in updates and updates[name] is None:
                        updates.pop(name)

                new_stops = route_data.stops if "stops" in route_data.model_fields_set else None
                updates = await self._validate_update(current, updates, new_stops, conn)

                current_stops = await self.stop_repository.list_stops_by_route(
                    route_id, connection=conn
                )
                if new_stops is not None and _stop_payloads(new_stops) == _stop_payloads(
                    current_stops
                ):
                    new_stops = None
                if new_stops is not None or ESTIMATE_INPUT_FIELDS & updates.keys():
                    updates.update(
                        self._recompute_estimates(
                            current,
                            updates,
                            new_stops if new_stops is not None else current_stops,
                            explicit=route_data.model_fields_set,
                        )
                    )

                changed = compute_changed_fields(current, updates, self.audit_options)
                if new_stops is not None:
                    changed.append(
                        ChangedField(
                            field_name="stops",
                            old_value=len(current_stops),
                            new_value=len(new_stops),
                        )
                    )

                if not changed:
                    logger.info("Route update is a no-op", route_id=str(route_id))
                    return RouteResponse.from_route(
                        current, [RouteStopResponse(**s.model_dump()) for s in current_stops]
                    )

                changed_names = {c.field_name for c in changed}
                values = {k: _db_value(v) for k, v in updates.items() if k in changed_names}
                route = await self.route_repository.update_route(route_id, values, connection=conn)

                stops = current_stops
                if new_stops is not None:
                    await self.stop_repository.delete_stops_by_route(route_id, connection=conn)
                    stops = await self.stop_repository.create_stops(
                        route_id,
                        new_stops,
                        distances=self._stop_leg_distances(route.origin_coordinates, new_stops),
                        connection=conn,
                    )

                if self.audit_options.track_updates:
                    await self._write_history(
                        route_id,
                        HistoryEventType.ROUTE_UPDATED,
                        f"{self.audit_options.entity_display_name} {route.route_code} updated",
                        context,
                        conn,
                        changed_fields=changed,
                    )

            await self.hooks.after_update(current, route, context)

            logger.info(
                "Route updated successfully",
                route_id=str(route_id),
                changed_fields=sorted(changed_names),
            )

            return RouteResponse.from_route(
                route, [RouteStopResponse(**s.model_dump()) for s in stops]
            )

        except AppException:
            raise
        except Exception as e:
            logger.error(
                "Failed to update route in service",
                route_id=str(route_id),
                error=str(e),
            )
            raise

    async def _validate_update(
        self,
        current: RouteInDB,
        updates: dict[str, Any],
        new_stops: Optional[list[RouteStopCreate]],
        conn,
    ) -> dict[str, Any]:
        """Re-run the checks affected by the requested changes."""
        route_id = current.id

        code = updates.get("route_code")
        if code is not None and code != current.route_code:
            await self.validator.validate_unique_route_code(
                code, exclude_route_id=route_id, connection=conn
            )

        planned_date = updates.get("planned_date", current.planned_date)

        driver_id = updates.get("driver_id")
        if driver_id is not None and driver_id != current.driver_id:
            await self.validator.validate_driver_exists(driver_id, connection=conn)
            await self.validator.validate_driver_assignment(
                driver_id, planned_date, exclude_route_id=route_id, connection=conn
            )

        vehicle: Optional[VehicleInDB] = None
        vehicle_id = updates.get("vehicle_id")
        if vehicle_id is not None and vehicle_id != current.vehicle_id:
            vehicle = await self.validator.validate_vehicle_exists(vehicle_id, connection=conn)
            await self.validator.validate_vehicle_assignment(
                vehicle_id,
                planned_date,
                exclude_route_id=route_id,
                connection=conn,
                vehicle=vehicle,
            )
            updates["max_vehicle_capacity_kg"] = vehicle.load_capacity
            updates["max_vehicle_volume_m3"] = vehicle.cargo_volume

        if {"planned_date", "planned_start_time", "planned_end_time"} & updates.keys():
            self.validator.validate_route_dates(
                planned_date,
                updates.get("planned_start_time", current.planned_start_time),
                updates.get("planned_end_time", current.planned_end_time),
            )

        if vehicle is not None or {"total_load_kg", "total_volume_m3"} & updates.keys():
            load = updates.get("total_load_kg", current.total_load_kg)
            volume = updates.get("total_volume_m3", current.total_volume_m3)
            if load is not None or volume is not None:
                await self.validator.validate_route_capacity(
                    vehicle_id or current.vehicle_id,
                    load,
                    volume,
                    connection=conn,
                    vehicle=vehicle,
                )

        if new_stops is not None:
            self.validator.validate_stops(new_stops)

        return updates

    def _recompute_estimates(
        self,
        current: RouteInDB,
        updates: dict[str, Any],
        stops: list[Any],
        explicit: set[str],
    ) -> dict[str, Any]:
        """Fresh estimates for the updated route; explicit values in the request win."""
        estimates = self._compute_estimates(
            RouteType(updates.get("type", current.type)),
            updates.get("origin_coordinates", current.origin_coordinates),
            updates.get("destination_coordinates", current.destination_coordinates),
            stops,
            distance_override=updates.get("estimated_distance_km"),
            duration_override=updates.get("estimated_duration_minutes"),
        )
        if estimates["estimated_distance_km"] is None and "estimated_distance_km" not in explicit:
            # no located points left; keep whatever was stored
            return {}
        return estimates

    async def delete_route(
        self, route_id: UUID, context: AuditContext, reason: Optional[str] = None
    ) -> None:
        """
        Soft delete a route.

        Args:
            route_id: ID of the route to delete
            context: Who is deleting the route
            reason: Optional reason recorded in the history metadata

        Raises:
            RouteNotFoundException: If route not found
            RouteOperationException: If the route is in progress
        """
        try:
            logger.info(
                "Deleting route",
                route_id=str(route_id),
                request_id=context.request_id,
            )

            async with self.db_pool.transaction() as conn:
                route = await self.route_repository.get_route_by_id(
                    route_id, connection=conn, for_update=True
                )
                if route.status == RouteStatus.IN_PROGRESS:
                    raise RouteOperationException(
                        message=f"Route {route.route_code} is in progress and cannot be deleted",
                        operation="delete",
                    )

                await self.hooks.before_soft_delete(route, context, reason)
                await self.route_repository.soft_delete_route(route_id, connection=conn)

                if self.audit_options.track_deletion:
                    await self._write_history(
                        route_id,
                        HistoryEventType.ROUTE_DELETED,
                        f"{self.audit_options.entity_display_name} {route.route_code} deleted",
                        context,
                        conn,
                        previous_status=route.status,
                        reason=reason,
                    )

            await self.hooks.after_soft_delete(route, context)

        except AppException:
            raise
        except Exception as e:
            logger.error(
                "Failed to delete route in service",
                route_id=str(route_id),
                error=str(e),
            )
            raise

    async def _change_status(
        self,
        route_id: UUID,
        new_status: RouteStatus,
        allowed: Callable[[RouteInDB], bool],
        context: AuditContext,
        description: str,
        values: Optional[Callable[[RouteInDB, datetime], dict[str, Any]]] = None,
        reason: Optional[str] = None,
    ) -> RouteResponse:
        """
        Move a route to ``new_status`` and record the transition.

        Raises:
            RouteNotFoundException: If route not found
            InvalidStatusTransitionException: If the route cannot move to ``new_status``
        """
        async with self.db_pool.transaction() as conn:
            current = await self.route_repository.get_route_by_id(
                route_id, connection=conn, for_update=True
            )
            if not allowed(current):
                raise InvalidStatusTransitionException(
                    current_status=current.status.value,
                    new_status=new_status.value,
                )
            self.validator.validate_status_transition(current.status, new_status)

            now = datetime.now(timezone.utc)
            update_values = {"status": new_status.value}
            if values is not None:
                update_values.update(values(current, now))

            route = await self.route_repository.update_route(
                route_id, update_values, connection=conn
            )
            await self._write_history(
                route_id,
                HistoryEventType.STATUS_CHANGED,
                description.format(code=route.route_code),
                context,
                conn,
                previous_status=current.status,
                new_status=new_status,
                reason=reason,
            )
            stops = await self.stop_repository.list_stops_by_route(route_id, connection=conn)

        await self.hooks.after_update(current, route, context)

        logger.info(
            "Route status changed successfully",
            route_id=str(route_id),
            previous_status=current.status.value,
            new_status=new_status.value,
        )
        return RouteResponse.from_route(route, [RouteStopResponse(**s.model_dump()) for s in stops])

    async def start_route(self, route_id: UUID, context: AuditContext) -> RouteResponse:
        """Start a PLANNED route, stamping ``actual_start_time``."""
        return await self._change_status(
            route_id,
            RouteStatus.IN_PROGRESS,
            RouteInDB.can_be_started,
            context,
            "Route {code} started",
            values=lambda route, now: {"actual_start_time": now},
        )

    async def pause_route(self, route_id: UUID, context: AuditContext) -> RouteResponse:
        return await self._change_status(
            route_id,
            RouteStatus.PAUSED,
            RouteInDB.can_be_paused,
            context,
            "Route {code} paused",
        )

    async def resume_route(self, route_id: UUID, context: AuditContext) -> RouteResponse:
        """Resume a PAUSED route; the original ``actual_start_time`` is kept."""
        return await self._change_status(
            route_id,
            RouteStatus.IN_PROGRESS,
            RouteInDB.can_be_resumed,
            context,
            "Route {code} resumed",
        )

    async def complete_route(
        self,
        route_id: UUID,
        context: AuditContext,
        completion: Optional[RouteComplete] = None,
    ) -> RouteResponse:
        """
        Complete an IN_PROGRESS route.

        Sets ``actual_end_time`` and derives ``actual_duration_minutes`` from
        the start time, floored to whole minutes.
        """
        completion = completion or RouteComplete()

        def completion_values(route: RouteInDB, now: datetime) -> dict[str, Any]:
            values: dict[str, Any] = {"actual_end_time": now}
            if route.actual_start_time is not None:
                elapsed = (now - route.actual_start_time).total_seconds()
                values["actual_duration_minutes"] = max(0, int(elapsed // 60))
            if completion.actual_distance_km is not None:
                values["actual_distance_km"] = completion.actual_distance_km
            if completion.notes:
                values["notes"] = completion.notes
            return values

        return await self._change_status(
            route_id,
            RouteStatus.COMPLETED,
            RouteInDB.can_be_completed,
            context,
            "Route {code} completed",
            values=completion_values,
        )

    async def cancel_route(
        self, route_id: UUID, cancellation: RouteCancel, context: AuditContext
    ) -> RouteResponse:
        """
        Cancel a route that is not final yet.

        Raises:
            RouteValidationException: If the reason is missing, too short or too long
            InvalidStatusTransitionException: If the route is already final
        """
        reason = (cancellation.reason or "").strip()
        min_length = self.config.CANCELLATION_REASON_MIN_LENGTH
        max_length = self.config.CANCELLATION_REASON_MAX_LENGTH
        if len(reason) < min_length:
            raise RouteValidationException(
                message=f"Cancellation reason must have at least {min_length} characters",
                field="reason",
                value=reason,
            )
        if len(reason) > max_length:
            raise RouteValidationException(
                message=f"Cancellation reason cannot exceed {max_length} characters",
                field="reason",
            )

        return await self._change_status(
            route_id,
            RouteStatus.CANCELLED,
            RouteInDB.can_be_cancelled,
            context,
            "Route {code} cancelled",
            values=lambda route, now: {"cancellation_reason": reason, "cancelled_at": now},
            reason=reason,
        )

    async def get_route_history(self, route_id: UUID) -> list[RouteHistoryResponse]:
        """
        History of a route, oldest first.

        Raises:
            RouteNotFoundException: If route not found
        """
        async with self.db_pool.acquire() as conn:
            await self.route_repository.get_route_by_id(route_id, connection=conn)
            entries = await self.history_repository.list_by_route(route_id, connection=conn)
        return [RouteHistoryResponse(**e.model_dump()) for e in entries]

    async def get_route_stops(self, route_id: UUID) -> list[RouteStopResponse]:
        """Stops of a route in sequence order."""
        async with self.db_pool.acquire() as conn:
            await self.route_repository.get_route_by_id(route_id, connection=conn)
            stops = await self.stop_repository.list_stops_by_route(route_id, connection=conn)
        return [RouteStopResponse(**s.model_dump()) for s in stops]
