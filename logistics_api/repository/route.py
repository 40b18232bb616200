"""
Repository for Route entity operations.

Routes are soft deleted (``deleted_at``); every read here ignores deleted rows.
The partial unique indexes on the routes table back the route code and the
one-active-route-per-driver/vehicle rules, and their violations are translated
into the same conflict exceptions the validator raises.
"""

from datetime import date
from typing import Any, Optional
from uuid import UUID

import asyncpg
import structlog

from logistics_api.database import DatabasePool
from logistics_api.exceptions.driver import (
    DriverAlreadyAssignedException,
    DriverNotFoundException,
)
from logistics_api.exceptions.route import (
    RouteAlreadyExistsException,
    RouteNotFoundException,
    RouteOperationException,
)
from logistics_api.exceptions.app import AppException, ErrorTypes
from logistics_api.exceptions.vehicle import (
    VehicleAlreadyAssignedException,
    VehicleNotFoundException,
)
from logistics_api.models.enums import ASSIGNMENT_HOLDING_STATUSES
from logistics_api.models.route import RouteFilters, RouteInDB, RouteListItem

logger = structlog.get_logger(__name__)

ROUTE_COLUMNS = """
    id, route_code, name, description, driver_id, vehicle_id, status, type,
    origin_address, destination_address, origin_coordinates, destination_coordinates,
    planned_date, planned_start_time, planned_end_time, actual_start_time, actual_end_time,
    estimated_distance_km, actual_distance_km, estimated_duration_minutes,
    actual_duration_minutes, total_load_kg, total_volume_m3, max_vehicle_capacity_kg,
    max_vehicle_volume_m3, estimated_cost, fuel_consumption_estimate, fuel_cost_estimate,
    difficulty_level, notes, cancellation_reason, cancelled_at, created_at, updated_at
"""

LIST_COLUMNS = """
    id, route_code, name, status, type, driver_id, vehicle_id, planned_date,
    planned_start_time, planned_end_time, estimated_distance_km, estimated_duration_minutes
"""

# Columns the service may write; anything else is rejected before building SQL.
WRITABLE_COLUMNS = frozenset(
    {
        "id", "route_code", "name", "description", "driver_id", "vehicle_id",
        "status", "type", "origin_address", "destination_address",
        "origin_coordinates", "destination_coordinates", "planned_date",
        "planned_start_time", "planned_end_time", "actual_start_time",
        "actual_end_time", "estimated_distance_km", "actual_distance_km",
        "estimated_duration_minutes", "actual_duration_minutes", "total_load_kg",
        "total_volume_m3", "max_vehicle_capacity_kg", "max_vehicle_volume_m3",
        "estimated_cost", "fuel_consumption_estimate", "fuel_cost_estimate",
        "difficulty_level", "notes", "cancellation_reason", "cancelled_at",
    }
)

HOLDING_STATUS_VALUES = sorted(s.value for s in ASSIGNMENT_HOLDING_STATUSES)


def _constraint_name(e: asyncpg.PostgresError) -> str:
    return getattr(e, "constraint_name", None) or str(e)


class RouteRepository:
    """
    Repository for managing Route rows.

    Each public method takes an optional connection so the service can run
    validation reads and writes inside one transaction.
    """

    def __init__(self, db_pool: DatabasePool) -> None:
        """
        Initialize the RouteRepository.

        Args:
            db_pool: Database pool instance for connection management
        """
        self.db_pool = db_pool

    def _integrity_error(
        self, e: asyncpg.IntegrityConstraintViolationError, values: dict[str, Any], operation: str
    ) -> AppException:
        """Translate a constraint violation into the matching domain exception."""
        constraint = _constraint_name(e)
        if isinstance(e, asyncpg.UniqueViolationError):
            if "uniq_routes_code" in constraint:
                return RouteAlreadyExistsException(route_code=values.get("route_code"))
            if "uniq_routes_active_driver" in constraint:
                return DriverAlreadyAssignedException(driver_id=values.get("driver_id"))
            if "uniq_routes_active_vehicle" in constraint:
                return VehicleAlreadyAssignedException(vehicle_id=values.get("vehicle_id"))
        if isinstance(e, asyncpg.ForeignKeyViolationError):
            if "fk_routes_driver_id" in constraint:
                return DriverNotFoundException(driver_id=values.get("driver_id"))
            if "fk_routes_vehicle_id" in constraint:
                return VehicleNotFoundException(vehicle_id=values.get("vehicle_id"))
        return RouteOperationException(
            message=f"Failed to {operation} route: {str(e)}",
            operation=operation,
            error_type=ErrorTypes.InternalError,
        )

    @staticmethod
    def _check_columns(values: dict[str, Any]) -> None:
        unknown = set(values) - WRITABLE_COLUMNS
        if unknown:
            raise ValueError(f"Unknown route columns: {sorted(unknown)}")

    async def _create_route(
        self, values: dict[str, Any], connection: asyncpg.Connection
    ) -> RouteInDB:
        """
        Private method to insert a route with a provided connection.

        Args:
            values: Column values, including the application generated id
            connection: Database connection

        Returns:
            Created route

        Raises:
            RouteAlreadyExistsException: If the route code is in use
            DriverAlreadyAssignedException: If the driver holds another active route
            VehicleAlreadyAssignedException: If the vehicle holds another active route
            RouteOperationException: If creation fails
        """
        self._check_columns(values)
        columns = list(values)
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        query = f"""
            INSERT INTO routes ({", ".join(columns)})
            VALUES ({placeholders})
            RETURNING {ROUTE_COLUMNS}
        """
        try:
            row = await connection.fetchrow(query, *values.values())

            logger.info(
                "Route created successfully",
                route_id=str(row["id"]),
                route_code=row["route_code"],
            )
            return RouteInDB(**dict(row))
        except asyncpg.IntegrityConstraintViolationError as e:
            raise self._integrity_error(e, values, "create") from e
        except Exception as e:
            logger.error(
                "Failed to create route",
                route_code=values.get("route_code"),
                error=str(e),
            )
            raise RouteOperationException(
                message=f"Failed to create route: {str(e)}",
                operation="create",
                error_type=ErrorTypes.InternalError,
            ) from e

    async def create_route(
        self, values: dict[str, Any], connection: Optional[asyncpg.Connection] = None
    ) -> RouteInDB:
        """
        Insert a new route.

        Args:
            values: Column values, including the application generated id
            connection: Optional database connection. If not provided, a new one is acquired.

        Returns:
            Created route
        """
        if connection:
            return await self._create_route(values, connection)

        async with self.db_pool.acquire() as conn:
            return await self._create_route(values, conn)

    async def _get_route_by_id(
        self, route_id: UUID, connection: asyncpg.Connection, for_update: bool
    ) -> RouteInDB:
        try:
            query = f"""
                SELECT {ROUTE_COLUMNS}
                FROM routes
                WHERE id = $1 AND deleted_at IS NULL
            """
            if for_update:
                query += " FOR UPDATE"
            row = await connection.fetchrow(query, route_id)

            if not row:
                raise RouteNotFoundException(route_id=route_id)

            return RouteInDB(**dict(row))

        except RouteNotFoundException:
            raise
        except Exception as e:
            logger.error(
                "Failed to get route by id",
                route_id=str(route_id),
                error=str(e),
            )
            raise RouteOperationException(
                message=f"Failed to get route: {str(e)}",
                operation="get",
                error_type=ErrorTypes.InternalError,
            ) from e

    async def get_route_by_id(
        self,
        route_id: UUID,
        connection: Optional[asyncpg.Connection] = None,
        for_update: bool = False,
    ) -> RouteInDB:
        """
        Get a route by ID.

        Args:
            route_id: ID of the route
            connection: Optional database connection. If not provided, a new one is acquired.
            for_update: Lock the row until the surrounding transaction ends

        Returns:
            Route

        Raises:
            RouteNotFoundException: If route not found
            RouteOperationException: If retrieval fails
        """
        if connection:
            return await self._get_route_by_id(route_id, connection, for_update)

        async with self.db_pool.acquire() as conn:
            return await self._get_route_by_id(route_id, conn, for_update)

    async def _route_code_exists(
        self,
        route_code: str,
        exclude_route_id: Optional[UUID],
        connection: asyncpg.Connection,
    ) -> bool:
        try:
            return await connection.fetchval(
                """
                SELECT EXISTS(
                    SELECT 1 FROM routes
                    WHERE route_code = $1
                      AND deleted_at IS NULL
                      AND ($2::uuid IS NULL OR id <> $2)
                )
                """,
                route_code,
                exclude_route_id,
            )
        except Exception as e:
            logger.error(
                "Failed to check route code",
                route_code=route_code,
                error=str(e),
            )
            raise RouteOperationException(
                message=f"Failed to check route code: {str(e)}",
                operation="check_code",
                error_type=ErrorTypes.InternalError,
            ) from e

    async def route_code_exists(
        self,
        route_code: str,
        exclude_route_id: Optional[UUID] = None,
        connection: Optional[asyncpg.Connection] = None,
    ) -> bool:
        """Check whether a non-deleted route other than ``exclude_route_id`` uses the code."""
        if connection:
            return await self._route_code_exists(route_code, exclude_route_id, connection)

        async with self.db_pool.acquire() as conn:
            return await self._route_code_exists(route_code, exclude_route_id, conn)

    async def _find_active_route(
        self,
        column: str,
        value: UUID,
        exclude_route_id: Optional[UUID],
        connection: asyncpg.Connection,
    ) -> Optional[RouteInDB]:
        try:
            row = await connection.fetchrow(
                f"""
                SELECT {ROUTE_COLUMNS}
                FROM routes
                WHERE {column} = $1
                  AND status = ANY($2::text[])
                  AND deleted_at IS NULL
                  AND ($3::uuid IS NULL OR id <> $3)
                ORDER BY planned_date ASC
                LIMIT 1
                """,
                value,
                HOLDING_STATUS_VALUES,
                exclude_route_id,
            )
            return RouteInDB(**dict(row)) if row else None
        except Exception as e:
            logger.error(
                "Failed to look up active route",
                column=column,
                value=str(value),
                error=str(e),
            )
            raise RouteOperationException(
                message=f"Failed to look up active route: {str(e)}",
                operation="find_active",
                error_type=ErrorTypes.InternalError,
            ) from e

    async def find_active_route_for_driver(
        self,
        driver_id: UUID,
        exclude_route_id: Optional[UUID] = None,
        connection: Optional[asyncpg.Connection] = None,
    ) -> Optional[RouteInDB]:
        """
        Find a PLANNED, IN_PROGRESS or PAUSED route held by the driver.

        Args:
            driver_id: ID of the driver
            exclude_route_id: Route to ignore (the one being updated)
            connection: Optional database connection. If not provided, a new one is acquired.

        Returns:
            The holding route, or None when the driver is free
        """
        if connection:
            return await self._find_active_route("driver_id", driver_id, exclude_route_id, connection)

        async with self.db_pool.acquire() as conn:
            return await self._find_active_route("driver_id", driver_id, exclude_route_id, conn)

    async def find_active_route_for_vehicle(
        self,
        vehicle_id: UUID,
        exclude_route_id: Optional[UUID] = None,
        connection: Optional[asyncpg.Connection] = None,
    ) -> Optional[RouteInDB]:
        """Find a PLANNED, IN_PROGRESS or PAUSED route holding the vehicle."""
        if connection:
            return await self._find_active_route("vehicle_id", vehicle_id, exclude_route_id, connection)

        async with self.db_pool.acquire() as conn:
            return await self._find_active_route("vehicle_id", vehicle_id, exclude_route_id, conn)

    async def _get_next_code_sequence(
        self, prefix: str, planned_date: date, connection: asyncpg.Connection
    ) -> int:
        try:
            code_prefix = f"{prefix}-{planned_date:%Y%m%d}-"
            # deleted routes count too so that codes are never handed out twice
            current = await connection.fetchval(
                """
                SELECT MAX(CAST(SUBSTRING(route_code FROM $2) AS INTEGER))
                FROM routes
                WHERE route_code LIKE $1 || '%'
                """,
                code_prefix,
                len(code_prefix) + 1,
            )
            return (current or 0) + 1
        except Exception as e:
            logger.error(
                "Failed to compute next route code",
                planned_date=str(planned_date),
                error=str(e),
            )
            raise RouteOperationException(
                message=f"Failed to generate route code: {str(e)}",
                operation="generate_code",
                error_type=ErrorTypes.InternalError,
            ) from e

    async def get_next_code_sequence(
        self,
        prefix: str,
        planned_date: date,
        connection: Optional[asyncpg.Connection] = None,
    ) -> int:
        """Next free sequence number for ``<prefix>-<YYYYMMDD>-NNN`` codes on a date."""
        if connection:
            return await self._get_next_code_sequence(prefix, planned_date, connection)

        async with self.db_pool.acquire() as conn:
            return await self._get_next_code_sequence(prefix, planned_date, conn)

    @staticmethod
    def _build_filters(filters: RouteFilters) -> tuple[list[str], list[Any]]:
        conditions = ["deleted_at IS NULL"]
        params: list[Any] = []
        param_count = 0

        if filters.route_code is not None:
            param_count += 1
            conditions.append(f"route_code = ${param_count}")
            params.append(filters.route_code.strip().upper())

        if filters.status is not None:
            param_count += 1
            conditions.append(f"status = ${param_count}")
            params.append(filters.status.value)

        if filters.type is not None:
            param_count += 1
            conditions.append(f"type = ${param_count}")
            params.append(filters.type.value)

        if filters.driver_id is not None:
            param_count += 1
            conditions.append(f"driver_id = ${param_count}")
            params.append(filters.driver_id)

        if filters.vehicle_id is not None:
            param_count += 1
            conditions.append(f"vehicle_id = ${param_count}")
            params.append(filters.vehicle_id)

        if filters.planned_date_from is not None:
            param_count += 1
            conditions.append(f"planned_date >= ${param_count}")
            params.append(filters.planned_date_from)

        if filters.planned_date_to is not None:
            param_count += 1
            conditions.append(f"planned_date <= ${param_count}")
            params.append(filters.planned_date_to)

        if filters.search:
            param_count += 1
            conditions.append(f"name ILIKE ${param_count}")
            params.append(f"%{filters.search.strip()}%")

        return conditions, params

    async def _list_routes(
        self,
        connection: asyncpg.Connection,
        filters: RouteFilters,
        limit: int,
        offset: int,
    ) -> list[RouteListItem]:
        """
        Private method to list routes with a provided connection.

        Ordered by planned date, most recent first, then by creation time.
        """
        try:
            conditions, params = self._build_filters(filters)
            param_count = len(params)

            query = f"""
                SELECT {LIST_COLUMNS}
                FROM routes
                WHERE {" AND ".join(conditions)}
                ORDER BY planned_date DESC, created_at DESC
            """

            param_count += 1
            query += f" LIMIT ${param_count}"
            params.append(limit)

            param_count += 1
            query += f" OFFSET ${param_count}"
            params.append(offset)

            rows = await connection.fetch(query, *params)
            return [RouteListItem(**dict(row)) for row in rows]

        except Exception as e:
            logger.error(
                "Failed to list routes",
                error=str(e),
            )
            raise RouteOperationException(
                message=f"Failed to list routes: {str(e)}",
                operation="list",
                error_type=ErrorTypes.InternalError,
            ) from e

    async def list_routes(
        self,
        filters: Optional[RouteFilters] = None,
        limit: int = 20,
        offset: int = 0,
        connection: Optional[asyncpg.Connection] = None,
    ) -> list[RouteListItem]:
        """
        List routes with optional filtering.

        Args:
            filters: Route filters
            limit: Maximum number of routes to return
            offset: Number of routes to skip
            connection: Optional database connection. If not provided, a new one is acquired.

        Returns:
            List of routes with minimal data

        Raises:
            RouteOperationException: If listing fails
        """
        filters = filters or RouteFilters()
        if connection:
            return await self._list_routes(connection, filters, limit, offset)

        async with self.db_pool.acquire() as conn:
            return await self._list_routes(conn, filters, limit, offset)

    async def _count_routes(
        self, connection: asyncpg.Connection, filters: RouteFilters
    ) -> int:
        try:
            conditions, params = self._build_filters(filters)
            count = await connection.fetchval(
                f"SELECT COUNT(*) FROM routes WHERE {' AND '.join(conditions)}",
                *params,
            )
            return count or 0
        except Exception as e:
            logger.error(
                "Failed to count routes",
                error=str(e),
            )
            raise RouteOperationException(
                message=f"Failed to count routes: {str(e)}",
                operation="count",
                error_type=ErrorTypes.InternalError,
            ) from e

    async def count_routes(
        self,
        filters: Optional[RouteFilters] = None,
        connection: Optional[asyncpg.Connection] = None,
    ) -> int:
        """Count routes matching the filters."""
        filters = filters or RouteFilters()
        if connection:
            return await self._count_routes(connection, filters)

        async with self.db_pool.acquire() as conn:
            return await self._count_routes(conn, filters)

    async def _update_route(
        self,
        route_id: UUID,
        values: dict[str, Any],
        connection: asyncpg.Connection,
    ) -> RouteInDB:
        """
        Private method to update a route with a provided connection.

        Args:
            route_id: ID of the route to update
            values: Column values to write
            connection: Database connection

        Returns:
            Updated route

        Raises:
            RouteNotFoundException: If route not found
            RouteOperationException: If update fails
        """
        self._check_columns(values)
        if not values:
            return await self._get_route_by_id(route_id, connection, False)

        update_fields = []
        params: list[Any] = []
        param_count = 0

        for column, value in values.items():
            param_count += 1
            update_fields.append(f"{column} = ${param_count}")
            params.append(value)

        param_count += 1
        params.append(route_id)

        query = f"""
            UPDATE routes
            SET {", ".join(update_fields)}, updated_at = now()
            WHERE id = ${param_count} AND deleted_at IS NULL
            RETURNING {ROUTE_COLUMNS}
        """

        try:
            row = await connection.fetchrow(query, *params)

            if not row:
                raise RouteNotFoundException(route_id=route_id)

            logger.info(
                "Route updated successfully",
                route_id=str(route_id),
                fields=sorted(values),
            )
            return RouteInDB(**dict(row))

        except RouteNotFoundException:
            raise
        except asyncpg.IntegrityConstraintViolationError as e:
            raise self._integrity_error(e, values, "update") from e
        except Exception as e:
            logger.error(
                "Failed to update route",
                route_id=str(route_id),
                error=str(e),
            )
            raise RouteOperationException(
                message=f"Failed to update route: {str(e)}",
                operation="update",
                error_type=ErrorTypes.InternalError,
            ) from e

    async def update_route(
        self,
        route_id: UUID,
        values: dict[str, Any],
        connection: Optional[asyncpg.Connection] = None,
    ) -> RouteInDB:
        """
        Update columns of an existing route.

        Args:
            route_id: ID of the route to update
            values: Column values to write
            connection: Optional database connection. If not provided, a new one is acquired.

        Returns:
            Updated route
        """
        if connection:
            return await self._update_route(route_id, values, connection)

        async with self.db_pool.acquire() as conn:
            return await self._update_route(route_id, values, conn)

    async def _soft_delete_route(
        self, route_id: UUID, connection: asyncpg.Connection
    ) -> None:
        try:
            result = await connection.execute(
                """
                UPDATE routes SET deleted_at = now(), updated_at = now()
                WHERE id = $1 AND deleted_at IS NULL
                """,
                route_id,
            )
            if result == "UPDATE 0":
                raise RouteNotFoundException(route_id=route_id)

            logger.info(
                "Route soft deleted successfully",
                route_id=str(route_id),
            )

        except RouteNotFoundException:
            raise
        except Exception as e:
            logger.error(
                "Failed to soft delete route",
                route_id=str(route_id),
                error=str(e),
            )
            raise RouteOperationException(
                message=f"Failed to soft delete route: {str(e)}",
                operation="soft_delete",
                error_type=ErrorTypes.InternalError,
            ) from e

    async def soft_delete_route(
        self, route_id: UUID, connection: Optional[asyncpg.Connection] = None
    ) -> None:
        """
        Soft delete a route by stamping ``deleted_at``.

        Args:
            route_id: ID of the route to delete
            connection: Optional database connection. If not provided, a new one is acquired.
        """
        if connection:
            return await self._soft_delete_route(route_id, connection)

        async with self.db_pool.acquire() as conn:
            return await self._soft_delete_route(route_id, conn)
