"""
Repository for RouteStop rows.
"""

from typing import Any, Optional
from uuid import UUID

import asyncpg
import structlog
from uuid_utils.compat import uuid7

from logistics_api.database import DatabasePool
from logistics_api.exceptions.app import ErrorTypes
from logistics_api.exceptions.route import RouteOperationException, RouteValidationException
from logistics_api.models.enums import StopStatus
from logistics_api.models.route_stop import RouteStopCreate, RouteStopInDB

logger = structlog.get_logger(__name__)

STOP_COLUMNS = """
    id, route_id, customer_address_id, sequence_order, status, address, coordinates,
    planned_arrival_time, planned_departure_time, estimated_stop_duration_minutes,
    actual_arrival_time, actual_departure_time, distance_from_previous_km,
    delivery_data, notes, failure_reason, completed_at, created_at, updated_at
"""


class RouteStopRepository:
    """
    Repository for the ordered stops of a route.

    ``(route_id, sequence_order)`` is unique in the database; stops are written
    in bulk when a route is created or its stops are replaced.
    """

    def __init__(self, db_pool: DatabasePool) -> None:
        self.db_pool = db_pool

    async def _create_stops(
        self,
        route_id: UUID,
        stops: list[RouteStopCreate],
        distances: list[Optional[float]],
        connection: asyncpg.Connection,
    ) -> list[RouteStopInDB]:
        created = []
        try:
            for stop, distance in zip(stops, distances):
                delivery_data: Optional[dict[str, Any]] = (
                    stop.delivery_data.model_dump(mode="json") if stop.delivery_data else None
                )
                row = await connection.fetchrow(
                    f"""
                    INSERT INTO route_stops (
                        id, route_id, customer_address_id, sequence_order, status, address,
                        coordinates, planned_arrival_time, planned_departure_time,
                        estimated_stop_duration_minutes, distance_from_previous_km,
                        delivery_data, notes
                    )
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13)
                    RETURNING {STOP_COLUMNS}
                    """,
                    uuid7(),
                    route_id,
                    stop.customer_address_id,
                    stop.sequence_order,
                    StopStatus.PENDING.value,
                    stop.address,
                    stop.coordinates,
                    stop.planned_arrival_time,
                    stop.planned_departure_time,
                    stop.estimated_stop_duration_minutes,
                    distance,
                    delivery_data,
                    stop.notes,
                )
                created.append(RouteStopInDB(**dict(row)))

            logger.info(
                "Route stops created successfully",
                route_id=str(route_id),
                stop_count=len(created),
            )
            return created

        except asyncpg.ForeignKeyViolationError as e:
            raise RouteValidationException(
                message="Stop references an unknown customer address",
                field="stops.customer_address_id",
            ) from e
        except asyncpg.UniqueViolationError as e:
            raise RouteValidationException(
                message="Stop sequence_order values must be unique within a route",
                field="stops.sequence_order",
            ) from e
        except Exception as e:
            logger.error(
                "Failed to create route stops",
                route_id=str(route_id),
                error=str(e),
            )
            raise RouteOperationException(
                message=f"Failed to create route stops: {str(e)}",
                operation="create_stops",
                error_type=ErrorTypes.InternalError,
            ) from e

    async def create_stops(
        self,
        route_id: UUID,
        stops: list[RouteStopCreate],
        distances: Optional[list[Optional[float]]] = None,
        connection: Optional[asyncpg.Connection] = None,
    ) -> list[RouteStopInDB]:
        """
        Insert the stops of a route in sequence order.

        Args:
            route_id: ID of the owning route
            stops: Stops to insert
            distances: Leg distance from the previous point, aligned with ``stops``
            connection: Optional database connection. If not provided, a new one is acquired.

        Returns:
            Created stops
        """
        ordered = sorted(stops, key=lambda s: s.sequence_order)
        if distances is None:
            distances = [None] * len(ordered)
        if connection:
            return await self._create_stops(route_id, ordered, distances, connection)

        async with self.db_pool.acquire() as conn:
            return await self._create_stops(route_id, ordered, distances, conn)

    async def _list_stops_by_route(
        self, route_id: UUID, connection: asyncpg.Connection
    ) -> list[RouteStopInDB]:
        try:
            rows = await connection.fetch(
                f"""
                SELECT {STOP_COLUMNS}
                FROM route_stops
                WHERE route_id = $1
                ORDER BY sequence_order ASC
                """,
                route_id,
            )
            return [RouteStopInDB(**dict(row)) for row in rows]
        except Exception as e:
            logger.error(
                "Failed to list route stops",
                route_id=str(route_id),
                error=str(e),
            )
            raise RouteOperationException(
                message=f"Failed to list route stops: {str(e)}",
                operation="list_stops",
                error_type=ErrorTypes.InternalError,
            ) from e

    async def list_stops_by_route(
        self, route_id: UUID, connection: Optional[asyncpg.Connection] = None
    ) -> list[RouteStopInDB]:
        """List the stops of a route ordered by sequence."""
        if connection:
            return await self._list_stops_by_route(route_id, connection)

        async with self.db_pool.acquire() as conn:
            return await self._list_stops_by_route(route_id, conn)

    async def _delete_stops_by_route(
        self, route_id: UUID, connection: asyncpg.Connection
    ) -> int:
        try:
            result = await connection.execute(
                "DELETE FROM route_stops WHERE route_id = $1",
                route_id,
            )
            deleted = int(result.split()[-1])
            logger.info(
                "Route stops removed",
                route_id=str(route_id),
                stop_count=deleted,
            )
            return deleted
        except Exception as e:
            logger.error(
                "Failed to delete route stops",
                route_id=str(route_id),
                error=str(e),
            )
            raise RouteOperationException(
                message=f"Failed to delete route stops: {str(e)}",
                operation="delete_stops",
                error_type=ErrorTypes.InternalError,
            ) from e

    async def delete_stops_by_route(
        self, route_id: UUID, connection: Optional[asyncpg.Connection] = None
    ) -> int:
        """
        Remove all stops of a route before they are replaced.

        Returns:
            Number of removed stops
        """
        if connection:
            return await self._delete_stops_by_route(route_id, connection)

        async with self.db_pool.acquire() as conn:
            return await self._delete_stops_by_route(route_id, conn)
