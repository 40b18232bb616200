"""
Repository for the Vehicle records routes are assigned to.
"""

from typing import Optional
from uuid import UUID

import asyncpg
import structlog

from logistics_api.database import DatabasePool
from logistics_api.exceptions.vehicle import VehicleOperationException
from logistics_api.models.vehicle import VehicleInDB

logger = structlog.get_logger(__name__)


class VehicleRepository:
    """Read access to vehicles."""

    def __init__(self, db_pool: DatabasePool) -> None:
        self.db_pool = db_pool

    async def _get_vehicle_by_id(
        self, vehicle_id: UUID, connection: asyncpg.Connection, for_update: bool
    ) -> Optional[VehicleInDB]:
        try:
            query = """
                SELECT id, license_plate, status, load_capacity, cargo_volume
                FROM vehicles
                WHERE id = $1 AND deleted_at IS NULL
            """
            if for_update:
                query += " FOR UPDATE"
            row = await connection.fetchrow(query, vehicle_id)
            return VehicleInDB(**dict(row)) if row else None
        except Exception as e:
            logger.error(
                "Failed to get vehicle by id",
                vehicle_id=str(vehicle_id),
                error=str(e),
            )
            raise VehicleOperationException(
                message=f"Failed to get vehicle: {str(e)}",
                operation="get",
            ) from e

    async def get_vehicle_by_id(
        self,
        vehicle_id: UUID,
        connection: Optional[asyncpg.Connection] = None,
        for_update: bool = False,
    ) -> Optional[VehicleInDB]:
        """
        Get a vehicle by ID.

        Args:
            vehicle_id: ID of the vehicle
            connection: Optional database connection. If not provided, a new one is acquired.
            for_update: Lock the row until the surrounding transaction ends

        Returns:
            The vehicle, or None when it does not exist
        """
        if connection:
            return await self._get_vehicle_by_id(vehicle_id, connection, for_update)

        async with self.db_pool.acquire() as conn:
            return await self._get_vehicle_by_id(vehicle_id, conn, for_update)
