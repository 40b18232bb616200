"""
Repository for the Driver records routes are assigned to.

Drivers are managed elsewhere; the route lifecycle only reads them, optionally
locking the row so that two concurrent assignments of the same driver serialize.
"""

from typing import Optional
from uuid import UUID

import asyncpg
import structlog

from logistics_api.database import DatabasePool
from logistics_api.exceptions.driver import DriverOperationException
from logistics_api.models.driver import DriverInDB

logger = structlog.get_logger(__name__)


class DriverRepository:
    """Read access to drivers."""

    def __init__(self, db_pool: DatabasePool) -> None:
        self.db_pool = db_pool

    async def _get_driver_by_id(
        self, driver_id: UUID, connection: asyncpg.Connection, for_update: bool
    ) -> Optional[DriverInDB]:
        try:
            query = """
                SELECT id, full_name, is_active, status
                FROM drivers
                WHERE id = $1 AND deleted_at IS NULL
            """
            if for_update:
                query += " FOR UPDATE"
            row = await connection.fetchrow(query, driver_id)
            return DriverInDB(**dict(row)) if row else None
        except Exception as e:
            logger.error(
                "Failed to get driver by id",
                driver_id=str(driver_id),
                error=str(e),
            )
            raise DriverOperationException(
                message=f"Failed to get driver: {str(e)}",
                operation="get",
            ) from e

    async def get_driver_by_id(
        self,
        driver_id: UUID,
        connection: Optional[asyncpg.Connection] = None,
        for_update: bool = False,
    ) -> Optional[DriverInDB]:
        """
        Get a driver by ID.

        Args:
            driver_id: ID of the driver
            connection: Optional database connection. If not provided, a new one is acquired.
            for_update: Lock the row until the surrounding transaction ends

        Returns:
            The driver, or None when it does not exist
        """
        if connection:
            return await self._get_driver_by_id(driver_id, connection, for_update)

        async with self.db_pool.acquire() as conn:
            return await self._get_driver_by_id(driver_id, conn, for_update)
