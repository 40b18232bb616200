"""
Repository for RouteHistory entries.

History is append-only: this repository can insert and read entries, and
offers no way to update or delete them.
"""

from typing import Optional
from uuid import UUID

import asyncpg
import structlog
from uuid_utils.compat import uuid7

from logistics_api.database import DatabasePool
from logistics_api.exceptions.app import ErrorTypes
from logistics_api.exceptions.route import RouteOperationException
from logistics_api.models.route_history import RouteHistoryCreate, RouteHistoryInDB

logger = structlog.get_logger(__name__)

HISTORY_COLUMNS = """
    id, route_id, event_type, description, previous_status, new_status, changed_fields,
    user_id, user_name, user_type, ip_address, user_agent, metadata, created_at
"""


class RouteHistoryRepository:
    """Append-only store of route events."""

    def __init__(self, db_pool: DatabasePool) -> None:
        self.db_pool = db_pool

    async def _create_entry(
        self, entry: RouteHistoryCreate, connection: asyncpg.Connection
    ) -> RouteHistoryInDB:
        try:
            changed_fields = (
                [c.model_dump(mode="json") for c in entry.changed_fields]
                if entry.changed_fields
                else None
            )
            metadata = entry.metadata.model_dump(mode="json") if entry.metadata else None
            row = await connection.fetchrow(
                f"""
                INSERT INTO route_history (
                    id, route_id, event_type, description, previous_status, new_status,
                    changed_fields, user_id, user_name, user_type, ip_address,
                    user_agent, metadata
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13)
                RETURNING {HISTORY_COLUMNS}
                """,
                uuid7(),
                entry.route_id,
                entry.event_type.value,
                entry.description,
                entry.previous_status.value if entry.previous_status else None,
                entry.new_status.value if entry.new_status else None,
                changed_fields,
                entry.user_id,
                entry.user_name,
                entry.user_type,
                entry.ip_address,
                entry.user_agent,
                metadata,
            )
            logger.debug(
                "Route history entry written",
                route_id=str(entry.route_id),
                event_type=entry.event_type.value,
            )
            return RouteHistoryInDB(**dict(row))
        except Exception as e:
            logger.error(
                "Failed to write route history",
                route_id=str(entry.route_id),
                event_type=entry.event_type.value,
                error=str(e),
            )
            raise RouteOperationException(
                message=f"Failed to write route history: {str(e)}",
                operation="create_history",
                error_type=ErrorTypes.InternalError,
            ) from e

    async def create_entry(
        self, entry: RouteHistoryCreate, connection: Optional[asyncpg.Connection] = None
    ) -> RouteHistoryInDB:
        """
        Append a history entry.

        Args:
            entry: Entry to append
            connection: Optional database connection. If not provided, a new one is acquired.

        Returns:
            The stored entry
        """
        if connection:
            return await self._create_entry(entry, connection)

        async with self.db_pool.acquire() as conn:
            return await self._create_entry(entry, conn)

    async def _list_by_route(
        self, route_id: UUID, connection: asyncpg.Connection
    ) -> list[RouteHistoryInDB]:
        try:
            rows = await connection.fetch(
                f"""
                SELECT {HISTORY_COLUMNS}
                FROM route_history
                WHERE route_id = $1
                ORDER BY created_at ASC, id ASC
                """,
                route_id,
            )
            return [RouteHistoryInDB(**dict(row)) for row in rows]
        except Exception as e:
            logger.error(
                "Failed to list route history",
                route_id=str(route_id),
                error=str(e),
            )
            raise RouteOperationException(
                message=f"Failed to list route history: {str(e)}",
                operation="list_history",
                error_type=ErrorTypes.InternalError,
            ) from e

    async def list_by_route(
        self, route_id: UUID, connection: Optional[asyncpg.Connection] = None
    ) -> list[RouteHistoryInDB]:
        """History of a route, oldest first."""
        if connection:
            return await self._list_by_route(route_id, connection)

        async with self.db_pool.acquire() as conn:
            return await self._list_by_route(route_id, conn)
