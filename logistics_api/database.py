"""
Database connection pool manager using asyncpg.

Handles pool creation and lifecycle, and hands out connections and
transactions as async context managers.
"""

import asyncio
from contextlib import asynccontextmanager
from json import dumps, loads
from typing import AsyncIterator, Optional

import asyncpg
import structlog

from logistics_api.settings.database import DatabaseConfig

logger = structlog.get_logger(__name__)


class DatabasePool:
    """
    Manages the asyncpg connection pool for PostgreSQL.

    Repositories never open connections themselves: they receive one from
    ``acquire()`` or share the caller's connection from ``transaction()``.
    """

    def __init__(self, config: DatabaseConfig) -> None:
        """
        Initialize database pool manager.

        Args:
            config: Database configuration settings
        """
        self.config = config
        self._pool: Optional[asyncpg.Pool] = None
        self._is_initialized = False

    async def init_connection(self, connection: asyncpg.Connection) -> None:
        """Register JSON codecs so json/jsonb columns round-trip as Python objects."""
        for type_name in ("json", "jsonb"):
            await connection.set_type_codec(
                type_name,
                encoder=dumps,
                decoder=loads,
                schema="pg_catalog",
            )

    def _ensure_initialized(self) -> asyncpg.Pool:
        if not self._is_initialized or self._pool is None:
            raise RuntimeError(
                "Database pool is not initialized. Call connect() first."
            )
        return self._pool

    async def connect(self) -> None:
        """
        Create and initialize the connection pool.

        Raises:
            Exception: If pool creation fails
        """
        if self._is_initialized:
            logger.warning("Database pool already initialized")
            return

        try:
            logger.info(
                "Creating database connection pool",
                host=self.config.HOST,
                database=self.config.NAME,
                min_size=self.config.POOL_MIN_SIZE,
                max_size=self.config.POOL_MAX_SIZE,
            )

            self._pool = await asyncpg.create_pool(
                host=self.config.HOST,
                port=self.config.PORT,
                database=self.config.NAME,
                user=self.config.USER,
                password=self.config.PASSWORD,
                min_size=self.config.POOL_MIN_SIZE,
                max_size=self.config.POOL_MAX_SIZE,
                max_inactive_connection_lifetime=self.config.POOL_MAX_INACTIVE_CONNECTION_LIFETIME,
                timeout=self.config.POOL_TIMEOUT,
                command_timeout=self.config.COMMAND_TIMEOUT,
                server_settings={"search_path": self.config.SCHEMA},
                init=self.init_connection,
            )

            self._is_initialized = True
            logger.info("Database connection pool created successfully")

        except Exception as e:
            logger.error("Failed to create database connection pool", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close the connection pool and cleanup resources."""
        if not self._is_initialized or self._pool is None:
            logger.warning("Database pool not initialized or already closed")
            return

        try:
            logger.info("Closing database connection pool")
            await asyncio.wait_for(self._pool.close(), timeout=10)
            self._pool = None
            self._is_initialized = False
            logger.info("Database connection pool closed successfully")

        except Exception as e:
            logger.error("Error closing database connection pool", error=str(e))
            raise

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        """
        Acquire a connection from the pool.

        Yields:
            asyncpg.Connection: Database connection

        Raises:
            RuntimeError: If pool is not initialized
        """
        pool = self._ensure_initialized()

        try:
            connection = await pool.acquire(timeout=self.config.POOL_TIMEOUT)
        except (asyncpg.TooManyConnectionsError, asyncpg.PostgresConnectionError) as e:
            logger.error(
                "Could not acquire database connection",
                error_type=type(e).__name__,
                error=str(e),
                pool_size=pool.get_size(),
            )
            raise

        try:
            yield connection
        finally:
            await pool.release(connection)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """
        Acquire a connection and start a transaction.

        Everything executed on the yielded connection commits together, or is
        rolled back when the block raises.

        Yields:
            asyncpg.Connection: Database connection with active transaction
        """
        async with self.acquire() as connection:
            async with connection.transaction():
                logger.debug("Transaction started")
                try:
                    yield connection
                    logger.debug("Transaction completed successfully")
                except Exception as e:
                    logger.info(
                        "Transaction rolled back",
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                    raise

    async def get_pool_stats(self) -> dict:
        """
        Get current pool statistics.

        Returns:
            Dictionary with pool statistics
        """
        if not self._is_initialized or self._pool is None:
            return {
                "initialized": False,
                "size": 0,
                "free": 0,
            }

        return {
            "initialized": True,
            "size": self._pool.get_size(),
            "free": self._pool.get_idle_size(),
            "min_size": self._pool.get_min_size(),
            "max_size": self._pool.get_max_size(),
        }


_db_pool: Optional[DatabasePool] = None


def get_db_pool() -> DatabasePool:
    """
    Get the global database pool instance.

    Raises:
        RuntimeError: If pool has not been initialized
    """
    if _db_pool is None:
        raise RuntimeError("Database pool not initialized. Call init_db_pool() first.")
    return _db_pool


def init_db_pool(config: DatabaseConfig) -> DatabasePool:
    """Create the global database pool instance if it does not exist yet."""
    global _db_pool
    if _db_pool is None:
        _db_pool = DatabasePool(config)
        logger.info("Database pool instance created")
    return _db_pool


async def close_db_pool() -> None:
    """Close the global database pool instance."""
    global _db_pool
    if _db_pool is not None:
        await _db_pool.disconnect()
        _db_pool = None
        logger.info("Database pool instance closed and cleaned up")
