"""
Startup and shutdown of the logistics API.

Startup configures logging and Sentry, then opens the PostgreSQL pool the
route repositories share. Shutdown closes the pool.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from logistics_api.database import close_db_pool, init_db_pool
from logistics_api.logging import setup_logging
from logistics_api.sentry import setup_sentry
from logistics_api.settings import Settings, get_settings

logger = structlog.get_logger(__name__)


async def startup(settings: Settings) -> None:
    setup_logging(settings)
    setup_sentry(settings.SENTRY, settings.ENVIRONMENT, settings.APP_VERSION)

    db_pool = init_db_pool(settings.POSTGRES)
    await db_pool.connect()

    logger.info(
        "Logistics API started",
        environment=settings.ENVIRONMENT,
        version=settings.APP_VERSION,
        route_code_prefix=settings.ROUTING.ROUTE_CODE_PREFIX,
        max_stops=settings.ROUTING.MAX_STOPS,
        **await db_pool.get_pool_stats(),
    )


async def shutdown() -> None:
    await close_db_pool()
    logger.info("Logistics API stopped")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run startup before serving requests and shutdown afterwards; failures are logged and re-raised."""
    try:
        await startup(get_settings())
    except Exception as e:
        logger.error("Failed to start application", error=str(e), exc_info=True)
        raise

    yield

    try:
        await shutdown()
    except Exception as e:
        logger.error("Error during application shutdown", error=str(e), exc_info=True)
        raise
