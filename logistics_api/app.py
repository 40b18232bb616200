"""
FastAPI application instance with lifespan management.

This module creates the FastAPI application with proper configuration,
middleware, and lifespan management for database and logging setup.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from logistics_api.controller.route import router as route_router
from logistics_api.database import get_db_pool
from logistics_api.exceptions.handler import register_exception_handlers
from logistics_api.lifespan import lifespan
from logistics_api.middleware import ContextMiddleware, LoggingMiddleware, RequestIDMiddleware
from logistics_api.models.errors import HTTPException
from logistics_api.settings import Settings, get_settings


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use, the process-wide settings when omitted

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        responses={
            500: {"model": HTTPException, "description": "Internal Server Error"},
            404: {"model": HTTPException, "description": "Resource Not Found"},
            400: {"model": HTTPException, "description": "Bad Request"},
            409: {"model": HTTPException, "description": "Conflict"},
            422: {"model": HTTPException, "description": "Unprocessable Entity"},
        },
    )
    register_exception_handlers(app)

    if settings.SERVER.CORS_ENABLED:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.SERVER.CORS_ORIGINS,
            allow_credentials=settings.SERVER.CORS_ALLOW_CREDENTIALS,
            allow_methods=settings.SERVER.CORS_ALLOW_METHODS,
            allow_headers=settings.SERVER.CORS_ALLOW_HEADERS,
        )
    # added last runs first: request id, then context, then logging
    app.add_middleware(
        LoggingMiddleware,
        slow_request_threshold_ms=settings.SERVER.SLOW_REQUEST_THRESHOLD_MS,
    )
    app.add_middleware(ContextMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.include_router(route_router, prefix="/api/v1")

    @app.get("/")
    async def root():
        """Application identity."""
        return {
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint reporting the database pool state."""
        try:
            db_pool = get_db_pool()
            pool_stats = await db_pool.get_pool_stats()

            return {
                "status": "healthy" if pool_stats["initialized"] else "unhealthy",
                "database": {
                    "connected": pool_stats["initialized"],
                    "pool_size": pool_stats.get("size", 0),
                    "pool_free": pool_stats.get("free", 0),
                },
            }
        except RuntimeError as e:
            return {
                "status": "unhealthy",
                "error": str(e),
            }

    return app


app: FastAPI = create_app()
