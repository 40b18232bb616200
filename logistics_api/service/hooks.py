"""
Lifecycle hooks invoked by the route service around persistence.

The service calls these explicitly after each write so that side effects
(currently structured log lines) stay out of the repositories.
"""

from typing import Optional

import structlog

from logistics_api.audit import AuditContext
from logistics_api.models.route import RouteInDB

logger = structlog.get_logger(__name__)


class RouteLifecycleHooks:
    """Default hooks: log the interesting parts of each route write."""

    async def after_insert(self, route: RouteInDB, context: AuditContext) -> None:
        logger.info(
            "Route inserted",
            route_id=str(route.id),
            route_code=route.route_code,
            driver_id=str(route.driver_id),
            vehicle_id=str(route.vehicle_id),
            user_id=context.user_id,
        )

    async def after_update(
        self,
        previous: RouteInDB,
        route: RouteInDB,
        context: AuditContext,
    ) -> None:
        """Log status and assignment changes between two versions of a route."""
        if previous.status != route.status:
            logger.info(
                "Route status changed",
                route_id=str(route.id),
                route_code=route.route_code,
                previous_status=previous.status.value,
                new_status=route.status.value,
                user_id=context.user_id,
            )
        if previous.driver_id != route.driver_id:
            logger.info(
                "Route driver changed",
                route_id=str(route.id),
                previous_driver_id=str(previous.driver_id),
                new_driver_id=str(route.driver_id),
                user_id=context.user_id,
            )
        if previous.vehicle_id != route.vehicle_id:
            logger.info(
                "Route vehicle changed",
                route_id=str(route.id),
                previous_vehicle_id=str(previous.vehicle_id),
                new_vehicle_id=str(route.vehicle_id),
                user_id=context.user_id,
            )

    async def before_soft_delete(
        self, route: RouteInDB, context: AuditContext, reason: Optional[str] = None
    ) -> None:
        logger.warning(
            "Route about to be deleted",
            route_id=str(route.id),
            route_code=route.route_code,
            status=route.status.value,
            user_id=context.user_id,
            reason=reason,
        )

    async def after_soft_delete(self, route: RouteInDB, context: AuditContext) -> None:
        logger.info(
            "Route deleted",
            route_id=str(route.id),
            route_code=route.route_code,
            user_id=context.user_id,
        )
