"""
Dependencies for the route endpoints: the service and the audit context.
"""

from typing import Annotated, Optional

from fastapi import Depends, Header, Request

from logistics_api.audit import AuditContext
from logistics_api.dependencies.common import DatabasePoolDep, SettingsDep
from logistics_api.service.route import RouteService


def get_route_service(
    db_pool: DatabasePoolDep,
    settings: SettingsDep,
) -> RouteService:
    """
    Dependency to get RouteService instance.

    Args:
        db_pool: Database pool from dependency
        settings: Application settings

    Returns:
        RouteService instance
    """
    return RouteService(db_pool, routing_config=settings.ROUTING)


def get_audit_context(
    request: Request,
    x_user_id: Annotated[Optional[str], Header()] = None,
    x_user_name: Annotated[Optional[str], Header()] = None,
    x_user_type: Annotated[Optional[str], Header()] = None,
    x_request_source: Annotated[Optional[str], Header()] = None,
    user_agent: Annotated[Optional[str], Header()] = None,
) -> AuditContext:
    """
    Build the audit context of the current request.

    The request id comes from ``RequestIDMiddleware``; the actor is read from
    the ``X-User-*`` headers. Without an ``X-User-Id`` the change is recorded
    as made by the system.
    """
    return AuditContext(
        request_id=getattr(request.state, "request_id", None),
        user_id=x_user_id,
        user_name=x_user_name,
        user_type=x_user_type or ("user" if x_user_id else "system"),
        ip_address=request.client.host if request.client else None,
        user_agent=user_agent,
        source=x_request_source or "api",
    )


RouteServiceDep = Annotated[RouteService, Depends(get_route_service)]
AuditContextDep = Annotated[AuditContext, Depends(get_audit_context)]
