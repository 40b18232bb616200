"""
Route controller/router for FastAPI endpoints.

This module defines the REST API for the route lifecycle: CRUD on routes,
the status transitions (start, pause, resume, complete, cancel) and the
read-only history and stop listings. Domain exceptions propagate to the
handlers registered in ``logistics_api.exceptions.handler``.
"""

from datetime import date
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Path, Query, status
from fastapi.responses import Response
from pydantic import ValidationError
import structlog

from logistics_api.dependencies.route import AuditContextDep, RouteServiceDep
from logistics_api.exceptions.app import AppException
from logistics_api.exceptions.route import RouteValidationException
from logistics_api.models import ListResponseModel, ResponseModel
from logistics_api.models.enums import RouteStatus, RouteType
from logistics_api.models.route import (
    RouteCancel,
    RouteComplete,
    RouteCreate,
    RouteFilters,
    RouteListItem,
    RouteResponse,
    RouteUpdate,
)
from logistics_api.models.route_history import RouteHistoryResponse
from logistics_api.models.route_stop import RouteStopResponse

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/routes",
    tags=["Routes"],
    responses={
        400: {"description": "Bad Request - Business rule violation"},
        404: {"description": "Resource Not Found"},
        500: {"description": "Internal Server Error"},
    },
)

RouteIdPath = Annotated[UUID, Path(description="Route ID")]


@router.post(
    "",
    response_model=ResponseModel[RouteResponse],
    status_code=status.HTTP_201_CREATED,
    responses={
        201: {"description": "Route created successfully"},
        404: {"description": "Driver or vehicle not found"},
        409: {"description": "Route code in use, or driver/vehicle already on an active route"},
    },
    summary="Create a new route",
    description="Create a PLANNED route, validating driver and vehicle assignment",
)
async def create_route(
    route_data: RouteCreate,
    route_service: RouteServiceDep,
    context: AuditContextDep,
):
    """
    Create a new route in the system.

    **Request Body:**
    - **route_code**: Optional code (RT-YYYYMMDD-NNN), generated when omitted
    - **name**: Route name (3-255 characters)
    - **driver_id** / **vehicle_id**: Assignment, both must be free
    - **type**: URBAN, INTERSTATE, RURAL, EXPRESS or LOCAL (default: URBAN)
    - **origin_address** / **destination_address** and optional coordinates
    - **planned_date**: Today or later; optional start and end time of day
    - **total_load_kg** / **total_volume_m3**: Checked against vehicle capacity
    - **stops**: Optional ordered stops

    **Note**: Distance, duration and costs are estimated from the coordinates
    and the route type unless provided explicitly.
    """
    try:
        route = await route_service.create_route(route_data, context)
        return ResponseModel(status_code=status.HTTP_201_CREATED, data=route)

    except AppException as e:
        logger.info(
            "Route creation rejected",
            route_name=route_data.name,
            driver_id=str(route_data.driver_id),
            vehicle_id=str(route_data.vehicle_id),
            error=e.message,
        )
        raise


@router.get(
    "",
    response_model=ListResponseModel[RouteListItem],
    responses={
        200: {"description": "Routes retrieved successfully"},
    },
    summary="List routes",
    description="List routes with pagination and optional filtering",
)
async def list_routes(
    route_service: RouteServiceDep,
    route_code: Annotated[Optional[str], Query(description="Exact route code")] = None,
    status_filter: Annotated[
        Optional[RouteStatus], Query(alias="status", description="Filter by status")
    ] = None,
    type: Annotated[Optional[RouteType], Query(description="Filter by route type")] = None,
    driver_id: Annotated[Optional[UUID], Query(description="Filter by driver")] = None,
    vehicle_id: Annotated[Optional[UUID], Query(description="Filter by vehicle")] = None,
    planned_date_from: Annotated[
        Optional[date], Query(description="Earliest planned date")
    ] = None,
    planned_date_to: Annotated[Optional[date], Query(description="Latest planned date")] = None,
    search: Annotated[
        Optional[str], Query(max_length=255, description="Case-insensitive match on name")
    ] = None,
    limit: Annotated[
        int,
        Query(ge=1, le=100, description="Number of routes to return (1-100)"),
    ] = 20,
    offset: Annotated[
        int,
        Query(ge=0, description="Number of routes to skip (pagination)"),
    ] = 0,
):
    """
    List routes, most recent planned date first.

    **Examples:**
    - Routes of a driver still in progress: `?driver_id=...&status=IN_PROGRESS`
    - Routes planned for January: `?planned_date_from=2024-01-01&planned_date_to=2024-01-31`
    """
    try:
        filters = RouteFilters(
            route_code=route_code,
            status=status_filter,
            type=type,
            driver_id=driver_id,
            vehicle_id=vehicle_id,
            planned_date_from=planned_date_from,
            planned_date_to=planned_date_to,
            search=search,
        )
    except ValidationError as e:
        raise RouteValidationException(
            message=e.errors()[0]["msg"],
            field="planned_date_from",
            value=str(planned_date_from),
        ) from e

    routes, total_count = await route_service.list_routes(filters, limit=limit, offset=offset)

    return ListResponseModel(
        status_code=status.HTTP_200_OK,
        data=routes,
        records_per_page=limit,
        total_count=total_count,
        offset=offset,
    )


@router.get(
    "/{route_id}",
    response_model=ResponseModel[RouteResponse],
    responses={
        200: {"description": "Route retrieved successfully"},
        404: {"description": "Route not found"},
    },
    summary="Get route by ID",
    description="Retrieve a route with its stops and derived metrics",
)
async def get_route(
    route_id: RouteIdPath,
    route_service: RouteServiceDep,
):
    """
    Get a route by ID.

    Besides the stored fields the response carries `is_delayed`,
    `capacity_utilization`, `progress_percentage` and
    `estimated_time_remaining_minutes`.
    """
    route = await route_service.get_route(route_id)
    return ResponseModel(status_code=status.HTTP_200_OK, data=route)


@router.patch(
    "/{route_id}",
    response_model=ResponseModel[RouteResponse],
    responses={
        200: {"description": "Route updated successfully"},
        404: {"description": "Route not found"},
        409: {"description": "Route code in use, or driver/vehicle already on an active route"},
    },
    summary="Update a route",
    description="Update a PLANNED route (status changes use the lifecycle endpoints)",
)
async def update_route(
    route_id: RouteIdPath,
    route_data: RouteUpdate,
    route_service: RouteServiceDep,
    context: AuditContextDep,
):
    """
    Update an existing route.

    **Note**:
    - Only PLANNED routes can be edited
    - Only the fields present in the body are changed
    - `stops`, when given, replaces all stops of the route
    """
    try:
        route = await route_service.update_route(route_id, route_data, context)
        return ResponseModel(status_code=status.HTTP_200_OK, data=route)

    except AppException as e:
        logger.info(
            "Route update rejected",
            route_id=str(route_id),
            error=e.message,
        )
        raise


@router.delete(
    "/{route_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        204: {"description": "Route deleted successfully"},
        400: {"description": "Route is in progress"},
        404: {"description": "Route not found"},
    },
    summary="Delete a route (soft delete)",
    description="Soft delete a route that is not in progress",
)
async def delete_route(
    route_id: RouteIdPath,
    route_service: RouteServiceDep,
    context: AuditContextDep,
):
    """
    Delete a route (soft delete).

    The row is kept with `deleted_at` set and disappears from every listing.
    """
    await route_service.delete_route(route_id, context)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{route_id}/start",
    response_model=ResponseModel[RouteResponse],
    summary="Start a route",
    description="PLANNED -> IN_PROGRESS, records the actual start time",
)
async def start_route(
    route_id: RouteIdPath,
    route_service: RouteServiceDep,
    context: AuditContextDep,
):
    route = await route_service.start_route(route_id, context)
    return ResponseModel(status_code=status.HTTP_200_OK, data=route)


@router.post(
    "/{route_id}/pause",
    response_model=ResponseModel[RouteResponse],
    summary="Pause a route",
    description="IN_PROGRESS -> PAUSED",
)
async def pause_route(
    route_id: RouteIdPath,
    route_service: RouteServiceDep,
    context: AuditContextDep,
):
    route = await route_service.pause_route(route_id, context)
    return ResponseModel(status_code=status.HTTP_200_OK, data=route)


@router.post(
    "/{route_id}/resume",
    response_model=ResponseModel[RouteResponse],
    summary="Resume a route",
    description="PAUSED -> IN_PROGRESS, the original start time is kept",
)
async def resume_route(
    route_id: RouteIdPath,
    route_service: RouteServiceDep,
    context: AuditContextDep,
):
    route = await route_service.resume_route(route_id, context)
    return ResponseModel(status_code=status.HTTP_200_OK, data=route)


@router.post(
    "/{route_id}/complete",
    response_model=ResponseModel[RouteResponse],
    summary="Complete a route",
    description="IN_PROGRESS -> COMPLETED, records end time and actual duration",
)
async def complete_route(
    route_id: RouteIdPath,
    route_service: RouteServiceDep,
    context: AuditContextDep,
    completion: Annotated[Optional[RouteComplete], Body()] = None,
):
    """
    Complete a route.

    The body is optional and may carry `actual_distance_km` and closing `notes`.
    """
    route = await route_service.complete_route(route_id, context, completion)
    return ResponseModel(status_code=status.HTTP_200_OK, data=route)


@router.post(
    "/{route_id}/cancel",
    response_model=ResponseModel[RouteResponse],
    summary="Cancel a route",
    description="Any non-final status -> CANCELLED, a reason of at least 10 characters is required",
)
async def cancel_route(
    route_id: RouteIdPath,
    cancellation: RouteCancel,
    route_service: RouteServiceDep,
    context: AuditContextDep,
):
    try:
        route = await route_service.cancel_route(route_id, cancellation, context)
        return ResponseModel(status_code=status.HTTP_200_OK, data=route)

    except AppException as e:
        logger.info(
            "Route cancellation rejected",
            route_id=str(route_id),
            error=e.message,
        )
        raise


@router.get(
    "/{route_id}/history",
    response_model=ListResponseModel[RouteHistoryResponse],
    summary="Route history",
    description="Audit trail of a route, oldest entry first",
)
async def get_route_history(
    route_id: RouteIdPath,
    route_service: RouteServiceDep,
):
    entries = await route_service.get_route_history(route_id)
    return ListResponseModel(
        status_code=status.HTTP_200_OK,
        data=entries,
        records_per_page=len(entries),
        total_count=len(entries),
    )


@router.get(
    "/{route_id}/stops",
    response_model=ListResponseModel[RouteStopResponse],
    summary="Route stops",
    description="Stops of a route in sequence order",
)
async def get_route_stops(
    route_id: RouteIdPath,
    route_service: RouteServiceDep,
):
    stops = await route_service.get_route_stops(route_id)
    return ListResponseModel(
        status_code=status.HTTP_200_OK,
        data=stops,
        records_per_page=len(stops),
        total_count=len(stops),
    )
