"""
Custom exceptions for Route operations.
"""

from typing import Any, Optional
from uuid import UUID

from logistics_api.exceptions.app import AppException, ErrorTypes


class RouteNotFoundException(AppException):
    """Exception raised when a route is not found."""

    def __init__(
        self,
        route_id: Optional[UUID] = None,
        route_code: Optional[str] = None,
        message: Optional[str] = None,
        **kwargs,
    ) -> None:
        if message is None:
            if route_id is not None:
                message = f"Route with id '{route_id}' not found"
            elif route_code is not None:
                message = f"Route with code '{route_code}' not found"
            else:
                message = "Route not found"

        field = "id" if route_id is not None else "route_code" if route_code is not None else None
        value = str(route_id) if route_id is not None else route_code

        super().__init__(
            type=ErrorTypes.ResourceNotFound,
            message=message,
            resource="route",
            field=field,
            value=value,
            **kwargs,
        )


class RouteAlreadyExistsException(AppException):
    """Exception raised when a route code is already used by another route."""

    def __init__(
        self,
        route_code: str,
        message: Optional[str] = None,
        **kwargs,
    ) -> None:
        if message is None:
            message = f"Route code '{route_code}' is already in use"
        super().__init__(
            type=ErrorTypes.ResourceAlreadyExists,
            message=message,
            resource="route",
            field="route_code",
            value=route_code,
            **kwargs,
        )


class RouteValidationException(AppException):
    """Exception raised when route data breaks a business rule."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs,
    ) -> None:
        super().__init__(
            type=ErrorTypes.BusinessRuleViolation,
            message=message,
            resource="route",
            field=field,
            value=value,
            **kwargs,
        )


class InvalidStatusTransitionException(AppException):
    """Exception raised when a status change is not allowed by the transition table."""

    def __init__(
        self,
        current_status: str,
        new_status: str,
        message: Optional[str] = None,
        **kwargs,
    ) -> None:
        if message is None:
            message = (
                f"Invalid status transition from {current_status} to {new_status}"
            )
        super().__init__(
            type=ErrorTypes.BusinessRuleViolation,
            message=message,
            resource="route",
            field="status",
            value=new_status,
            **kwargs,
        )
        self.current_status = current_status
        self.new_status = new_status


class RouteCapacityExceededException(AppException):
    """Exception raised when the route load or volume exceeds the vehicle capacity."""

    def __init__(
        self,
        field: str,
        requested: float,
        capacity: float,
        message: Optional[str] = None,
        **kwargs,
    ) -> None:
        if message is None:
            unit = "kg" if field == "total_load_kg" else "m³"
            message = (
                f"Requested {field} ({requested}{unit}) exceeds vehicle capacity "
                f"({capacity}{unit})"
            )
        super().__init__(
            type=ErrorTypes.BusinessRuleViolation,
            message=message,
            resource="route",
            field=field,
            value=requested,
            **kwargs,
        )
        self.capacity = capacity


class RouteOperationException(AppException):
    """Exception raised when a route operation is refused or fails."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        error_type: ErrorTypes = ErrorTypes.InvalidOperation,
        **kwargs,
    ) -> None:
        super().__init__(
            type=error_type,
            message=message,
            resource="route",
            **kwargs,
        )
        self.operation = operation
