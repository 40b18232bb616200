"""
Custom exceptions for Driver lookups and assignment.
"""

from typing import Optional
from uuid import UUID

from logistics_api.exceptions.app import AppException, ErrorTypes


class DriverNotFoundException(AppException):
    def __init__(
        self,
        driver_id: UUID,
        message: Optional[str] = None,
        **kwargs,
    ) -> None:
        super().__init__(
            type=ErrorTypes.ResourceNotFound,
            message=message or f"Driver with id '{driver_id}' not found",
            resource="driver",
            field="driver_id",
            value=str(driver_id),
            **kwargs,
        )


class DriverInactiveException(AppException):
    """Exception raised when an inactive driver is assigned to a route."""

    def __init__(
        self,
        driver_id: UUID,
        message: Optional[str] = None,
        **kwargs,
    ) -> None:
        super().__init__(
            type=ErrorTypes.BusinessRuleViolation,
            message=message or f"Driver '{driver_id}' is inactive",
            resource="driver",
            field="driver_id",
            value=str(driver_id),
            **kwargs,
        )


class DriverAlreadyAssignedException(AppException):
    """Exception raised when a driver already has an active route."""

    def __init__(
        self,
        driver_id: UUID,
        route_code: Optional[str] = None,
        message: Optional[str] = None,
        **kwargs,
    ) -> None:
        if message is None:
            if route_code is not None:
                message = f"Driver already has an active route: {route_code}"
            else:
                message = f"Driver '{driver_id}' already has an active route"
        super().__init__(
            type=ErrorTypes.ResourceConflict,
            message=message,
            resource="driver",
            field="driver_id",
            value=str(driver_id),
            **kwargs,
        )
        self.route_code = route_code


class DriverOperationException(AppException):
    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        **kwargs,
    ) -> None:
        super().__init__(
            type=ErrorTypes.InternalError,
            message=message,
            resource="driver",
            **kwargs,
        )
        self.operation = operation
