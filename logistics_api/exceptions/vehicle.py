"""
Custom exceptions for Vehicle lookups and assignment.
"""

from typing import Optional
from uuid import UUID

from logistics_api.exceptions.app import AppException, ErrorTypes


class VehicleNotFoundException(AppException):
    def __init__(
        self,
        vehicle_id: UUID,
        message: Optional[str] = None,
        **kwargs,
    ) -> None:
        super().__init__(
            type=ErrorTypes.ResourceNotFound,
            message=message or f"Vehicle with id '{vehicle_id}' not found",
            resource="vehicle",
            field="vehicle_id",
            value=str(vehicle_id),
            **kwargs,
        )


class VehicleUnavailableException(AppException):
    """Exception raised when a vehicle's status does not allow new routes."""

    def __init__(
        self,
        vehicle_id: UUID,
        vehicle_status: str,
        message: Optional[str] = None,
        **kwargs,
    ) -> None:
        super().__init__(
            type=ErrorTypes.BusinessRuleViolation,
            message=message
            or f"Vehicle is not available for routes (status: {vehicle_status})",
            resource="vehicle",
            field="vehicle_id",
            value=str(vehicle_id),
            **kwargs,
        )
        self.vehicle_status = vehicle_status


class VehicleAlreadyAssignedException(AppException):
    """Exception raised when a vehicle already has an active route."""

    def __init__(
        self,
        vehicle_id: UUID,
        route_code: Optional[str] = None,
        message: Optional[str] = None,
        **kwargs,
    ) -> None:
        if message is None:
            if route_code is not None:
                message = f"Vehicle already has an active route: {route_code}"
            else:
                message = f"Vehicle '{vehicle_id}' already has an active route"
        super().__init__(
            type=ErrorTypes.ResourceConflict,
            message=message,
            resource="vehicle",
            field="vehicle_id",
            value=str(vehicle_id),
            **kwargs,
        )
        self.route_code = route_code


class VehicleOperationException(AppException):
    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        **kwargs,
    ) -> None:
        super().__init__(
            type=ErrorTypes.InternalError,
            message=message,
            resource="vehicle",
            **kwargs,
        )
        self.operation = operation
