"""
Domain exceptions raised by the route lifecycle and mapped to HTTP responses
by ``logistics_api.exceptions.handler``.
"""

from logistics_api.exceptions.app import AppException, ErrorTypes
from logistics_api.exceptions.driver import (
    DriverAlreadyAssignedException,
    DriverInactiveException,
    DriverNotFoundException,
    DriverOperationException,
)
from logistics_api.exceptions.route import (
    InvalidStatusTransitionException,
    RouteAlreadyExistsException,
    RouteCapacityExceededException,
    RouteNotFoundException,
    RouteOperationException,
    RouteValidationException,
)
from logistics_api.exceptions.vehicle import (
    VehicleAlreadyAssignedException,
    VehicleNotFoundException,
    VehicleOperationException,
    VehicleUnavailableException,
)

__all__ = [
    "AppException",
    "ErrorTypes",
    "DriverAlreadyAssignedException",
    "DriverInactiveException",
    "DriverNotFoundException",
    "DriverOperationException",
    "InvalidStatusTransitionException",
    "RouteAlreadyExistsException",
    "RouteCapacityExceededException",
    "RouteNotFoundException",
    "RouteOperationException",
    "RouteValidationException",
    "VehicleAlreadyAssignedException",
    "VehicleNotFoundException",
    "VehicleOperationException",
    "VehicleUnavailableException",
]
