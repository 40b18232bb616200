"""
Base exception and error categories shared by the route, driver and vehicle errors.
"""

from enum import StrEnum
from typing import Any, Optional


class ErrorTypes(StrEnum):
    """Error category carried in every error body; it selects the HTTP status."""

    # 422, request schema errors
    InputValidationError = "VALIDATION_ERROR"
    # 409, duplicate route code
    ResourceAlreadyExists = "RESOURCE_ALREADY_EXISTS"
    # 409, driver or vehicle already on an active route
    ResourceConflict = "RESOURCE_CONFLICT"
    # 404
    ResourceNotFound = "RESOURCE_NOT_FOUND"
    # 400, lifecycle, capacity and date rules
    BusinessRuleViolation = "BUSINESS_RULE_VIOLATION"
    # 400, edits or deletes refused in the current status
    InvalidOperation = "INVALID_OPERATION"
    # 500, storage failures
    InternalError = "INTERNAL_ERROR"


class AppException(Exception):
    """
    Base class for all domain errors.

    ``resource``, ``field`` and ``value`` point at what was rejected and are
    echoed in the error body. Extra keyword arguments are kept on ``context``
    for logging.
    """

    def __init__(
        self,
        type: ErrorTypes,
        message: str,
        resource: Optional[str] = None,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs,
    ) -> None:
        self.type = type
        self.message = message
        self.resource = resource
        self.field = field
        self.value = value
        self.context = kwargs
        super().__init__(f"{type}: {message}")
