"""
Exception handlers turning errors into the common error body.

Every non-2xx response has the shape of ``models.errors.HTTPException``:
``{status_code, title, detail, errors: [{type, message, resource, field, value}]}``.
"""

from typing import Optional, Union

import structlog
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from logistics_api.exceptions.app import AppException, ErrorTypes
from logistics_api.models.errors import HTTPDetail
from logistics_api.models.errors import HTTPException as HTTPExceptionModel

logger = structlog.get_logger(__name__)

STATUS_BY_ERROR_TYPE = {
    ErrorTypes.InputValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorTypes.ResourceAlreadyExists: status.HTTP_409_CONFLICT,
    ErrorTypes.ResourceConflict: status.HTTP_409_CONFLICT,
    ErrorTypes.ResourceNotFound: status.HTTP_404_NOT_FOUND,
    ErrorTypes.BusinessRuleViolation: status.HTTP_400_BAD_REQUEST,
    ErrorTypes.InvalidOperation: status.HTTP_400_BAD_REQUEST,
    ErrorTypes.InternalError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

TITLES = {
    400: "Bad Request",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
}


def get_status_code_from_error_type(error_type: ErrorTypes) -> int:
    return STATUS_BY_ERROR_TYPE.get(error_type, status.HTTP_500_INTERNAL_SERVER_ERROR)


def get_title_from_status_code(status_code: int) -> str:
    return TITLES.get(status_code, "Error")


def _error_response(
    status_code: int,
    detail: str,
    errors: list[HTTPDetail],
    title: Optional[str] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    body = HTTPExceptionModel(
        status_code=status_code,
        title=title or get_title_from_status_code(status_code),
        detail=detail,
        errors=errors,
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", exclude_none=True),
        headers=headers,
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Domain exceptions: status from the error type, details from the exception."""
    status_code = get_status_code_from_error_type(exc.type)

    if status_code >= 500:
        logger.error(
            "Application error",
            error_type=str(exc.type),
            resource=exc.resource,
            error=exc.message,
        )
    else:
        logger.info(
            "Request rejected",
            error_type=str(exc.type),
            resource=exc.resource,
            field=exc.field,
            status_code=status_code,
        )

    return _error_response(
        status_code,
        exc.message,
        [
            HTTPDetail(
                type=exc.type,
                message=exc.message,
                resource=exc.resource,
                field=exc.field,
                value=exc.value,
            )
        ],
    )


async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, ValidationError]
) -> JSONResponse:
    """Request schema errors, one entry per failing location."""
    errors = []
    for error in exc.errors():
        field_path = ".".join(str(loc) for loc in error.get("loc", []))
        error_input = error.get("input")
        errors.append(
            HTTPDetail(
                type=error.get("type", ErrorTypes.InputValidationError.value),
                message=error.get("msg", "Validation error"),
                field=field_path or None,
                # raw input can be arbitrary objects; keep only JSON scalars
                value=error_input if isinstance(error_input, (str, int, float, bool)) else None,
            )
        )

    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "One or more fields failed validation",
        errors,
        title="Validation Error",
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Framework raised HTTP errors such as unknown paths or wrong methods."""
    if exc.status_code == 404:
        error_type = ErrorTypes.ResourceNotFound
    elif exc.status_code == 409:
        error_type = ErrorTypes.ResourceConflict
    elif exc.status_code >= 500:
        error_type = ErrorTypes.InternalError
    else:
        error_type = ErrorTypes.InvalidOperation

    return _error_response(
        exc.status_code,
        str(exc.detail),
        [HTTPDetail(type=error_type, message=str(exc.detail), resource=request.url.path)],
        headers=getattr(exc, "headers", None),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything unhandled: logged with its traceback, reported without internals."""
    logger.exception(
        "Unhandled exception",
        exception_type=type(exc).__name__,
        path=request.url.path,
    )
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred",
        [
            HTTPDetail(
                type=ErrorTypes.InternalError,
                message="An unexpected error occurred. Please try again later.",
                resource=request.url.path,
            )
        ],
    )


def register_exception_handlers(app) -> None:
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
