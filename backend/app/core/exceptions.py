"""
Application exceptions and global handlers.

Freight business outcomes are returned as values and rendered by
`api/v1/responses.py`. The exceptions here cover the request boundary:
authentication, role and ownership gates, lookups in read endpoints, and
unexpected failures. Every error body has the shape
`{error_code, message, details}`.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException


logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base exception for the freight API."""

    def __init__(
        self,
        message: str,
        error_code: str,
        status_code: int = 500,
        details: Dict[str, Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        self.headers = headers
        super().__init__(self.message)


class AuthenticationError(AppException):
    """Missing, invalid or stale bearer token."""

    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"},
        )


class InactiveAccountError(AppException):
    def __init__(self):
        super().__init__(
            message="User account is inactive",
            error_code="ERR_AUTH_002",
            status_code=status.HTTP_403_FORBIDDEN,
        )


class InsufficientPermissionsError(AppException):
    """Caller's role may not use the endpoint."""

    def __init__(self, required_roles: List[str], message: str = "Insufficient permissions"):
        super().__init__(
            message=message,
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"required_roles": required_roles},
        )


class FreightAccessDeniedError(AppException):
    """Caller is not allowed to read the freight."""

    def __init__(self, freight_id: int):
        super().__init__(
            message="You do not have permission to access this freight",
            error_code="ERR_PERM_002",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"freight_id": freight_id},
        )


class ResourceNotFoundError(AppException):
    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class FreightNotFoundError(ResourceNotFoundError):
    def __init__(self, freight_id: int):
        super().__init__("Freight", freight_id)


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        },
        headers=exc.headers,
    )


HTTP_ERROR_CODES = {
    400: "ERR_BAD_REQUEST",
    401: "ERR_UNAUTHORIZED",
    403: "ERR_FORBIDDEN",
    404: "ERR_NOT_FOUND",
    405: "ERR_METHOD_NOT_ALLOWED",
    409: "ERR_CONFLICT",
}


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Framework-raised HTTP errors (missing bearer header, unknown route) in the common shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": HTTP_ERROR_CODES.get(exc.status_code, "ERR_UNKNOWN"),
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": jsonable_errors(exc)
            }
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry exception instances
    return [
        {key: (str(value) if key == "ctx" else value) for key, value in error.items()}
        for error in exc.errors()
    ]


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Unhandled failures, e.g. the database being unreachable."""
    logger.exception(
        "Unhandled exception",
        extra={"path": request.url.path, "method": request.method, "error_type": type(exc).__name__},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An unexpected error occurred",
            "details": {}
        }
    )
