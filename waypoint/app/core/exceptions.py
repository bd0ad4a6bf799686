"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger("waypoint.errors")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

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


class SessionNotFoundError(ResourceNotFoundError):
    """Raised for lookups by id or code that match no session."""

    def __init__(self, session_ref: Any = None):
        super().__init__("Session", session_ref)


class SessionNotActiveError(AppException):
    """Raised when a session is missing, ended, or past its expiry."""

    def __init__(self, session_id: Any = None):
        super().__init__(
            message="Session not active",
            error_code="ERR_SESSION_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"session_id": session_id}
        )


class NotInSessionError(AppException):
    """Raised when the calling device is not a participant of the session."""

    def __init__(self, session_id: Any = None):
        super().__init__(
            message="Not in session",
            error_code="ERR_SESSION_002",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"session_id": session_id}
        )


class NoPresenceRecordError(AppException):
    """Raised by delay operations when the participant never reported a position."""

    def __init__(self, participant_id: Any = None):
        super().__init__(
            message="No presence record",
            error_code="ERR_PRESENCE_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"participant_id": participant_id}
        )


class NoDestinationError(AppException):
    """Raised when a route is requested but no destination is known."""

    def __init__(self, session_id: Any = None):
        super().__init__(
            message="Session has no destination",
            error_code="ERR_ROUTE_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"session_id": session_id}
        )


class MissingDeviceIdentityError(AppException):
    """Raised when a request carries no device identity."""

    def __init__(self):
        super().__init__(
            message="Missing device identity",
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": [
                    {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
                    for err in exc.errors()
                ]
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
