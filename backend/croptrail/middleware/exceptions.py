"""Custom exception handlers for consistent error responses.

Every error leaves the API in one shape:

    {"error": {"code": "...", "message": "...", "details": {...}}}

Status codes: 400 invalid input, 401 missing/invalid credential, 402
upstream payment required, 403 denied, 404 not found, 409 conflicting
state, 429 rate limited, 500 unhandled or upstream failure.
"""

import logging
import traceback
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class CropTrailException(Exception):
    """Base exception for CropTrail application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(self.message)


class AuthenticationError(CropTrailException):
    """Missing, invalid, expired or revoked bearer credential."""

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="UNAUTHORIZED",
        )


class PermissionDeniedError(CropTrailException):
    """Exception for permission denied."""

    def __init__(self, message: str = "Permission denied"):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="PERMISSION_DENIED",
        )


class ResourceNotFoundError(CropTrailException):
    """Exception for resources not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="RESOURCE_NOT_FOUND",
        )


class ConflictError(CropTrailException):
    """The target row already exists (claimed batch, recorded stage)."""

    def __init__(self, message: str, error_code: str = "CONFLICT"):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code=error_code,
        )


class InvalidTransitionError(ConflictError):
    """The batch is not in a status the requested action can start from."""

    def __init__(self, message: str):
        super().__init__(message=message, error_code="INVALID_STATUS_TRANSITION")


class UpstreamQuotaError(CropTrailException):
    """Upstream rate limit (429) or payment required (402), passed through."""

    def __init__(self, status_code: int, message: str):
        super().__init__(
            message=message,
            status_code=status_code,
            error_code="UPSTREAM_RATE_LIMITED"
            if status_code == status.HTTP_429_TOO_MANY_REQUESTS
            else "UPSTREAM_PAYMENT_REQUIRED",
        )


class UpstreamServiceError(CropTrailException):
    """Any other failure of an external API."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="UPSTREAM_ERROR",
        )


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Union[dict, list, None] = None,
    headers: dict | None = None,
) -> JSONResponse:
    """Build the JSON error envelope; ``details`` is omitted when empty."""
    error: dict = {"code": error_code, "message": message}
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error}, headers=headers)


def _request_context(request: Request, **extra) -> dict:
    return {"path": request.url.path, "method": request.method, **extra}


# ── Handlers ─────────────────────────────────────────────────

async def croptrail_exception_handler(
    request: Request,
    exc: CropTrailException,
) -> JSONResponse:
    # Upstream and internal failures are errors; refusals are warnings.
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}",
        extra=_request_context(request, error_code=exc.error_code),
    )

    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return create_error_response(exc.status_code, exc.message, exc.error_code, headers=headers)


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    """Routing-level errors (unknown path, wrong method) in the same envelope."""
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {exc.detail}", extra=_request_context(request))

    return create_error_response(
        exc.status_code,
        str(exc.detail),
        f"HTTP_{exc.status_code}",
        headers=getattr(exc, "headers", None),
    )


def _format_validation_errors(exc: Union[RequestValidationError, ValidationError]) -> list[dict]:
    return [
        {
            "field": " -> ".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    """Missing or malformed input is a 400, not FastAPI's default 422."""
    errors = _format_validation_errors(exc)
    logger.warning(
        f"Rejected input on {request.url.path} ({len(errors)} error(s))",
        extra=_request_context(request),
    )
    return create_error_response(
        status.HTTP_400_BAD_REQUEST,
        "Validation error",
        "VALIDATION_ERROR",
        details={"errors": errors},
    )


# (substring of the driver message, status, message, code); first match wins.
_INTEGRITY_VIOLATIONS = (
    ("unique", status.HTTP_409_CONFLICT, "A record with this value already exists", "DUPLICATE_RECORD"),
    ("foreign key", status.HTTP_400_BAD_REQUEST, "Referenced record does not exist", "FOREIGN_KEY_VIOLATION"),
    ("not null", status.HTTP_400_BAD_REQUEST, "Required field is missing", "NULL_VALUE_NOT_ALLOWED"),
)


async def database_exception_handler(
    request: Request,
    exc: IntegrityError,
) -> JSONResponse:
    """Constraint violations that got past the service-level checks.

    A unique violation here is a lost race on a one-per-batch row (two
    transporters claiming at once, a stage recorded twice) and maps to 409.
    """
    driver_message = str(getattr(exc, "orig", exc)).lower()
    logger.error(
        f"Integrity error on {request.url.path}: {driver_message}",
        extra=_request_context(request),
    )

    for needle, status_code, message, error_code in _INTEGRITY_VIOLATIONS:
        if needle in driver_message:
            return create_error_response(status_code, message, error_code)
    return create_error_response(
        status.HTTP_400_BAD_REQUEST, "Database constraint violation", "INTEGRITY_ERROR"
    )


async def operational_exception_handler(
    request: Request,
    exc: OperationalError,
) -> JSONResponse:
    logger.error(
        f"Database unavailable on {request.url.path}: {exc}",
        extra=_request_context(request),
    )
    return create_error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Database temporarily unavailable. Please try again.",
        "DATABASE_UNAVAILABLE",
    )


async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Anything unexpected: full traceback in the log, generic message out."""
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.url.path}: {exc}",
        extra=_request_context(request, traceback=traceback.format_exc()),
        exc_info=True,
    )
    return create_error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please try again later.",
        "INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    """Register all custom exception handlers with FastAPI app."""
    for exc_class, handler in (
        (CropTrailException, croptrail_exception_handler),
        (HTTPException, http_exception_handler),
        (StarletteHTTPException, http_exception_handler),
        (RequestValidationError, validation_exception_handler),
        (ValidationError, validation_exception_handler),
        (IntegrityError, database_exception_handler),
        (OperationalError, operational_exception_handler),
        (Exception, general_exception_handler),
    ):
        app.add_exception_handler(exc_class, handler)
