"""
RFC 7807 Problem Details exception handling.

Every error the rental engine raises is a ``RentalAPIException`` carrying a
machine-readable ``ErrorCode``; the handlers below render them as
``application/problem+json``.

See: https://datatracker.ietf.org/doc/html/rfc7807
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional
import logging
import traceback
import uuid

from pydantic import BaseModel, Field
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from agri_rental.middleware.correlation import get_request_id

logger = logging.getLogger(__name__)

PROBLEM_TYPE_BASE = "https://api.agrirental.example/problems"


def _get_trace_id() -> str:
    """Use the request ID when inside a request, otherwise mint one."""
    request_id = get_request_id()
    if request_id and request_id != "unknown":
        return request_id
    return uuid.uuid4().hex[:12]


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class ErrorCode(str, Enum):
    """Standardized error codes for the rental API."""

    # Authentication & Authorization
    UNAUTHORIZED = "AUTH_001"
    FORBIDDEN = "AUTH_002"

    # Validation
    VALIDATION_ERROR = "VAL_001"

    # Resource
    NOT_FOUND = "RES_001"
    ALREADY_EXISTS = "RES_002"
    CONFLICT = "RES_003"

    # Rental scheduling
    DATE_RANGE_INVALID = "RNT_001"
    DATE_UNAVAILABLE = "RNT_002"
    INVALID_STATE_TRANSITION = "RNT_003"
    CREDENTIAL_INVALID = "RNT_004"
    CREDENTIAL_ALREADY_CONSUMED = "RNT_005"

    # Server
    INTERNAL_ERROR = "SRV_001"
    SERVICE_UNAVAILABLE = "SRV_002"


class ProblemDetail(BaseModel):
    """
    RFC 7807 Problem Details response schema.

    Attributes:
        type: URI reference identifying the problem type
        title: Short, human-readable summary
        status: HTTP status code
        detail: Human-readable explanation specific to this occurrence
        instance: URI reference identifying this specific occurrence
        code: Machine-readable error code for client handling
        timestamp: ISO 8601 timestamp of when the error occurred
        trace_id: Request ID for finding the matching log lines
        errors: Structured details (field errors, offending dates)
    """

    type: str = Field(default="about:blank")
    title: str
    status: int
    detail: str
    instance: Optional[str] = None
    code: str
    timestamp: str
    trace_id: str
    errors: Optional[List[Dict[str, Any]]] = None


def _problem_type(code: ErrorCode) -> str:
    return f"{PROBLEM_TYPE_BASE}/{code.value.lower().replace('_', '-')}"


class RentalAPIException(HTTPException):
    """
    Base exception with RFC 7807 support.

    Usage:
        raise RentalAPIException(
            status_code=404,
            code=ErrorCode.NOT_FOUND,
            detail="Equipment not found",
        )
    """

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        detail: str,
        title: Optional[str] = None,
        instance: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.code = code
        self.title = title or self._default_title(status_code)
        self.instance = instance
        self.errors = errors
        self.trace_id = _get_trace_id()
        self.timestamp = _utc_timestamp()

        super().__init__(status_code=status_code, detail=detail, headers=headers)

    @staticmethod
    def _default_title(status_code: int) -> str:
        titles = {
            400: "Bad Request",
            401: "Unauthorized",
            403: "Forbidden",
            404: "Not Found",
            409: "Conflict",
            422: "Validation Error",
            500: "Internal Server Error",
            503: "Service Unavailable",
        }
        return titles.get(status_code, "Error")

    def to_problem_detail(self, instance: Optional[str] = None) -> ProblemDetail:
        """Convert to RFC 7807 ProblemDetail."""
        return ProblemDetail(
            type=_problem_type(self.code),
            title=self.title,
            status=self.status_code,
            detail=self.detail,
            instance=self.instance or instance,
            code=self.code.value,
            timestamp=self.timestamp,
            trace_id=self.trace_id,
            errors=self.errors,
        )


class NotFoundError(RentalAPIException):
    """Resource not found (404)."""

    def __init__(self, resource: str, resource_id: Any):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(
            status_code=404,
            code=ErrorCode.NOT_FOUND,
            detail=f"{resource} with ID {resource_id} was not found",
        )


class UnauthorizedError(RentalAPIException):
    """Authentication required (401)."""

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=401,
            code=ErrorCode.UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenError(RentalAPIException):
    """Permission denied (403)."""

    def __init__(self, detail: str = "Permission denied"):
        super().__init__(status_code=403, code=ErrorCode.FORBIDDEN, detail=detail)


class ConflictError(RentalAPIException):
    """Resource conflict (409)."""

    def __init__(self, detail: str):
        super().__init__(status_code=409, code=ErrorCode.CONFLICT, detail=detail)


class ValidationFailed(RentalAPIException):
    """Request body is well-formed but semantically invalid (422)."""

    def __init__(self, detail: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(status_code=422, code=ErrorCode.VALIDATION_ERROR, detail=detail, errors=errors)


class DateRangeInvalid(RentalAPIException):
    """End not after start, or the range lies in the past (422)."""

    def __init__(self, detail: str):
        super().__init__(status_code=422, code=ErrorCode.DATE_RANGE_INVALID, detail=detail)


class DateUnavailable(RentalAPIException):
    """Requested dates failed the availability check at submission (409).

    ``errors`` lists every offending date with its reason so the client can
    refresh the calendar and re-run the selection.
    """

    def __init__(self, unavailable: Dict[date, str]):
        self.unavailable_dates = sorted(unavailable)
        listed = ", ".join(d.isoformat() for d in self.unavailable_dates)
        super().__init__(
            status_code=409,
            code=ErrorCode.DATE_UNAVAILABLE,
            detail=f"Equipment is not available for the selected dates: {listed}",
            errors=[
                {"date": d.isoformat(), "reason": unavailable[d]}
                for d in self.unavailable_dates
            ],
        )


class InvalidStateTransition(RentalAPIException):
    """Lifecycle guard violated (409)."""

    def __init__(self, request_id: Any, current_status: str, action: str):
        self.request_id = request_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            status_code=409,
            code=ErrorCode.INVALID_STATE_TRANSITION,
            detail=f"Cannot {action} rental request {request_id} while it is {current_status}",
            errors=[{"current_status": current_status, "action": action}],
        )


class CredentialInvalid(RentalAPIException):
    """Scanned pickup/return credential does not match (400)."""

    def __init__(self, detail: str = "Credential is not valid for this rental request"):
        super().__init__(status_code=400, code=ErrorCode.CREDENTIAL_INVALID, detail=detail)


class CredentialAlreadyConsumed(RentalAPIException):
    """Scanned credential was already used (409)."""

    def __init__(self, purpose: str):
        super().__init__(
            status_code=409,
            code=ErrorCode.CREDENTIAL_ALREADY_CONSUMED,
            detail=f"The {purpose} credential has already been used",
        )


# Exception handlers for FastAPI

def create_problem_response(
    status_code: int,
    code: ErrorCode,
    detail: str,
    request: Request,
    errors: Optional[List[Dict[str, Any]]] = None,
    trace_id: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Create an RFC 7807 compliant JSON response."""
    problem = ProblemDetail(
        type=_problem_type(code),
        title=RentalAPIException._default_title(status_code),
        status=status_code,
        detail=detail,
        instance=str(request.url.path),
        code=code.value,
        timestamp=_utc_timestamp(),
        trace_id=trace_id or _get_trace_id(),
        errors=errors,
    )
    return JSONResponse(
        status_code=status_code,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
        headers=headers,
    )


def _jsonable_errors(errors: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in errors
    ]


def create_exception_handlers():
    """
    Create exception handlers.

    Usage in main.py:
        handlers = create_exception_handlers()
        app.add_exception_handler(RentalAPIException, handlers["rental"])
        app.add_exception_handler(RequestValidationError, handlers["validation"])
        app.add_exception_handler(Exception, handlers["generic"])
    """

    async def handle_rental_exception(request: Request, exc: RentalAPIException) -> JSONResponse:
        logger.warning(
            "%s %s: %s",
            exc.code.value,
            request.url.path,
            exc.detail,
            extra={"trace_id": exc.trace_id, "status_code": exc.status_code},
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_problem_detail(instance=str(request.url.path)).model_dump(exclude_none=True),
            media_type="application/problem+json",
            headers=exc.headers,
        )

    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Handle plain HTTPException with RFC 7807 response."""
        code_map = {
            400: ErrorCode.VALIDATION_ERROR,
            401: ErrorCode.UNAUTHORIZED,
            403: ErrorCode.FORBIDDEN,
            404: ErrorCode.NOT_FOUND,
            409: ErrorCode.CONFLICT,
            422: ErrorCode.VALIDATION_ERROR,
            503: ErrorCode.SERVICE_UNAVAILABLE,
        }
        return create_problem_response(
            status_code=exc.status_code,
            code=code_map.get(exc.status_code, ErrorCode.INTERNAL_ERROR),
            detail=str(exc.detail),
            request=request,
            headers=getattr(exc, "headers", None),
        )

    async def handle_validation_exception(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Handle Pydantic validation errors with field-level details."""
        return create_problem_response(
            status_code=422,
            code=ErrorCode.VALIDATION_ERROR,
            detail="Request validation failed",
            request=request,
            errors=_jsonable_errors(exc.errors()),
        )

    async def handle_generic_exception(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions with RFC 7807 response."""
        trace_id = _get_trace_id()
        logger.error(
            "Unhandled exception on %s: %s",
            request.url.path,
            type(exc).__name__,
            extra={"trace_id": trace_id},
        )
        logger.error(traceback.format_exc())

        from agri_rental.config import settings
        detail = str(exc) if settings.DEBUG else "An unexpected error occurred"

        return create_problem_response(
            status_code=500,
            code=ErrorCode.INTERNAL_ERROR,
            detail=detail,
            request=request,
            trace_id=trace_id,
        )

    return {
        "rental": handle_rental_exception,
        "http": handle_http_exception,
        "validation": handle_validation_exception,
        "generic": handle_generic_exception,
    }
