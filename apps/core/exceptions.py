"""
Standardized error handling for the Newsdesk API.

The lifecycle engine raises the typed exceptions below. At the API boundary
``newsdesk_exception_handler`` turns every error into one JSON envelope:

    {
        "error": {
            "code": "CONFLICT",
            "message": "...",
            "field": "...",        # when one input is at fault
            "details": {...},      # structured context
            "retry": "reload"      # what the client should do next
        },
        "request_id": "..."
    }

``retry`` tells an editorial client how to recover: ``reload`` (fetch the
article again and re-issue the action on the fresh version), ``refresh``
(fetch the article and let the user pick a new action, the current one is
no longer legal) or ``later`` (nothing to fix, try again after a while).
Errors that the caller must correct carry no hint.
"""

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from .middleware import get_request_id

logger = logging.getLogger(__name__)


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Caller must fix the request (400)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_VALUE = "INVALID_VALUE"

    # Authentication/Authorization (401/403)
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    PERMISSION_DENIED = "PERMISSION_DENIED"

    NOT_FOUND = "NOT_FOUND"

    # Workflow state (409)
    CONFLICT = "CONFLICT"
    ILLEGAL_TRANSITION = "ILLEGAL_TRANSITION"
    SCHEDULE_NOT_DUE = "SCHEDULE_NOT_DUE"

    INTERNAL_ERROR = "INTERNAL_ERROR"


class RetryHint(str, Enum):
    RELOAD = "reload"
    REFRESH = "refresh"
    LATER = "later"


RETRY_HINTS = {
    ErrorCode.CONFLICT: RetryHint.RELOAD,
    ErrorCode.ILLEGAL_TRANSITION: RetryHint.REFRESH,
    ErrorCode.SCHEDULE_NOT_DUE: RetryHint.LATER,
    ErrorCode.INTERNAL_ERROR: RetryHint.LATER,
}

# Codes for errors DRF raises itself (authentication, routing, parsing)
STATUS_ERROR_CODES = {
    status.HTTP_401_UNAUTHORIZED: ErrorCode.AUTHENTICATION_REQUIRED,
    status.HTTP_403_FORBIDDEN: ErrorCode.PERMISSION_DENIED,
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
}


@dataclass
class ErrorEnvelope:
    code: ErrorCode
    message: str
    request_id: str
    field: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    @property
    def retry(self) -> Optional[RetryHint]:
        return RETRY_HINTS.get(self.code)

    def to_dict(self) -> Dict[str, Any]:
        error = {"code": self.code.value, "message": self.message}
        if self.field:
            error["field"] = self.field
        if self.details:
            error["details"] = self.details
        if self.retry:
            error["retry"] = self.retry.value
        return {"error": error, "request_id": self.request_id}

    def response(self, status_code: int) -> Response:
        return Response(self.to_dict(), status=status_code)


# =============================================================================
# Engine Exceptions
# =============================================================================

class NewsdeskException(APIException):
    """Base exception for Newsdesk errors."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = ErrorCode.INTERNAL_ERROR
    default_detail = "An error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_detail
        self.error_code = code or self.error_code
        self.field = field
        self.error_details = details or {}
        super().__init__(detail=self.message)

    @property
    def retry_hint(self) -> Optional[RetryHint]:
        return RETRY_HINTS.get(self.error_code)

    def envelope(self, request_id: str) -> ErrorEnvelope:
        return ErrorEnvelope(
            code=self.error_code,
            message=self.message,
            request_id=request_id,
            field=self.field,
            details=self.error_details,
        )


class ValidationError(NewsdeskException):
    """Structurally invalid request. Never retried."""
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = ErrorCode.VALIDATION_ERROR
    default_detail = "Validation failed"


class NotFoundError(NewsdeskException):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = ErrorCode.NOT_FOUND
    default_detail = "Resource not found"


class IllegalTransitionError(NewsdeskException):
    """Transition not legal from the current status. Caller should refresh state."""
    status_code = status.HTTP_409_CONFLICT
    error_code = ErrorCode.ILLEGAL_TRANSITION
    default_detail = "Transition not allowed from the current status"


class ConflictError(NewsdeskException):
    """Concurrent modification detected at save time. Caller should reload and retry."""
    status_code = status.HTTP_409_CONFLICT
    error_code = ErrorCode.CONFLICT
    default_detail = "The resource was modified concurrently"


class AuthorizationError(NewsdeskException):
    """Actor's role or ownership is insufficient for the requested action."""
    status_code = status.HTTP_403_FORBIDDEN
    error_code = ErrorCode.PERMISSION_DENIED
    default_detail = "Permission denied"


# =============================================================================
# Exception Handler
# =============================================================================

def _request_id(request) -> str:
    return (
        getattr(request, 'request_id', None)
        or get_request_id()
        or str(uuid.uuid4())
    )


def _from_drf_response(response, request_id: str) -> ErrorEnvelope:
    """Wrap an error DRF already rendered (auth, 404, serializer errors)."""
    code = STATUS_ERROR_CODES.get(response.status_code, ErrorCode.VALIDATION_ERROR)
    data = response.data

    if isinstance(data, dict) and 'detail' in data:
        return ErrorEnvelope(code, str(data['detail']), request_id)
    if isinstance(data, dict):
        # Serializer errors, keyed by field
        return ErrorEnvelope(code, "Validation failed", request_id, details=data)
    if isinstance(data, list) and data:
        return ErrorEnvelope(code, str(data[0]), request_id, details={"errors": data})
    return ErrorEnvelope(code, str(data), request_id)


def newsdesk_exception_handler(exc, context):
    """
    DRF exception handler (``REST_FRAMEWORK['EXCEPTION_HANDLER']``).

    Engine exceptions are logged at warning with their code; anything DRF
    cannot render is logged with its traceback and hidden behind
    INTERNAL_ERROR.
    """
    request_id = _request_id(context.get('request'))

    if isinstance(exc, NewsdeskException):
        logger.warning(
            "%s: %s",
            exc.error_code.value,
            exc.message,
            extra={
                "request_id": request_id,
                "error_code": exc.error_code.value,
                "field": exc.field,
                "status_code": exc.status_code,
            },
        )
        return exc.envelope(request_id).response(exc.status_code)

    response = drf_exception_handler(exc, context)
    if response is not None:
        return _from_drf_response(response, request_id).response(response.status_code)

    logger.exception(
        "Unhandled %s", type(exc).__name__,
        extra={"request_id": request_id},
    )
    envelope = ErrorEnvelope(
        ErrorCode.INTERNAL_ERROR,
        "An unexpected error occurred",
        request_id,
    )
    return envelope.response(status.HTTP_500_INTERNAL_SERVER_ERROR)
