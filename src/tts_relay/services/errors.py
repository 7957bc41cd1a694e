"""
Error Taxonomy for tts-relay.

Every failure that reaches a caller is a RelayError carrying the HTTP
status and the OpenAI-style error type it is rendered with:

    {"error": {"message": "...", "type": "invalid_request_error", "status": 400}}

Key Store and Voice Catalog failures are converted to the nearest kind at
their boundary. The Speech Forwarder keeps transport failures (TimeoutError,
UpstreamUnavailableError) apart from provider rejections
(UpstreamRejectionError) because callers see different codes for them.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """Machine-readable error kinds, used as metric labels and log fields."""
    VALIDATION = "VALIDATION"
    AUTHENTICATION = "AUTHENTICATION"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    TIMEOUT = "TIMEOUT"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    UPSTREAM_REJECTED = "UPSTREAM_REJECTED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class RelayError(Exception):
    """
    Base exception for relay errors.

    Attributes:
        message: Human-readable description, shown to the caller.
        status: HTTP status code the error is rendered with.
        error_type: OpenAI-style error type string.
        code: Value from ErrorCode.
        details: Extra context for logs; never rendered.
    """
    status: int = 500
    error_type: str = "server_error"
    code: str = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        error_type: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        if status is not None:
            self.status = status
        if error_type is not None:
            self.error_type = error_type
        if code is not None:
            self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": {
                "message": self.message,
                "type": self.error_type,
                "status": self.status,
            }
        }


class ValidationError(RelayError):
    """Bad or missing input."""
    status = 400
    error_type = "invalid_request_error"
    code = ErrorCode.VALIDATION


class AuthenticationError(RelayError):
    """Missing or inactive custom key, or missing dashboard session."""
    status = 401
    error_type = "authentication_error"
    code = ErrorCode.AUTHENTICATION


class NotFoundError(RelayError):
    status = 404
    error_type = "not_found_error"
    code = ErrorCode.NOT_FOUND


class RateLimitError(RelayError):
    """Caller or upstream account is over its limit."""
    status = 429
    error_type = "rate_limit_error"
    code = ErrorCode.RATE_LIMITED


class TimeoutError(RelayError):
    """An upstream call exceeded its timeout."""
    status = 408
    error_type = "timeout_error"
    code = ErrorCode.TIMEOUT


class UpstreamUnavailableError(RelayError):
    """Upstream unreachable (DNS, refused connection, 5xx probe, bad body)."""
    status = 503
    error_type = "server_error"
    code = ErrorCode.UPSTREAM_UNAVAILABLE


class UpstreamRejectionError(RelayError):
    """
    Upstream answered but refused the request.

    4xx-class rejections are reported to the caller as invalid requests,
    everything else as a server error.
    """
    code = ErrorCode.UPSTREAM_REJECTED

    def __init__(self, message: str, status: int = 500, details: Optional[Dict[str, Any]] = None):
        error_type = "invalid_request_error" if 400 <= status < 500 else "server_error"
        super().__init__(message, status=status, error_type=error_type, details=details)


class InternalError(RelayError):
    status = 500
    error_type = "server_error"
    code = ErrorCode.INTERNAL_ERROR
