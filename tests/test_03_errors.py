"""Tests for the relay error taxonomy and its HTTP envelope."""

import pytest

from tts_relay.services.errors import (
    AuthenticationError,
    ErrorCode,
    InternalError,
    NotFoundError,
    RateLimitError,
    RelayError,
    TimeoutError,
    UpstreamRejectionError,
    UpstreamUnavailableError,
    ValidationError,
)


class TestErrorKinds:
    """Each kind carries its HTTP status and error type."""

    @pytest.mark.parametrize("cls, status, error_type, code", [
        (ValidationError, 400, "invalid_request_error", ErrorCode.VALIDATION),
        (AuthenticationError, 401, "authentication_error", ErrorCode.AUTHENTICATION),
        (NotFoundError, 404, "not_found_error", ErrorCode.NOT_FOUND),
        (RateLimitError, 429, "rate_limit_error", ErrorCode.RATE_LIMITED),
        (TimeoutError, 408, "timeout_error", ErrorCode.TIMEOUT),
        (UpstreamUnavailableError, 503, "server_error", ErrorCode.UPSTREAM_UNAVAILABLE),
        (InternalError, 500, "server_error", ErrorCode.INTERNAL_ERROR),
    ])
    def test_defaults(self, cls, status, error_type, code):
        err = cls("boom")
        assert err.status == status
        assert err.error_type == error_type
        assert err.code == code
        assert isinstance(err, RelayError)

    def test_envelope(self):
        err = ValidationError("Speed must be between 0.25 and 4.0")
        assert err.to_dict() == {
            "error": {
                "message": "Speed must be between 0.25 and 4.0",
                "type": "invalid_request_error",
                "status": 400,
            }
        }

    def test_details_not_rendered(self):
        err = InternalError("Key store is unreadable", details={"path": "/secret/path"})
        assert "path" not in str(err.to_dict())
        assert err.details["path"] == "/secret/path"

    def test_relay_timeout_is_not_builtin(self):
        import builtins

        assert TimeoutError is not builtins.TimeoutError


class TestUpstreamRejection:
    def test_client_class_status_is_invalid_request(self):
        err = UpstreamRejectionError("Voice not found or not available", status=400)
        assert err.error_type == "invalid_request_error"
        assert err.code == ErrorCode.UPSTREAM_REJECTED

    def test_server_class_status(self):
        err = UpstreamRejectionError("TTS service error")
        assert err.status == 500
        assert err.error_type == "server_error"
