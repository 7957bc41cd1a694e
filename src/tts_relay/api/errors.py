"""
Rendering of relay errors as HTTP responses.

Every error body has the same envelope:

    {"error": {"message": "...", "type": "invalid_request_error", "status": 400}}

register_exception_handlers() installs handlers for RelayError raised by
routes or dependencies and for request-body validation failures, which are
reported as 400 invalid_request_error instead of FastAPI's default 422.
"""
from __future__ import annotations

from typing import Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from tts_relay.core.logging import get_logger, warn
from tts_relay.services.errors import RelayError, ValidationError

_LOG = get_logger("tts-relay.api")


def error_response(error: RelayError, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(status_code=error.status, content=error.to_dict(), headers=headers)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    msg = first.get("msg", "invalid value")
    return f"{loc}: {msg}" if loc else msg


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError):
        warn(_LOG, "request_failed", path=request.url.path, status=exc.status, code=exc.code,
             error=exc.message)
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        error = ValidationError(_validation_message(exc))
        warn(_LOG, "request_invalid", path=request.url.path, error=error.message)
        return error_response(error)
