"""
FastAPI Application Entry Point.

Creates the tts-relay application: logging, the RelayServices composition
root, routers and error handlers.

Routers:
    - Service: /, /health, /metrics
    - OpenAI-compatible: /v1/audio/speech, /v1/voices, /v1/health
    - Dashboard: /dashboard/login, /dashboard/api/*

Usage:
    uvicorn tts_relay.main:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from tts_relay import __version__
from tts_relay.api.dashboard import router as dashboard_router
from tts_relay.api.dependencies import get_settings
from tts_relay.api.errors import register_exception_handlers
from tts_relay.api.openai_compat import router as openai_router
from tts_relay.api.routes import router
from tts_relay.core.config import Settings
from tts_relay.core.logging import configure_logging, get_logger, info
from tts_relay.services.container import RelayServices


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[RelayServices] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to build services from (default: get_settings()).
        services: Pre-built services; tests pass their own. The app closes
            them on shutdown either way.

    Logging is reconfigured from the logging section of whichever settings
    the app ends up serving.
    """
    if services is not None:
        settings = services.settings
    elif settings is None:
        settings = get_settings()

    configure_logging(force=True, section=settings.raw.get("logging") or {})
    log = get_logger("tts-relay.main")

    if services is None:
        services = RelayServices.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        info(log, "startup", service=services.settings.service_name)
        yield
        services.close()
        info(log, "shutdown")

    app = FastAPI(title="tts-relay", version=__version__, lifespan=lifespan)
    app.state.services = services

    app.include_router(router)            # /, /health, /metrics
    app.include_router(openai_router)     # /v1/*
    app.include_router(dashboard_router)  # /dashboard/*
    register_exception_handlers(app)

    return app


# Global application instance for ASGI servers
app = create_app()
