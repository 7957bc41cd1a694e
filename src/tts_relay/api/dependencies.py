"""
FastAPI dependency providers.

The application's RelayServices instance is created by create_app() and
stored on app.state; handlers receive it through get_services() so tests
can build an app around their own services (temporary data directory,
mocked upstream transport).

    @router.get("/v1/voices")
    def list_voices(services: RelayServices = Depends(get_services)):
        ...
"""
from __future__ import annotations

from functools import lru_cache

from fastapi import Request

from tts_relay.core.config import Settings, load_settings_or_defaults
from tts_relay.services.container import RelayServices


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache application settings.

    Reads TTS_RELAY_SETTINGS (default config/settings.yaml); a missing file
    means built-in defaults plus environment overrides.
    """
    return load_settings_or_defaults()


def get_services(request: Request) -> RelayServices:
    return request.app.state.services
