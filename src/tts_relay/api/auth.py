"""
Authentication dependencies.

Public routes take a custom key as "Authorization: Bearer sk-...". The key
must exist and be active.

Dashboard API routes take the session token returned by /dashboard/login,
either bare ("Authorization: <token>") or as a bearer token.
"""
from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header

from tts_relay.api.dependencies import get_services
from tts_relay.core.logging import get_logger, mask_secret, verbose
from tts_relay.services.container import RelayServices
from tts_relay.services.errors import AuthenticationError
from tts_relay.store.key_store import CustomKey

_LOG = get_logger("tts-relay.auth")

BEARER_PREFIX = "Bearer "


def require_api_key(
    authorization: Optional[str] = Header(default=None),
    services: RelayServices = Depends(get_services),
) -> CustomKey:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise AuthenticationError("API key required. Use format: Bearer YOUR_API_KEY")

    api_key = authorization[len(BEARER_PREFIX):]
    key = services.key_store.get_key_info(api_key)
    if key is None or not key.is_active:
        verbose(_LOG, "api_key_rejected", secret=mask_secret(api_key))
        raise AuthenticationError("Invalid API key")
    return key


def require_dashboard_session(
    authorization: Optional[str] = Header(default=None),
    services: RelayServices = Depends(get_services),
) -> str:
    token = authorization or ""
    if token.startswith(BEARER_PREFIX):
        token = token[len(BEARER_PREFIX):]
    if not services.is_session(token):
        raise AuthenticationError("Dashboard access required")
    return token
