"""
Shared HTTP client for the upstream TTS provider.

One httpx.Client is created per application and reused by the voice
catalog probe, the synthesis call and the audio download, so connections
to the provider are pooled. The composition root closes it on shutdown.

Every call carries the configured timeout (30s by default) and is never
retried here. Transport errors surface as httpx exceptions; callers map
them onto the relay error taxonomy.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from tts_relay.core.logging import get_logger, info

_LOG = get_logger("tts-relay.upstream")


class UpstreamClient:
    """
    Thin wrapper over a shared httpx.Client.

    Args:
        timeout_s: Timeout applied to each outbound request.
        client: Pre-built client (tests pass one with httpx.MockTransport).
            When given, the caller keeps ownership and close() leaves it open.
    """

    def __init__(self, timeout_s: float = 30.0, client: Optional[httpx.Client] = None):
        self._timeout = httpx.Timeout(timeout_s)
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=self._timeout,
            limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
            follow_redirects=True,
        )

    @property
    def client(self) -> httpx.Client:
        return self._client

    @property
    def timeout(self) -> httpx.Timeout:
        return self._timeout

    def get(
        self,
        url: str,
        api_key: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """GET with optional bearer authentication."""
        headers = {}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
            headers["Content-Type"] = "application/json"
        return self._client.get(url, params=params, headers=headers, timeout=self._timeout)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
            info(_LOG, "upstream_client_closed")
