"""Shared fixtures: temporary data directory and a fake upstream provider."""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

UPSTREAM_ENDPOINT = "https://tts.example.com/api/tts"
AUDIO_URL = "https://cdn.example.com/audio/abc.mp3"
AUDIO_BYTES = b"ID3" + b"\x00" * 2997
MASTER_KEY = "master-secret"

RAW_VOICES: List[Dict[str, Any]] = [
    {"name": "Joanna", "language": "en-US", "engine": "neural"},
    {"name": "Matthew", "language": "en-US", "engine": "standard"},
    {"name": "Joanna", "language": "en-US", "engine": "neural"},
    {"name": "Lucia", "language": "es-ES", "engine": "azure"},
    {"name": "snoop", "language": "en-US", "engine": "resemble"},
    {"name": "Brian", "language": "en-GB", "engine": "neural"},
    {"name": "Zork", "language": "xx-YY", "engine": "mystery"},
]


class FakeUpstream:
    """
    In-process stand-in for the TTS provider, served through httpx.MockTransport.

    The voice probe (voice=invalid-voice-name) answers 400 with
    available_voices; synthesis answers {"ok": true, "url": AUDIO_URL};
    the audio URL answers AUDIO_BYTES. Set ``synth`` to override the
    synthesis response.
    """

    def __init__(self, voices: Optional[List[Dict[str, Any]]] = None):
        self.voices = RAW_VOICES if voices is None else voices
        self.requests: List[httpx.Request] = []
        self.synth: Optional[Callable[[httpx.Request], httpx.Response]] = None
        self.probe: Optional[Callable[[httpx.Request], httpx.Response]] = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if str(request.url) == AUDIO_URL:
            return httpx.Response(200, content=AUDIO_BYTES, headers={"Content-Type": "audio/mpeg"})
        if request.url.params.get("voice") == "invalid-voice-name":
            if self.probe is not None:
                return self.probe(request)
            return httpx.Response(
                400,
                json={"ok": False, "message": "Invalid voice", "available_voices": self.voices},
            )
        if self.synth is not None:
            return self.synth(request)
        return httpx.Response(200, json={"ok": True, "url": AUDIO_URL})

    @property
    def probe_count(self) -> int:
        return sum(1 for r in self.requests if r.url.params.get("voice") == "invalid-voice-name")

    @property
    def synth_requests(self) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if str(r.url) != AUDIO_URL and r.url.params.get("voice") != "invalid-voice-name"
        ]

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))


@pytest.fixture
def fake_upstream():
    return FakeUpstream()


@pytest.fixture
def relay_settings(tmp_path):
    from tts_relay.core.config import Settings

    return Settings(raw={
        "storage": {"data_dir": str(tmp_path / "data")},
        "upstream": {"endpoint": UPSTREAM_ENDPOINT, "api_key": "up_default"},
        "dashboard": {"master_key": MASTER_KEY},
    })


@pytest.fixture
def services(relay_settings, fake_upstream):
    from tts_relay.services.container import RelayServices

    svc = RelayServices.from_settings(relay_settings, http_client=fake_upstream.client())
    yield svc
    svc.close()


@pytest.fixture
def client(services):
    from fastapi.testclient import TestClient

    from tts_relay.main import create_app

    app = create_app(services=services)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def dashboard_headers(client):
    r = client.post("/dashboard/login", json={"masterKey": MASTER_KEY})
    assert r.status_code == 200
    return {"Authorization": r.json()["token"]}
