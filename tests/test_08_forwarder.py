"""
Tests for the Speech Forwarder.

Tests cover:
- Validation happens before any network call
- Voice resolution by id and by name
- Credential resolution (linked original key, default upstream)
- Upstream request shape and audio download
- Error mapping for transport failures and provider rejections
"""
from __future__ import annotations

import httpx
import pytest

from conftest import AUDIO_BYTES, AUDIO_URL, UPSTREAM_ENDPOINT
from tts_relay.services.errors import (
    RateLimitError,
    TimeoutError,
    UpstreamRejectionError,
    UpstreamUnavailableError,
    ValidationError,
)
from tts_relay.services.forwarder import SpeechInput


@pytest.fixture
def forwarder(services):
    return services.forwarder


@pytest.fixture
def caller(services):
    return services.key_store.create_custom_key("caller").api_key


class TestValidationFirst:
    @pytest.mark.parametrize("request_input", [
        SpeechInput(text="a" * 4097, voice="Joanna"),
        SpeechInput(text="", voice="Joanna"),
        SpeechInput(text="hi", voice=""),
        SpeechInput(text="hi", voice="Joanna", speed=0.1),
        SpeechInput(text="hi", voice="Joanna", speed=4.1),
        SpeechInput(text="hi", voice="Joanna", response_format="wav"),
    ])
    def test_invalid_input_makes_no_network_call(self, forwarder, fake_upstream, caller, request_input):
        with pytest.raises(ValidationError):
            forwarder.synthesize(request_input, caller)
        assert fake_upstream.requests == []

    def test_unknown_voice(self, forwarder, fake_upstream, caller):
        with pytest.raises(ValidationError, match="Voice 'Nobody' not found"):
            forwarder.synthesize(SpeechInput(text="hi", voice="Nobody"), caller)
        assert fake_upstream.synth_requests == []


class TestSynthesize:
    def test_default_upstream(self, forwarder, fake_upstream, caller):
        result = forwarder.synthesize(SpeechInput(text="Hello world", voice="Joanna"), caller)

        assert result.audio == AUDIO_BYTES
        assert result.voice.id == "Joanna-en-US-neural"
        assert result.original_key_name is None
        assert set(result.timings) == {"synthesize", "download"}

        request = fake_upstream.synth_requests[0]
        assert str(request.url).startswith(UPSTREAM_ENDPOINT)
        assert dict(request.url.params) == {
            "text": "Hello world",
            "voice": "Joanna",
            "language": "en-US",
            "engine": "neural",
        }
        assert request.headers["Authorization"] == "Bearer up_default"
        assert str(fake_upstream.requests[-1].url) == AUDIO_URL

    def test_voice_by_id(self, forwarder, caller):
        result = forwarder.synthesize(SpeechInput(text="hi", voice="Brian-en-GB-neural"), caller)
        assert result.voice.name == "Brian"

    def test_linked_original_key(self, services, forwarder, fake_upstream):
        original = services.key_store.create_original_key("P1", "up_123", "https://x.example/tts")
        key = services.key_store.create_custom_key("A", original_key_id=original.id)

        result = forwarder.synthesize(SpeechInput(text="hi", voice="Joanna"), key.api_key)

        request = fake_upstream.synth_requests[0]
        assert str(request.url).startswith("https://x.example/tts")
        assert request.headers["Authorization"] == "Bearer up_123"
        assert result.original_key_name == "P1"

    def test_does_not_record_usage(self, services, forwarder, caller):
        forwarder.synthesize(SpeechInput(text="hi", voice="Joanna"), caller)
        assert services.key_store.get_key_info(caller).usage_count == 0

    def test_result_headers(self, forwarder, caller):
        headers = forwarder.synthesize(SpeechInput(text="hi", voice="Lucia"), caller).headers()
        assert headers["X-Voice-Name"] == "Lucia"
        assert headers["X-Voice-Language"] == "es-ES"
        assert headers["X-Voice-Engine"] == "azure"
        assert headers["Cache-Control"] == "public, max-age=3600"


class TestCredentials:
    def test_no_default_and_no_link(self, tmp_path, fake_upstream):
        from tts_relay.core.config import Settings
        from tts_relay.services.container import RelayServices

        settings = Settings(raw={"storage": {"data_dir": str(tmp_path)}})
        svc = RelayServices.from_settings(settings, http_client=fake_upstream.client())
        key = svc.key_store.create_custom_key("A")
        with pytest.raises(UpstreamUnavailableError):
            svc.forwarder.resolve_credentials(key.api_key)


class TestErrorMapping:
    @pytest.mark.parametrize("status, error_cls, code, message", [
        (401, UpstreamRejectionError, 500, "TTS service authentication failed"),
        (404, UpstreamRejectionError, 400, "Voice not found or not available"),
        (429, RateLimitError, 429, "TTS service rate limit exceeded"),
        (500, UpstreamRejectionError, 500, "TTS service error"),
        (418, UpstreamRejectionError, 500, "TTS service error"),
    ])
    def test_upstream_status(self, forwarder, fake_upstream, caller, status, error_cls, code, message):
        fake_upstream.synth = lambda request: httpx.Response(status, json={"ok": False})
        with pytest.raises(error_cls) as exc_info:
            forwarder.synthesize(SpeechInput(text="hi", voice="Joanna"), caller)
        assert exc_info.value.status == code
        assert exc_info.value.message == message

    def test_ok_false_uses_upstream_message(self, forwarder, fake_upstream, caller):
        fake_upstream.synth = lambda request: httpx.Response(200, json={"ok": False, "message": "Text rejected"})
        with pytest.raises(UpstreamRejectionError) as exc_info:
            forwarder.synthesize(SpeechInput(text="hi", voice="Joanna"), caller)
        assert exc_info.value.status == 400
        assert exc_info.value.message == "Text rejected"

    def test_ok_false_without_message(self, forwarder, fake_upstream, caller):
        fake_upstream.synth = lambda request: httpx.Response(200, json={"ok": False})
        with pytest.raises(UpstreamRejectionError, match="TTS generation failed"):
            forwarder.synthesize(SpeechInput(text="hi", voice="Joanna"), caller)

    def test_missing_url(self, forwarder, fake_upstream, caller):
        fake_upstream.synth = lambda request: httpx.Response(200, json={"ok": True})
        with pytest.raises(UpstreamRejectionError) as exc_info:
            forwarder.synthesize(SpeechInput(text="hi", voice="Joanna"), caller)
        assert exc_info.value.status == 500
        assert exc_info.value.message == "No audio URL received from TTS service"

    def test_non_json_body(self, forwarder, fake_upstream, caller):
        fake_upstream.synth = lambda request: httpx.Response(200, text="<html>")
        with pytest.raises(UpstreamRejectionError) as exc_info:
            forwarder.synthesize(SpeechInput(text="hi", voice="Joanna"), caller)
        assert exc_info.value.status == 500

    def test_timeout(self, forwarder, fake_upstream, caller):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        fake_upstream.synth = slow
        with pytest.raises(TimeoutError) as exc_info:
            forwarder.synthesize(SpeechInput(text="hi", voice="Joanna"), caller)
        assert exc_info.value.status == 408
        assert exc_info.value.message == "TTS service request timeout"

    def test_connection_failure(self, forwarder, fake_upstream, caller):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        fake_upstream.synth = refuse
        with pytest.raises(UpstreamUnavailableError) as exc_info:
            forwarder.synthesize(SpeechInput(text="hi", voice="Joanna"), caller)
        assert exc_info.value.status == 503

    def test_download_failure(self, forwarder, fake_upstream, caller):
        missing = "https://cdn.example.com/audio/missing.mp3"

        def synth(request):
            if str(request.url) == missing:
                return httpx.Response(404)
            return httpx.Response(200, json={"ok": True, "url": missing})

        fake_upstream.synth = synth
        with pytest.raises(UpstreamRejectionError):
            forwarder.synthesize(SpeechInput(text="hi", voice="Joanna"), caller)
