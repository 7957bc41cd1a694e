"""
Speech Forwarder.

Turns one speech request into audio bytes by way of the upstream provider.
It is a plain function of its input: no HTTP framing, no usage recording.
Both the public /v1/audio/speech route and the dashboard playground call it.

Request Flow:
    1. Validate input, format and speed (no network yet)
    2. Resolve the voice through the catalog (id, then exact name)
    3. Resolve credentials: the caller's linked original key, else the
       configured default endpoint and key
    4. GET <endpoint>?text&voice&language&engine with bearer auth
    5. Check the body's "ok" flag and read the temporary audio "url"
    6. GET the audio bytes

Error Mapping:
    timeout                  → TimeoutError (408)
    DNS / connection failure → UpstreamUnavailableError (503)
    upstream 401             → UpstreamRejectionError 500 "TTS service authentication failed"
    upstream 404             → UpstreamRejectionError 400 "Voice not found or not available"
    upstream 429             → RateLimitError 429
    other non-2xx            → UpstreamRejectionError 500 "TTS service error"
    ok: false                → UpstreamRejectionError 400 with the upstream message
    no url                   → UpstreamRejectionError 500

Nothing is retried. Retry policy belongs to the caller.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import httpx

from tts_relay.catalog.catalog import Voice, VoiceCatalog
from tts_relay.core.config import ForwarderConfig, UpstreamConfig
from tts_relay.core.logging import get_logger, info, mask_secret, verbose, warn
from tts_relay.core.metrics import metrics
from tts_relay.services.errors import (
    RateLimitError,
    RelayError,
    TimeoutError,
    UpstreamRejectionError,
    UpstreamUnavailableError,
    ValidationError,
)
from tts_relay.services.upstream import UpstreamClient
from tts_relay.services.validators import (
    validate_format,
    validate_speed,
    validate_text,
    validate_voice,
)
from tts_relay.store.key_store import KeyStore
from tts_relay.utils.timeit import timeit

_LOG = get_logger("tts-relay.forwarder")

AUDIO_CONTENT_TYPE = "audio/mpeg"
AUDIO_CACHE_CONTROL = "public, max-age=3600"


@dataclass
class SpeechInput:
    """A speech request as the caller sent it."""
    text: str
    voice: str
    response_format: str = "mp3"
    speed: float = 1.0


@dataclass
class SpeechResult:
    """
    Audio returned by the upstream provider.

    Attributes:
        audio: Raw audio bytes (mp3).
        voice: The catalog voice the request resolved to.
        original_key_name: Name of the linked original key that was used,
            or None when the default upstream credential was used.
        timings: Seconds spent per upstream stage.
    """
    audio: bytes
    voice: Voice
    original_key_name: Optional[str] = None
    timings: Dict[str, float] = field(default_factory=dict)

    content_type: str = AUDIO_CONTENT_TYPE

    def headers(self) -> Dict[str, str]:
        return {
            "Cache-Control": AUDIO_CACHE_CONTROL,
            "X-Voice-Name": self.voice.name,
            "X-Voice-Language": self.voice.language,
            "X-Voice-Engine": self.voice.engine,
        }


def _rejection_for_status(status: int) -> RelayError:
    if status == 401:
        return UpstreamRejectionError("TTS service authentication failed", status=500,
                                      details={"upstream_status": status})
    if status == 404:
        return UpstreamRejectionError("Voice not found or not available", status=400,
                                      details={"upstream_status": status})
    if status == 429:
        return RateLimitError("TTS service rate limit exceeded", details={"upstream_status": status})
    return UpstreamRejectionError("TTS service error", status=500, details={"upstream_status": status})


class SpeechForwarder:
    """
    Forwards validated speech requests to the upstream provider.

    Args:
        key_store: Resolves a caller's custom key to its original key.
        catalog: Resolves voice identifiers.
        upstream: Shared HTTP client.
        upstream_config: Default endpoint/credential for unlinked keys.
        config: Input limits.
        text_preview_chars: Characters of input text shown in VERBOSE logs.
    """

    def __init__(
        self,
        key_store: KeyStore,
        catalog: VoiceCatalog,
        upstream: UpstreamClient,
        upstream_config: UpstreamConfig,
        config: Optional[ForwarderConfig] = None,
        text_preview_chars: int = 80,
    ):
        self._key_store = key_store
        self._catalog = catalog
        self._upstream = upstream
        self._upstream_config = upstream_config
        self._config = config or ForwarderConfig()
        self._preview_chars = text_preview_chars

    def validate(self, request: SpeechInput) -> None:
        """Check everything that needs no network access."""
        validate_text(request.text, self._config.max_input_chars)
        validate_voice(request.voice)
        validate_format(request.response_format, self._config.formats)
        validate_speed(request.speed, self._config.min_speed, self._config.max_speed)

    def resolve_voice(self, identifier: str) -> Voice:
        voice = self._catalog.find(identifier)
        if voice is None:
            raise ValidationError(
                f"Voice '{identifier}' not found. Use /v1/voices to see available voices."
            )
        return voice

    def resolve_credentials(self, caller_api_key: Optional[str]) -> Tuple[str, str, Optional[str]]:
        """
        (api_key, endpoint, original_key_name) for a caller.

        Raises:
            UpstreamUnavailableError: Neither a linked original key nor a
                default endpoint is available.
        """
        original = self._key_store.resolve_original_key(caller_api_key) if caller_api_key else None
        if original is not None:
            verbose(_LOG, "credentials_linked", original_key=original.name)
            return original.api_key, original.endpoint, original.name

        if not self._upstream_config.endpoint:
            raise UpstreamUnavailableError("No upstream endpoint configured for this API key")
        verbose(_LOG, "credentials_default", caller=mask_secret(caller_api_key))
        return self._upstream_config.api_key, self._upstream_config.endpoint, None

    def _get(
        self, stage: str, url: str, api_key: Optional[str] = None, params=None
    ) -> Tuple[httpx.Response, float]:
        with timeit(stage) as t:
            try:
                response = self._upstream.get(url, api_key=api_key, params=params)
            except httpx.TimeoutException as e:
                metrics.record_upstream_error("timeout")
                warn(_LOG, "upstream_timeout", stage=stage, seconds=round(t.seconds, 3))
                raise TimeoutError("TTS service request timeout") from e
            except (httpx.TransportError, httpx.InvalidURL) as e:
                metrics.record_upstream_error("unavailable")
                warn(_LOG, "upstream_unavailable", stage=stage, error=str(e))
                raise UpstreamUnavailableError("TTS service temporarily unavailable") from e
        metrics.observe_upstream(stage, t.seconds)

        if not response.is_success:
            metrics.record_upstream_error("http_status")
            warn(_LOG, "upstream_rejected", stage=stage, upstream_status=response.status_code)
            raise _rejection_for_status(response.status_code)
        return response, t.seconds

    def synthesize(self, request: SpeechInput, caller_api_key: Optional[str]) -> SpeechResult:
        """
        Produce audio for one request.

        Raises:
            ValidationError: Bad input or unknown voice (no upstream call).
            TimeoutError, UpstreamUnavailableError: Transport failures.
            UpstreamRejectionError, RateLimitError: The provider refused.
        """
        self.validate(request)
        voice = self.resolve_voice(request.voice)
        api_key, endpoint, original_key_name = self.resolve_credentials(caller_api_key)

        verbose(_LOG, "speech_request", voice=voice.id, chars=len(request.text),
                preview=request.text[:self._preview_chars])

        params = {
            "text": request.text,
            "voice": voice.name,
            "language": voice.language,
            "engine": voice.engine,
        }
        timings: Dict[str, float] = {}

        response, timings["synthesize"] = self._get("synthesize", endpoint, api_key=api_key, params=params)

        try:
            body = response.json()
        except ValueError as e:
            metrics.record_upstream_error("bad_body")
            raise UpstreamRejectionError("TTS service error", status=500) from e
        if not isinstance(body, dict):
            metrics.record_upstream_error("bad_body")
            raise UpstreamRejectionError("TTS service error", status=500)

        if not body.get("ok"):
            metrics.record_upstream_error("rejected")
            message = body.get("message") or "TTS generation failed"
            warn(_LOG, "upstream_not_ok", voice=voice.id, message=message)
            raise UpstreamRejectionError(str(message), status=400)

        audio_url = body.get("url")
        if not audio_url:
            metrics.record_upstream_error("no_url")
            raise UpstreamRejectionError("No audio URL received from TTS service", status=500)

        download, timings["download"] = self._get("download", str(audio_url))
        audio = download.content

        info(_LOG, "speech_forwarded", voice=voice.id, bytes=len(audio),
             source=original_key_name or "default", seconds=round(sum(timings.values()), 3))
        return SpeechResult(audio=audio, voice=voice, original_key_name=original_key_name, timings=timings)
