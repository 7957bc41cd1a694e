"""
OpenAI-Compatible Endpoints.

Drop-in surface for clients written against OpenAI's TTS API. Requests are
authenticated with a custom key and forwarded to the upstream provider with
the original key that custom key is linked to.

Endpoints:
    POST /v1/audio/speech     - mp3 audio for {model, input, voice, response_format, speed}
    GET  /v1/voices           - filtered, paginated voice list
    GET  /v1/voices/{voice}   - one voice, by id or exact name
    GET  /v1/health           - unauthenticated liveness check

Example Usage:
    from openai import OpenAI
    client = OpenAI(base_url="http://localhost:8000/v1", api_key="sk-...")
    response = client.audio.speech.create(model="tts-1", voice="Joanna", input="Hello!")
    response.stream_to_file("speech.mp3")

Error Responses:
    {"error": {"message": "...", "type": "invalid_request_error", "status": 400}}
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from tts_relay.api.auth import require_api_key
from tts_relay.api.dependencies import get_services
from tts_relay.api.errors import error_response
from tts_relay.api.schemas import SpeechRequest
from tts_relay.core.logging import debug, error, get_logger, info, mask_secret, set_request_id, warn
from tts_relay.core.metrics import metrics
from tts_relay.services.container import RelayServices
from tts_relay.services.errors import ErrorCode, InternalError, NotFoundError, RelayError
from tts_relay.services.forwarder import SpeechInput
from tts_relay.store.key_store import CustomKey
from tts_relay.utils.clock import new_request_id, utc_now_iso

router = APIRouter(prefix="/v1")

_LOG = get_logger("tts-relay.openai")


@router.get("/health")
def v1_health(services: RelayServices = Depends(get_services)):
    return {
        "status": "ok",
        "service": services.settings.service_name,
        "version": services.settings.service_version,
        "timestamp": utc_now_iso(),
    }


@router.post("/audio/speech", response_class=Response)
def create_speech(
    req: SpeechRequest,
    key: CustomKey = Depends(require_api_key),
    services: RelayServices = Depends(get_services),
):
    """
    OpenAI-compatible text-to-speech.

    Usage is counted against the custom key only after audio was relayed.

    Returns:
        Response: audio/mpeg bytes with headers X-Request-Id, X-Voice-Name,
            X-Voice-Language, X-Voice-Engine and Cache-Control.

    Raises:
        400: Invalid input or unknown voice
        401: Missing or invalid API key
        408: Upstream timeout
        429: Rate limit (key or upstream account)
        500: Upstream rejected the request
        503: Upstream unreachable
    """
    rid = new_request_id()
    set_request_id(rid)

    info(_LOG, "speech_request", voice=req.voice, chars=len(req.input or ""),
         model=req.model, key=mask_secret(key.api_key))
    debug(_LOG, "speech_request_full", text=req.input, speed=req.speed, format=req.response_format)

    try:
        services.key_store.check_rate_limit(key.api_key)
        result = services.forwarder.synthesize(
            SpeechInput(
                text=req.input,
                voice=req.voice,
                response_format=req.response_format,
                speed=req.speed,
            ),
            key.api_key,
        )
    except RelayError as e:
        metrics.record_request("speech", e.code)
        warn(_LOG, "speech_failed", status=e.status, code=e.code, error=e.message)
        return error_response(e, headers={"X-Request-Id": rid})
    except Exception as e:
        # Details stay in the log
        metrics.record_request("speech", ErrorCode.INTERNAL_ERROR)
        error(_LOG, "speech_crashed", error=f"{type(e).__name__}: {e}")
        return error_response(InternalError("Internal server error"), headers={"X-Request-Id": rid})

    services.key_store.record_usage(key.api_key)
    metrics.record_request("speech", "success", audio_bytes=len(result.audio))

    headers = {"X-Request-Id": rid}
    headers.update(result.headers())
    return Response(content=result.audio, media_type=result.content_type, headers=headers)


@router.get("/voices", dependencies=[Depends(require_api_key)])
def list_voices(
    language: Optional[str] = None,
    engine: Optional[str] = None,
    gender: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(default=50, ge=0),
    offset: int = Query(default=0, ge=0),
    services: RelayServices = Depends(get_services),
):
    voices = services.catalog.query(
        language=language, engine=engine, gender=gender, category=category, search=search,
    )
    page = voices[offset:offset + limit]
    return {
        "data": [v.to_public() for v in page],
        "pagination": {
            "total": len(voices),
            "limit": limit,
            "offset": offset,
            "hasMore": offset + limit < len(voices),
        },
    }


@router.get("/voices/{voice_id}", dependencies=[Depends(require_api_key)])
def get_voice(
    voice_id: str,
    services: RelayServices = Depends(get_services),
):
    voice = services.catalog.find(voice_id)
    if voice is None:
        raise NotFoundError("Voice not found")
    return {"data": voice.to_public()}
