"""
Dashboard JSON API.

Backs the operator dashboard: key management, voice browsing and the
speech playground. Login exchanges the master key for a session token;
every /dashboard/api/* route requires that token in the Authorization
header.

Endpoints:
    POST   /dashboard/login
    GET    /dashboard/api/stats
    GET    /dashboard/api/keys                      (secrets masked)
    POST   /dashboard/api/keys
    DELETE /dashboard/api/keys/{id}
    PUT    /dashboard/api/keys/{id}/original-key
    PUT    /dashboard/api/keys/{id}/status
    GET    /dashboard/api/original-keys
    POST   /dashboard/api/original-keys
    DELETE /dashboard/api/original-keys/{id}
    GET    /dashboard/api/playground-keys           (full secrets, active keys)
    GET    /dashboard/api/voices
    GET    /dashboard/api/voice-categories
    POST   /dashboard/api/refresh-voices
    POST   /dashboard/api/test-tts
    GET    /dashboard/api/tts-history
    DELETE /dashboard/api/tts-history/{id}
    DELETE /dashboard/api/tts-history
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from tts_relay.api.auth import require_dashboard_session
from tts_relay.api.dependencies import get_services
from tts_relay.api.schemas import (
    CreateKeyRequest,
    CreateOriginalKeyRequest,
    KeyStatusRequest,
    LinkOriginalKeyRequest,
    LoginRequest,
    PlaygroundSpeechRequest,
)
from tts_relay.catalog.catalog import sort_by_quality
from tts_relay.core.logging import get_logger, info, set_request_id, warn
from tts_relay.core.metrics import metrics
from tts_relay.services.container import RelayServices
from tts_relay.services.errors import AuthenticationError, NotFoundError, RelayError, ValidationError
from tts_relay.services.forwarder import SpeechInput
from tts_relay.services.history import TtsHistoryEntry
from tts_relay.utils.clock import new_request_id

router = APIRouter(prefix="/dashboard")
api = APIRouter(prefix="/api", dependencies=[Depends(require_dashboard_session)])

_LOG = get_logger("tts-relay.dashboard")


@router.post("/login")
def login(req: LoginRequest, services: RelayServices = Depends(get_services)):
    token = services.login(req.master_key)
    if token is None:
        warn(_LOG, "dashboard_login_rejected")
        raise AuthenticationError("Invalid master key")
    return {"success": True, "message": "Dashboard access granted", "token": token}


# ─────────────────────────────────────────────────────────────────────────────
# Statistics
# ─────────────────────────────────────────────────────────────────────────────

@api.get("/stats")
def stats(services: RelayServices = Depends(get_services)):
    return {
        "usage": services.key_store.usage_stats(),
        "voices": services.catalog.stats(),
    }


# ─────────────────────────────────────────────────────────────────────────────
# Custom keys
# ─────────────────────────────────────────────────────────────────────────────

@api.get("/keys")
def list_keys(services: RelayServices = Depends(get_services)):
    return {"keys": services.key_store.list_custom_keys(masked=True)}


@api.post("/keys")
def create_key(req: CreateKeyRequest, services: RelayServices = Depends(get_services)):
    key = services.key_store.create_custom_key(req.name, req.rate_limit, req.original_key_id)
    return {"success": True, "key": key.to_dict(), "message": "API key created successfully"}


@api.delete("/keys/{key_id}")
def delete_key(key_id: str, services: RelayServices = Depends(get_services)):
    services.key_store.delete_custom_key(key_id)
    return {"success": True, "message": "API key deleted successfully"}


@api.put("/keys/{key_id}/original-key")
def link_key(key_id: str, req: LinkOriginalKeyRequest, services: RelayServices = Depends(get_services)):
    key = services.key_store.link_original_key(key_id, req.original_key_id)
    return {"success": True, "key": key.to_dict(), "message": "API key mapping updated"}


@api.put("/keys/{key_id}/status")
def set_key_status(key_id: str, req: KeyStatusRequest, services: RelayServices = Depends(get_services)):
    key = services.key_store.set_status(key_id, req.status)
    return {"success": True, "key": key.to_dict(), "message": f"API key {key.status}"}


@api.get("/playground-keys")
def playground_keys(services: RelayServices = Depends(get_services)):
    return {"keys": services.key_store.list_playground_keys()}


# ─────────────────────────────────────────────────────────────────────────────
# Original keys
# ─────────────────────────────────────────────────────────────────────────────

@api.get("/original-keys")
def list_original_keys(services: RelayServices = Depends(get_services)):
    return {"keys": [k.to_dict() for k in services.key_store.list_original_keys()]}


@api.post("/original-keys")
def create_original_key(req: CreateOriginalKeyRequest, services: RelayServices = Depends(get_services)):
    key = services.key_store.create_original_key(req.name, req.api_key, req.endpoint)
    return {"success": True, "key": key.to_dict(), "message": "Original API key created successfully"}


@api.delete("/original-keys/{key_id}")
def delete_original_key(key_id: str, services: RelayServices = Depends(get_services)):
    services.key_store.delete_original_key(key_id)
    return {"success": True, "message": "Original API key deleted successfully"}


# ─────────────────────────────────────────────────────────────────────────────
# Voices
# ─────────────────────────────────────────────────────────────────────────────

@api.get("/voices")
def list_voices(
    language: Optional[str] = None,
    engine: Optional[str] = None,
    gender: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    sort: Optional[str] = None,
    limit: int = Query(default=100, ge=0),
    services: RelayServices = Depends(get_services),
):
    """sort=quality orders high, then medium, then the rest."""
    voices = services.catalog.query(
        language=language, engine=engine, gender=gender, category=category, search=search,
    )
    if sort == "quality":
        voices = sort_by_quality(voices)
    return {"voices": [v.to_dict() for v in voices[:limit]]}


@api.get("/voice-categories")
def voice_categories(services: RelayServices = Depends(get_services)):
    return services.catalog.categories()


@api.post("/refresh-voices")
def refresh_voices(services: RelayServices = Depends(get_services)):
    voices = services.catalog.force_refresh()
    info(_LOG, "voices_refreshed", count=len(voices))
    return {
        "success": True,
        "message": f"Refreshed voice cache with {len(voices)} voices",
        "count": len(voices),
    }


# ─────────────────────────────────────────────────────────────────────────────
# Playground
# ─────────────────────────────────────────────────────────────────────────────

@api.post("/test-tts")
def test_tts(req: PlaygroundSpeechRequest, services: RelayServices = Depends(get_services)):
    """
    Synthesize through the forwarder and keep the result in the history ring.

    Without apiKey the first custom key is used. Playground calls are not
    counted as key usage.
    """
    set_request_id(new_request_id())

    if not req.text or not req.voice:
        raise ValidationError("Text and voice are required")

    api_key = req.api_key
    if not api_key:
        keys = services.key_store.list_custom_keys(masked=False)
        if not keys:
            raise ValidationError("No API keys available. Please create an API key first.")
        api_key = keys[0]["apiKey"]

    key = services.key_store.get_key_info(api_key)
    if key is None:
        raise ValidationError("Invalid API key")

    try:
        result = services.forwarder.synthesize(SpeechInput(text=req.text, voice=req.voice), api_key)
    except RelayError as e:
        metrics.record_request("test_tts", e.code)
        raise

    entry = TtsHistoryEntry.from_audio(result.audio, req.voice, req.text, api_key, key.name)
    services.history.record(entry)
    metrics.record_request("test_tts", "success", audio_bytes=len(result.audio))
    info(_LOG, "playground_speech", entry_id=entry.id, voice=req.voice, bytes=len(result.audio))

    response = {"success": True}
    response.update(entry.to_dict())
    return response


@api.get("/tts-history")
def tts_history(services: RelayServices = Depends(get_services)):
    return {"success": True, "history": [e.to_dict() for e in services.history.list()]}


@api.delete("/tts-history/{entry_id}")
def delete_history_entry(entry_id: str, services: RelayServices = Depends(get_services)):
    if not services.history.remove(entry_id):
        raise NotFoundError("Response not found")
    return {
        "success": True,
        "message": "Response deleted from history",
        "history": [e.to_dict() for e in services.history.list()],
    }


@api.delete("/tts-history")
def clear_history(services: RelayServices = Depends(get_services)):
    services.history.clear()
    return {"success": True, "message": "TTS history cleared", "history": []}


router.include_router(api)
