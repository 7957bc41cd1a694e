"""
Service routes.

Endpoints:
    GET /         - Service index with links to the main endpoints
    GET /health   - Health check for load balancers and probes
    GET /metrics  - Prometheus metrics
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from tts_relay.api.dependencies import get_services
from tts_relay.core.metrics import metrics
from tts_relay.services.container import RelayServices
from tts_relay.utils.clock import utc_now_iso

router = APIRouter()


@router.get("/")
def index(services: RelayServices = Depends(get_services)):
    return {
        "service": services.settings.service_name,
        "version": services.settings.service_version,
        "endpoints": {
            "speech": "/v1/audio/speech",
            "voices": "/v1/voices",
            "health": "/health",
            "metrics": "/metrics",
            "dashboard": "/dashboard/login",
        },
    }


@router.get("/health")
def health(services: RelayServices = Depends(get_services)):
    """
    Health check.

    The relay holds no warm-up state; it is healthy once it serves requests.
    default_upstream tells whether unlinked keys have an endpoint to use.
    """
    return {
        "status": "ok",
        "service": services.settings.service_name,
        "version": services.settings.service_version,
        "default_upstream": bool(services.config.upstream.endpoint),
        "timestamp": utc_now_iso(),
    }


@router.get("/metrics")
def prometheus_metrics():
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
