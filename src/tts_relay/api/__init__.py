"""
HTTP layer for tts-relay.

Routers:
    openai_compat: /v1/audio/speech, /v1/voices, /v1/health
    routes: /, /health, /metrics
    dashboard: /dashboard/login and the session-gated /dashboard/api/*
"""
