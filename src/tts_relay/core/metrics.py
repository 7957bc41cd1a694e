"""
Prometheus Metrics for tts-relay.

Metrics Exposed:
    relay_requests_total              - Requests by route and outcome
    relay_upstream_duration_seconds   - Upstream latency by stage (synthesize/download/catalog)
    relay_upstream_errors_total       - Upstream failures by error kind
    relay_audio_bytes_total           - Audio bytes relayed to callers
    relay_catalog_refresh_total       - Catalog refresh attempts by result
    relay_catalog_voices              - Voices in the current catalog snapshot
    relay_key_usage_total             - Successful usage increments

Usage:
    from tts_relay.core.metrics import metrics

    metrics.record_request("speech", "success")
    metrics.observe_upstream("synthesize", 0.84)
    content, content_type = metrics.get_metrics_response()
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class RelayMetrics:
    """
    Relay metrics on a private CollectorRegistry.

    A private registry keeps repeated instantiation (tests, multiple apps
    in one process) from colliding in the global default registry.
    Prometheus metric objects are thread-safe.
    """

    def __init__(self):
        self._registry = CollectorRegistry()

        self._requests_total = Counter(
            "relay_requests_total",
            "Relay requests by route and outcome",
            ["route", "status"],
            registry=self._registry,
        )
        self._upstream_duration = Histogram(
            "relay_upstream_duration_seconds",
            "Upstream call duration in seconds",
            ["stage"],
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self._registry,
        )
        self._upstream_errors = Counter(
            "relay_upstream_errors_total",
            "Upstream failures by error kind",
            ["kind"],
            registry=self._registry,
        )
        self._audio_bytes_total = Counter(
            "relay_audio_bytes_total",
            "Audio bytes relayed to callers",
            registry=self._registry,
        )
        self._catalog_refresh = Counter(
            "relay_catalog_refresh_total",
            "Voice catalog refresh attempts",
            ["result"],
            registry=self._registry,
        )
        self._catalog_voices = Gauge(
            "relay_catalog_voices",
            "Voices in the current catalog snapshot",
            registry=self._registry,
        )
        self._key_usage = Counter(
            "relay_key_usage_total",
            "Usage increments recorded against custom keys",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_request(self, route: str, status: str, audio_bytes: int = 0) -> None:
        """
        Record a finished request.

        Args:
            route: Logical route ("speech", "test_tts", ...)
            status: "success" or an ErrorCode value
            audio_bytes: Size of relayed audio, if any
        """
        self._requests_total.labels(route=route, status=status).inc()
        if audio_bytes > 0:
            self._audio_bytes_total.inc(audio_bytes)

    def observe_upstream(self, stage: str, seconds: float) -> None:
        self._upstream_duration.labels(stage=stage).observe(seconds)

    def record_upstream_error(self, kind: str) -> None:
        self._upstream_errors.labels(kind=kind).inc()

    def record_catalog_refresh(self, result: str, voices: int | None = None) -> None:
        """result is "fetched", "fallback" or "empty"."""
        self._catalog_refresh.labels(result=result).inc()
        if voices is not None:
            self._catalog_voices.set(voices)

    def inc_key_usage(self) -> None:
        self._key_usage.inc()

    def get_metrics_response(self) -> tuple[bytes, str]:
        """Metrics in Prometheus text format as (content, content_type)."""
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


# Import this to record metrics: from tts_relay.core.metrics import metrics
metrics = RelayMetrics()
