"""Tests for Prometheus metrics."""
from __future__ import annotations

import pytest

from tts_relay.core.metrics import RelayMetrics


@pytest.fixture
def fresh():
    return RelayMetrics()


class TestRelayMetrics:
    def test_record_request(self, fresh):
        fresh.record_request("speech", "success", audio_bytes=100)
        fresh.record_request("speech", "VALIDATION")

        sample = fresh.registry.get_sample_value
        assert sample("relay_requests_total", {"route": "speech", "status": "success"}) == 1
        assert sample("relay_requests_total", {"route": "speech", "status": "VALIDATION"}) == 1
        assert sample("relay_audio_bytes_total") == 100

    def test_upstream_duration_and_errors(self, fresh):
        fresh.observe_upstream("synthesize", 0.8)
        fresh.record_upstream_error("timeout")

        sample = fresh.registry.get_sample_value
        assert sample("relay_upstream_duration_seconds_count", {"stage": "synthesize"}) == 1
        assert sample("relay_upstream_errors_total", {"kind": "timeout"}) == 1

    def test_catalog_refresh(self, fresh):
        fresh.record_catalog_refresh("fetched", 412)
        fresh.record_catalog_refresh("fallback")

        sample = fresh.registry.get_sample_value
        assert sample("relay_catalog_refresh_total", {"result": "fetched"}) == 1
        assert sample("relay_catalog_voices") == 412

    def test_separate_instances_do_not_collide(self):
        a, b = RelayMetrics(), RelayMetrics()
        a.inc_key_usage()
        assert b.registry.get_sample_value("relay_key_usage_total") == 0

    def test_metrics_response(self, fresh):
        content, content_type = fresh.get_metrics_response()
        assert b"relay_requests_total" in content
        assert content_type.startswith("text/plain")


class TestMetricsWiring:
    """The global instance is updated by the request path."""

    def test_speech_updates_global_metrics(self, client, services):
        from tts_relay.core.metrics import metrics

        def value(name, labels=None):
            return metrics.registry.get_sample_value(name, labels or {}) or 0

        labels = {"route": "speech", "status": "success"}
        before_requests = value("relay_requests_total", labels)
        before_usage = value("relay_key_usage_total")

        key = services.key_store.create_custom_key("m")
        r = client.post("/v1/audio/speech", json={"input": "hi", "voice": "Joanna"},
                        headers={"Authorization": f"Bearer {key.api_key}"})
        assert r.status_code == 200

        assert value("relay_requests_total", labels) == before_requests + 1
        assert value("relay_key_usage_total") == before_usage + 1
