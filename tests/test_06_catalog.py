"""
Tests for the Voice Catalog.

Tests cover:
- Deduplication and enrichment of the provider's voice list
- Stable quality ordering
- Cache freshness (file mtime) and upstream fetch counting
- Fallback to a stale snapshot, empty catalog when nothing is available
- Filtering, lookup, statistics
"""
from __future__ import annotations

import json
import os
import time

import httpx
import pytest

from conftest import RAW_VOICES, UPSTREAM_ENDPOINT, FakeUpstream
from tts_relay.catalog import Voice, VoiceCatalog, dedupe_and_enrich, sort_by_quality
from tts_relay.core.config import CatalogConfig, UpstreamConfig
from tts_relay.services.errors import UpstreamUnavailableError
from tts_relay.services.upstream import UpstreamClient


def make_catalog(tmp_path, upstream: FakeUpstream, endpoint=UPSTREAM_ENDPOINT, max_age=3600):
    return VoiceCatalog(
        tmp_path / "voices.json",
        UpstreamClient(client=upstream.client()),
        UpstreamConfig(endpoint=endpoint, api_key="up_default"),
        CatalogConfig(max_age_seconds=max_age),
    )


def _age_file(path, seconds):
    past = time.time() - seconds
    os.utime(path, (past, past))


class TestDedupeAndEnrich:
    def test_first_occurrence_wins_and_order_kept(self):
        voices = dedupe_and_enrich(RAW_VOICES)
        assert [v.id for v in voices] == [
            "Joanna-en-US-neural",
            "Matthew-en-US-standard",
            "Lucia-es-ES-azure",
            "snoop-en-US-resemble",
            "Brian-en-GB-neural",
            "Zork-xx-YY-mystery",
        ]

    def test_enrichment(self):
        joanna = dedupe_and_enrich(RAW_VOICES)[0]
        assert (joanna.category, joanna.gender, joanna.quality) == ("english", "female", "high")
        snoop = dedupe_and_enrich(RAW_VOICES)[3]
        assert snoop.category == "celebrity"

    def test_custom_gender_classifier(self):
        voices = dedupe_and_enrich(RAW_VOICES, gender_classifier=lambda name: "neutral")
        assert {v.gender for v in voices} == {"neutral"}

    def test_non_objects_skipped(self):
        assert dedupe_and_enrich(["Joanna", None, 3]) == []

    def test_extra_fields_survive(self):
        voice = dedupe_and_enrich([{"name": "A", "language": "en-US", "engine": "neural", "preview": "u"}])[0]
        assert voice.to_dict()["preview"] == "u"
        assert Voice.from_dict(voice.to_dict()) == voice


class TestQualitySort:
    def test_stable_high_medium_rest(self):
        voices = sort_by_quality(dedupe_and_enrich(RAW_VOICES))
        assert [v.quality for v in voices] == ["high", "high", "high", "medium", "medium", "basic"]
        highs = [v.name for v in voices if v.quality == "high"]
        assert highs == ["Joanna", "snoop", "Brian"]


class TestFetch:
    def test_probe_request(self, tmp_path):
        upstream = FakeUpstream()
        voices = make_catalog(tmp_path, upstream).fetch_from_upstream()
        assert len(voices) == 6
        request = upstream.requests[0]
        assert request.url.params["voice"] == "invalid-voice-name"
        assert request.url.params["text"] == "test"
        assert request.headers["Authorization"] == "Bearer up_default"

    def test_not_configured(self, tmp_path):
        upstream = FakeUpstream()
        with pytest.raises(UpstreamUnavailableError):
            make_catalog(tmp_path, upstream, endpoint="").fetch_from_upstream()
        assert upstream.requests == []

    def test_server_error(self, tmp_path):
        upstream = FakeUpstream()
        upstream.probe = lambda request: httpx.Response(502, text="bad gateway")
        with pytest.raises(UpstreamUnavailableError):
            make_catalog(tmp_path, upstream).fetch_from_upstream()

    def test_missing_available_voices(self, tmp_path):
        upstream = FakeUpstream()
        upstream.probe = lambda request: httpx.Response(400, json={"ok": False})
        with pytest.raises(UpstreamUnavailableError):
            make_catalog(tmp_path, upstream).fetch_from_upstream()

    def test_transport_error(self, tmp_path):
        upstream = FakeUpstream()

        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        upstream.probe = refuse
        with pytest.raises(UpstreamUnavailableError):
            make_catalog(tmp_path, upstream).fetch_from_upstream()


class TestCache:
    def test_fresh_cache_skips_fetch(self, tmp_path):
        upstream = FakeUpstream()
        catalog = make_catalog(tmp_path, upstream)
        first = catalog.load_all()
        second = catalog.load_all()
        assert upstream.probe_count == 1
        assert [v.id for v in first] == [v.id for v in second]
        assert json.loads(catalog.path.read_text(encoding="utf-8"))[0]["id"] == "Joanna-en-US-neural"

    def test_stale_cache_refetched(self, tmp_path):
        upstream = FakeUpstream()
        catalog = make_catalog(tmp_path, upstream)
        catalog.load_all()
        _age_file(catalog.path, 7200)
        catalog.load_all()
        assert upstream.probe_count == 2

    def test_stale_cache_used_when_upstream_fails(self, tmp_path):
        upstream = FakeUpstream()
        catalog = make_catalog(tmp_path, upstream)
        catalog.load_all()
        _age_file(catalog.path, 7200)
        upstream.probe = lambda request: httpx.Response(503)

        voices = catalog.load_all()
        assert len(voices) == 6

    def test_empty_when_nothing_available(self, tmp_path):
        upstream = FakeUpstream()
        upstream.probe = lambda request: httpx.Response(503)
        assert make_catalog(tmp_path, upstream).load_all() == []

    def test_empty_snapshot_is_refetched(self, tmp_path):
        upstream = FakeUpstream()
        catalog = make_catalog(tmp_path, upstream)
        catalog.path.write_text("[]", encoding="utf-8")
        assert len(catalog.load_all()) == 6
        assert upstream.probe_count == 1

    def test_cache_written_by_another_process_is_read(self, tmp_path):
        upstream = FakeUpstream()
        catalog = make_catalog(tmp_path, upstream)
        catalog.load_all()
        voice = Voice("X-en-US-neural", "X", "en-US", "neural", "english", "unknown", "high")
        catalog.path.write_text(json.dumps([voice.to_dict()]), encoding="utf-8")
        future = time.time() + 5
        os.utime(catalog.path, (future, future))
        assert [v.id for v in catalog.load_all()] == ["X-en-US-neural"]

    def test_force_refresh_ignores_freshness(self, tmp_path):
        upstream = FakeUpstream()
        catalog = make_catalog(tmp_path, upstream)
        catalog.load_all()
        assert len(catalog.force_refresh()) == 6
        assert upstream.probe_count == 2

    def test_force_refresh_failure_leaves_empty_catalog(self, tmp_path):
        upstream = FakeUpstream()
        catalog = make_catalog(tmp_path, upstream)
        catalog.load_all()
        upstream.probe = lambda request: httpx.Response(503)
        assert catalog.force_refresh() == []
        assert not catalog.path.exists()


class TestQuery:
    @pytest.fixture
    def catalog(self, tmp_path):
        return make_catalog(tmp_path, FakeUpstream())

    def test_language_substring(self, catalog):
        assert [v.name for v in catalog.query(language="EN")] == ["Joanna", "Matthew", "snoop", "Brian"]

    def test_filters_compose(self, catalog):
        voices = catalog.query(language="en", engine="NEURAL", gender="female")
        assert [v.name for v in voices] == ["Joanna"]

    def test_search_over_name_language_engine(self, catalog):
        assert [v.name for v in catalog.query(search="azu")] == ["Lucia"]
        assert [v.name for v in catalog.query(search="gb")] == ["Brian"]

    def test_category_exact(self, catalog):
        assert [v.name for v in catalog.query(category="celebrity")] == ["snoop"]
        assert catalog.query(category="celeb") == []

    def test_find_by_id_then_name(self, catalog):
        assert catalog.find("Lucia-es-ES-azure").name == "Lucia"
        assert catalog.find("Lucia").id == "Lucia-es-ES-azure"
        assert catalog.find("Nobody") is None
        assert catalog.get_by_id("Lucia") is None

    def test_stats_and_categories(self, catalog):
        stats = catalog.stats()
        assert stats["total"] == 6
        assert stats["byLanguage"]["en"] == 4
        assert stats["byEngine"]["neural"] == 2
        cats = catalog.categories()
        assert cats["engines"] == ["azure", "mystery", "neural", "resemble", "standard"]
        assert "celebrity" in cats["categories"]
