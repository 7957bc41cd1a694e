"""
Voice Catalog for tts-relay.

The upstream provider has no "list voices" endpoint. The catalog sends a
synthesis request with a voice name that cannot exist; the provider answers
(usually with a 4xx) and lists every valid voice in "available_voices".
That list is deduplicated, enriched with derived metadata and cached on disk.

Cache Flow:
    load_all()
        │
        ├── cache file younger than max_age and non-empty → return it
        │
        └── otherwise fetch_from_upstream()
                ├── success   → persist snapshot, return it
                └── failure   → last snapshot of any age, else []

The file's mtime is the freshness clock. Snapshots are replaced with an
atomic rename and the check-then-refresh sequence runs under one lock, so a
reader never sees a partial catalog. The parsed snapshot is memoized in
process and re-read only when the file's mtime changes.
"""
from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import httpx

from tts_relay.catalog.classify import (
    GenderClassifier,
    classify_category,
    classify_quality,
    name_list_gender,
    quality_rank,
)
from tts_relay.core.config import CatalogConfig, UpstreamConfig
from tts_relay.core.logging import get_logger, info, verbose, warn
from tts_relay.core.metrics import metrics
from tts_relay.services.errors import UpstreamUnavailableError
from tts_relay.services.upstream import UpstreamClient
from tts_relay.utils.files import read_json, write_json_atomic
from tts_relay.utils.timeit import timeit

_LOG = get_logger("tts-relay.catalog")

_CORE_FIELDS = ("id", "name", "language", "engine", "category", "gender", "quality")


@dataclass
class Voice:
    """
    One enriched catalog entry.

    extra keeps any additional fields the provider reported so they
    survive the round trip through the cache file.
    """
    id: str
    name: str
    language: str
    engine: str
    category: str
    gender: str
    quality: str
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update(
            name=self.name,
            language=self.language,
            engine=self.engine,
            id=self.id,
            category=self.category,
            gender=self.gender,
            quality=self.quality,
        )
        return data

    def to_public(self) -> Dict[str, Any]:
        """OpenAI-style voice object, addressed by name."""
        return {
            "id": self.name,
            "name": self.name,
            "language": self.language,
            "engine": self.engine,
            "gender": self.gender,
            "category": self.category,
            "quality": self.quality,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Voice":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            language=str(data.get("language", "")),
            engine=str(data.get("engine", "")),
            category=str(data.get("category", "")),
            gender=str(data.get("gender", "")),
            quality=str(data.get("quality", "")),
            extra={k: v for k, v in data.items() if k not in _CORE_FIELDS},
        )


def voice_id(name: str, language: str, engine: str) -> str:
    return f"{name}-{language}-{engine}"


def dedupe_and_enrich(
    raw_voices: Iterable[Any],
    gender_classifier: GenderClassifier = name_list_gender,
) -> List[Voice]:
    """
    Drop repeated (name, language, engine) triples and attach derived fields.

    The first occurrence of a triple wins and input order is preserved.
    Entries that are not objects are skipped.
    """
    seen = set()
    voices: List[Voice] = []
    for raw in raw_voices:
        if not isinstance(raw, dict):
            continue
        name = str(raw.get("name", ""))
        language = str(raw.get("language", ""))
        engine = str(raw.get("engine", ""))
        vid = voice_id(name, language, engine)
        if vid in seen:
            continue
        seen.add(vid)
        voices.append(Voice(
            id=vid,
            name=name,
            language=language,
            engine=engine,
            category=classify_category(name, language),
            gender=gender_classifier(name),
            quality=classify_quality(engine),
            extra={k: v for k, v in raw.items() if k not in _CORE_FIELDS},
        ))
    return voices


def sort_by_quality(voices: Iterable[Voice]) -> List[Voice]:
    """high, then medium, then everything else; stable within a quality."""
    return sorted(voices, key=lambda v: quality_rank(v.quality))


def _count(values: Iterable[str]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for value in values:
        counts[value] = counts.get(value, 0) + 1
    return counts


class VoiceCatalog:
    """
    Cached, enriched view of the upstream voice list.

    Args:
        path: Cache file location.
        upstream: Shared upstream HTTP client.
        upstream_config: Default endpoint and credential used for the probe.
        config: Freshness window and probe parameters.
        gender_classifier: Name -> gender callable.
        clock: Returns the current time in epoch seconds.
    """

    def __init__(
        self,
        path: Path,
        upstream: UpstreamClient,
        upstream_config: UpstreamConfig,
        config: Optional[CatalogConfig] = None,
        gender_classifier: GenderClassifier = name_list_gender,
        clock: Callable[[], float] = time.time,
    ):
        self._path = Path(path)
        self._upstream = upstream
        self._upstream_config = upstream_config
        self._config = config or CatalogConfig()
        self._gender_classifier = gender_classifier
        self._clock = clock
        self._lock = threading.RLock()
        self._memo: Optional[Tuple[int, List[Voice]]] = None

    @property
    def path(self) -> Path:
        return self._path

    # ─────────────────────────────────────────────────────────────────────────
    # Upstream
    # ─────────────────────────────────────────────────────────────────────────

    def fetch_from_upstream(self) -> List[Voice]:
        """
        Probe the provider for its voice list.

        Raises:
            UpstreamUnavailableError: Not configured, transport failure,
                5xx status, non-JSON body or no available_voices field.
        """
        endpoint = self._upstream_config.endpoint
        api_key = self._upstream_config.api_key
        if not endpoint or not api_key:
            raise UpstreamUnavailableError("Upstream endpoint or API key not configured")

        params = {"text": self._config.probe_text, "voice": self._config.probe_voice}
        with timeit("catalog") as t:
            try:
                response = self._upstream.get(endpoint, api_key=api_key, params=params)
            except httpx.HTTPError as e:
                metrics.record_upstream_error("catalog_transport")
                raise UpstreamUnavailableError(f"Voice list request failed: {e}") from e
        metrics.observe_upstream("catalog", t.seconds)

        if response.status_code >= 500:
            metrics.record_upstream_error("catalog_status")
            raise UpstreamUnavailableError(
                f"Voice list request failed with status {response.status_code}",
                details={"upstream_status": response.status_code},
            )
        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamUnavailableError("Voice list response is not JSON") from e

        raw = body.get("available_voices") if isinstance(body, dict) else None
        if not isinstance(raw, list):
            raise UpstreamUnavailableError("No available_voices found in upstream response")

        voices = dedupe_and_enrich(raw, self._gender_classifier)
        info(_LOG, "catalog_fetched", raw=len(raw), voices=len(voices), seconds=round(t.seconds, 3))
        return voices

    # ─────────────────────────────────────────────────────────────────────────
    # Cache file
    # ─────────────────────────────────────────────────────────────────────────

    def _read_cache(self) -> Optional[Tuple[float, List[Voice]]]:
        """(mtime, voices) of the cache file, or None when absent/unreadable."""
        try:
            stat = self._path.stat()
        except FileNotFoundError:
            self._memo = None
            return None

        if self._memo is not None and self._memo[0] == stat.st_mtime_ns:
            return stat.st_mtime, self._memo[1]

        try:
            data = read_json(self._path)
            if not isinstance(data, list):
                raise ValueError("voice cache is not a list")
            voices = [Voice.from_dict(v) for v in data if isinstance(v, dict)]
        except (OSError, json.JSONDecodeError, KeyError, ValueError) as e:
            warn(_LOG, "catalog_cache_unreadable", path=str(self._path), error=str(e))
            return None

        self._memo = (stat.st_mtime_ns, voices)
        return stat.st_mtime, voices

    def _persist(self, voices: List[Voice]) -> None:
        try:
            write_json_atomic(self._path, [v.to_dict() for v in voices])
        except OSError as e:
            warn(_LOG, "catalog_cache_write_failed", path=str(self._path), error=str(e))
            return
        verbose(_LOG, "catalog_cached", path=str(self._path), voices=len(voices))

    def _fetch_and_persist(self, fallback: Optional[List[Voice]]) -> List[Voice]:
        try:
            voices = self.fetch_from_upstream()
        except UpstreamUnavailableError as e:
            if fallback:
                warn(_LOG, "catalog_fallback", reason=e.message, cached=len(fallback))
                metrics.record_catalog_refresh("fallback", len(fallback))
                return fallback
            warn(_LOG, "catalog_empty", reason=e.message)
            metrics.record_catalog_refresh("empty", 0)
            return []

        if voices:
            self._persist(voices)
        metrics.record_catalog_refresh("fetched", len(voices))
        return voices

    # ─────────────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────────────

    def load_all(self) -> List[Voice]:
        """The current catalog, refreshed from upstream when stale."""
        with self._lock:
            cached = self._read_cache()
            if cached is not None:
                mtime, voices = cached
                age = self._clock() - mtime
                if age < self._config.max_age_seconds and voices:
                    verbose(_LOG, "catalog_cache_hit", voices=len(voices), age_s=round(age))
                    return voices
            return self._fetch_and_persist(cached[1] if cached else None)

    def force_refresh(self) -> List[Voice]:
        """Discard the cached snapshot and fetch again, ignoring freshness."""
        with self._lock:
            self._path.unlink(missing_ok=True)
            self._memo = None
            info(_LOG, "catalog_cache_cleared", path=str(self._path))
            return self._fetch_and_persist(None)

    def query(
        self,
        language: Optional[str] = None,
        engine: Optional[str] = None,
        gender: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Voice]:
        """
        Filter the catalog; all given filters must match.

        language and search are case-insensitive substring matches (search
        over name, language and engine). engine, gender and category are
        case-insensitive exact matches. Catalog order is preserved.
        """
        voices = self.load_all()
        if language:
            needle = language.lower()
            voices = [v for v in voices if needle in v.language.lower()]
        if engine:
            voices = [v for v in voices if v.engine.lower() == engine.lower()]
        if gender:
            voices = [v for v in voices if v.gender.lower() == gender.lower()]
        if category:
            voices = [v for v in voices if v.category.lower() == category.lower()]
        if search:
            term = search.lower()
            voices = [
                v for v in voices
                if term in v.name.lower() or term in v.language.lower() or term in v.engine.lower()
            ]
        return voices

    def get_by_id(self, voice_id: str) -> Optional[Voice]:
        return next((v for v in self.load_all() if v.id == voice_id), None)

    def find(self, identifier: str) -> Optional[Voice]:
        """Look a voice up by id, then by exact name (first match)."""
        voices = self.load_all()
        found = next((v for v in voices if v.id == identifier), None)
        if found is None:
            found = next((v for v in voices if v.name == identifier), None)
        return found

    def stats(self) -> Dict[str, Any]:
        voices = self.load_all()
        return {
            "total": len(voices),
            "byLanguage": _count(v.language.split("-")[0] for v in voices),
            "byEngine": _count(v.engine for v in voices),
            "byGender": _count(v.gender for v in voices),
            "byCategory": _count(v.category for v in voices),
        }

    def categories(self) -> Dict[str, List[str]]:
        """Sorted distinct values of each filterable field."""
        voices = self.load_all()
        return {
            "languages": sorted({v.language for v in voices}),
            "engines": sorted({v.engine for v in voices}),
            "genders": sorted({v.gender for v in voices}),
            "categories": sorted({v.category for v in voices}),
        }
