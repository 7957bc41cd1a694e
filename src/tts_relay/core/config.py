"""
Relay configuration.

Settings come from three layers; the first one that sets a value wins:

    1. TTS_RELAY_* environment variables (upstream endpoint/key, master key, data dir)
    2. config/settings.yaml
    3. the constants on ``Defaults``

``Settings`` wraps the raw YAML mapping. ``RelayConfig.from_settings`` turns
it into typed section objects and rejects out-of-range values with
``ConfigValidationError`` before any service is built.

Example settings.yaml:
    upstream:
      endpoint: https://tts.example.com/api/tts
      api_key: up_xxx
      timeout_s: 30

    storage:
      data_dir: ./data

    catalog:
      max_age_seconds: 3600

    rate_limit:
      enforce: false
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Tuple
import os
import yaml


class ConfigValidationError(Exception):
    """A settings value is missing, malformed or out of range."""


class Defaults:
    """
    Built-in values for every setting the relay reads.

    Grouped the same way as settings.yaml: service, upstream, storage,
    catalog, forwarder, history/dashboard, rate_limit and logging.
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Service
    # ─────────────────────────────────────────────────────────────────────────
    SERVICE_NAME = "tts-relay"
    SERVICE_VERSION = "v1.0.0"

    # ─────────────────────────────────────────────────────────────────────────
    # Upstream provider (process-wide default credential)
    # ─────────────────────────────────────────────────────────────────────────
    UPSTREAM_ENDPOINT = ""          # Empty = no default, linked original keys only
    UPSTREAM_API_KEY = ""
    UPSTREAM_TIMEOUT_S = 30.0       # Per outbound call (synthesis and download)

    # ─────────────────────────────────────────────────────────────────────────
    # Storage
    # ─────────────────────────────────────────────────────────────────────────
    STORAGE_DATA_DIR = "./data"
    STORAGE_KEYS_FILE = "api-keys.json"
    STORAGE_VOICES_FILE = "voices.json"

    # ─────────────────────────────────────────────────────────────────────────
    # Voice catalog
    # ─────────────────────────────────────────────────────────────────────────
    CATALOG_MAX_AGE_SECONDS = 3600              # Freshness window (1 hour)
    CATALOG_PROBE_VOICE = "invalid-voice-name"  # Forces the voice list error body
    CATALOG_PROBE_TEXT = "test"

    # ─────────────────────────────────────────────────────────────────────────
    # Speech forwarder
    # ─────────────────────────────────────────────────────────────────────────
    FORWARDER_MAX_INPUT_CHARS = 4096
    FORWARDER_MIN_SPEED = 0.25
    FORWARDER_MAX_SPEED = 4.0
    FORWARDER_FORMATS = ("mp3",)

    # ─────────────────────────────────────────────────────────────────────────
    # History ring / dashboard
    # ─────────────────────────────────────────────────────────────────────────
    HISTORY_CAPACITY = 10
    DASHBOARD_MASTER_KEY = ""       # Empty = dashboard login disabled
    DASHBOARD_MAX_SESSIONS = 100    # Live login tokens; oldest dropped first

    # ─────────────────────────────────────────────────────────────────────────
    # Rate limiting
    # ─────────────────────────────────────────────────────────────────────────
    RATE_LIMIT_ENFORCE = False      # rateLimit is informational unless enabled
    RATE_LIMIT_DEFAULT = 1000       # Requests/day for new keys

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 80
    LOGGING_LEVEL = 2               # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG


@dataclass
class UpstreamConfig:
    """
    Default upstream credential used when a custom key has no linked
    original key, plus the timeout applied to every outbound call.
    """
    endpoint: str = Defaults.UPSTREAM_ENDPOINT
    api_key: str = Defaults.UPSTREAM_API_KEY
    timeout_s: float = Defaults.UPSTREAM_TIMEOUT_S


@dataclass
class StorageConfig:
    """Location of the key store and voice cache files."""
    data_dir: str = Defaults.STORAGE_DATA_DIR
    keys_file: str = Defaults.STORAGE_KEYS_FILE
    voices_file: str = Defaults.STORAGE_VOICES_FILE

    @property
    def keys_path(self) -> Path:
        return Path(self.data_dir) / self.keys_file

    @property
    def voices_path(self) -> Path:
        return Path(self.data_dir) / self.voices_file


@dataclass
class CatalogConfig:
    """
    Voice catalog configuration.

    The provider has no "list voices" endpoint, so the catalog sends a
    synthesis request with a voice name that cannot exist and reads the
    voice list from the error body.
    """
    max_age_seconds: int = Defaults.CATALOG_MAX_AGE_SECONDS
    probe_voice: str = Defaults.CATALOG_PROBE_VOICE
    probe_text: str = Defaults.CATALOG_PROBE_TEXT


@dataclass
class ForwarderConfig:
    """Input limits enforced before any upstream call."""
    max_input_chars: int = Defaults.FORWARDER_MAX_INPUT_CHARS
    min_speed: float = Defaults.FORWARDER_MIN_SPEED
    max_speed: float = Defaults.FORWARDER_MAX_SPEED
    formats: Tuple[str, ...] = Defaults.FORWARDER_FORMATS


@dataclass
class HistoryConfig:
    capacity: int = Defaults.HISTORY_CAPACITY


@dataclass
class DashboardConfig:
    master_key: str = Defaults.DASHBOARD_MASTER_KEY
    max_sessions: int = Defaults.DASHBOARD_MAX_SESSIONS


@dataclass
class RateLimitConfig:
    """
    Per-key daily limits.

    When enforce is False the rateLimit stored on each key is only
    reported, never applied.
    """
    enforce: bool = Defaults.RATE_LIMIT_ENFORCE
    default_daily: int = Defaults.RATE_LIMIT_DEFAULT


@dataclass
class LoggingConfig:
    """
    Console/file logging.

    level is 1 (MINIMAL: lifecycle and failures), 2 (NORMAL: one line per
    request and key change), 3 (VERBOSE: upstream timings, cache hits) or
    4 (DEBUG: request bodies and internal state).
    """
    level: int = Defaults.LOGGING_LEVEL
    preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS


# Accepted spellings for logging.level
_LEVEL_NAMES = {
    "MINIMAL": 1, "WARN": 1, "WARNING": 1, "ERROR": 1, "CRITICAL": 1,
    "NORMAL": 2, "INFO": 2,
    "VERBOSE": 3,
    "DEBUG": 4, "TRACE": 4,
}


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name)
    return value if isinstance(value, dict) else {}


def _parse_level(value: Any) -> int:
    if isinstance(value, str):
        text = value.strip().upper()
        if text.isdigit():
            return int(text)
        if text not in _LEVEL_NAMES:
            raise ConfigValidationError(f"logging.level: unknown level name {value!r}")
        return _LEVEL_NAMES[text]
    return int(value)


def _check(name: str, ok: bool, rule: str, value: Any) -> None:
    if not ok:
        raise ConfigValidationError(f"{name} {rule} (got {value!r})")


@dataclass
class RelayConfig:
    """
    Typed view over Settings, one attribute per settings.yaml section.

        config = load_settings().get_relay_config()
        config.catalog.max_age_seconds   # 3600
    """
    upstream: UpstreamConfig = field(default_factory=UpstreamConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    forwarder: ForwarderConfig = field(default_factory=ForwarderConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RelayConfig":
        """
        Build and check every section.

        Raises ConfigValidationError naming the first offending key, e.g.
        "history.capacity must be > 0 (got 0)".
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Upstream
        # ─────────────────────────────────────────────────────────────────────
        up = _section(raw, "upstream")
        upstream = UpstreamConfig(
            endpoint=str(up.get("endpoint") or Defaults.UPSTREAM_ENDPOINT),
            api_key=str(up.get("api_key") or Defaults.UPSTREAM_API_KEY),
            timeout_s=float(up.get("timeout_s", Defaults.UPSTREAM_TIMEOUT_S)),
        )
        _check("upstream.timeout_s", upstream.timeout_s > 0, "must be > 0", upstream.timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # Storage
        # ─────────────────────────────────────────────────────────────────────
        st = _section(raw, "storage")
        storage = StorageConfig(
            data_dir=str(st.get("data_dir", Defaults.STORAGE_DATA_DIR)),
            keys_file=str(st.get("keys_file", Defaults.STORAGE_KEYS_FILE)),
            voices_file=str(st.get("voices_file", Defaults.STORAGE_VOICES_FILE)),
        )
        _check("storage.voices_file", storage.voices_file != storage.keys_file,
               "must differ from storage.keys_file", storage.voices_file)

        # ─────────────────────────────────────────────────────────────────────
        # Catalog
        # ─────────────────────────────────────────────────────────────────────
        cat = _section(raw, "catalog")
        catalog = CatalogConfig(
            max_age_seconds=int(cat.get("max_age_seconds", Defaults.CATALOG_MAX_AGE_SECONDS)),
            probe_voice=str(cat.get("probe_voice", Defaults.CATALOG_PROBE_VOICE)),
            probe_text=str(cat.get("probe_text", Defaults.CATALOG_PROBE_TEXT)),
        )
        _check("catalog.max_age_seconds", catalog.max_age_seconds >= 0,
               "must be >= 0", catalog.max_age_seconds)

        # ─────────────────────────────────────────────────────────────────────
        # Forwarder
        # ─────────────────────────────────────────────────────────────────────
        fw = _section(raw, "forwarder")
        forwarder = ForwarderConfig(
            max_input_chars=int(fw.get("max_input_chars", Defaults.FORWARDER_MAX_INPUT_CHARS)),
            min_speed=float(fw.get("min_speed", Defaults.FORWARDER_MIN_SPEED)),
            max_speed=float(fw.get("max_speed", Defaults.FORWARDER_MAX_SPEED)),
            formats=tuple(str(f).lower() for f in fw.get("formats", Defaults.FORWARDER_FORMATS)),
        )
        _check("forwarder.max_input_chars", forwarder.max_input_chars > 0,
               "must be > 0", forwarder.max_input_chars)
        _check("forwarder.min_speed", forwarder.min_speed > 0, "must be > 0", forwarder.min_speed)
        _check("forwarder.max_speed", forwarder.min_speed <= forwarder.max_speed <= 100.0,
               "must lie between forwarder.min_speed and 100", forwarder.max_speed)
        _check("forwarder.formats", bool(forwarder.formats), "must list at least one format",
               forwarder.formats)

        # ─────────────────────────────────────────────────────────────────────
        # History / dashboard
        # ─────────────────────────────────────────────────────────────────────
        history = HistoryConfig(
            capacity=int(_section(raw, "history").get("capacity", Defaults.HISTORY_CAPACITY)),
        )
        _check("history.capacity", history.capacity > 0, "must be > 0", history.capacity)

        db = _section(raw, "dashboard")
        dashboard = DashboardConfig(
            master_key=str(db.get("master_key") or Defaults.DASHBOARD_MASTER_KEY),
            max_sessions=int(db.get("max_sessions", Defaults.DASHBOARD_MAX_SESSIONS)),
        )
        _check("dashboard.max_sessions", dashboard.max_sessions > 0, "must be > 0",
               dashboard.max_sessions)

        # ─────────────────────────────────────────────────────────────────────
        # Rate limiting
        # ─────────────────────────────────────────────────────────────────────
        rl = _section(raw, "rate_limit")
        rate_limit = RateLimitConfig(
            enforce=bool(rl.get("enforce", Defaults.RATE_LIMIT_ENFORCE)),
            default_daily=int(rl.get("default_daily", Defaults.RATE_LIMIT_DEFAULT)),
        )
        _check("rate_limit.default_daily", rate_limit.default_daily >= 0,
               "must be >= 0", rate_limit.default_daily)

        # ─────────────────────────────────────────────────────────────────────
        # Logging
        # ─────────────────────────────────────────────────────────────────────
        lg = _section(raw, "logging")
        log_cfg = LoggingConfig(
            level=_parse_level(lg.get("level", Defaults.LOGGING_LEVEL)),
            preview_chars=int(lg.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
        )
        _check("logging.level", 1 <= log_cfg.level <= 4, "must be 1..4", log_cfg.level)
        _check("logging.text_preview_chars", log_cfg.preview_chars >= 0,
               "must be >= 0", log_cfg.preview_chars)

        return cls(
            upstream=upstream,
            storage=storage,
            catalog=catalog,
            forwarder=forwarder,
            history=history,
            dashboard=dashboard,
            rate_limit=rate_limit,
            logging=log_cfg,
        )


@dataclass(frozen=True)
class Settings:
    """The settings.yaml mapping, env overrides applied, not yet checked."""
    raw: Dict[str, Any]

    def _get(self, section: str, key: str, default: Any) -> Any:
        return _section(self.raw, section).get(key, default)

    @property
    def service_name(self) -> str:
        return str(self._get("service", "name", Defaults.SERVICE_NAME))

    @property
    def service_version(self) -> str:
        return str(self._get("service", "version", Defaults.SERVICE_VERSION))

    @property
    def data_dir(self) -> str:
        """Directory holding api-keys.json and voices.json."""
        return str(self._get("storage", "data_dir", Defaults.STORAGE_DATA_DIR))

    @property
    def master_key(self) -> str:
        """Dashboard master key; empty disables dashboard login."""
        return str(self._get("dashboard", "master_key", None) or "")

    def get_relay_config(self) -> RelayConfig:
        return RelayConfig.from_settings(self)


# TTS_RELAY_* variable -> settings.yaml (section, key)
_ENV_OVERRIDES = {
    "TTS_RELAY_UPSTREAM_ENDPOINT": ("upstream", "endpoint"),
    "TTS_RELAY_UPSTREAM_API_KEY": ("upstream", "api_key"),
    "TTS_RELAY_MASTER_KEY": ("dashboard", "master_key"),
    "TTS_RELAY_DATA_DIR": ("storage", "data_dir"),
}


def apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Write every non-empty TTS_RELAY_* override into ``raw`` and return it."""
    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if not value:
            continue
        if not isinstance(raw.get(section), dict):
            raw[section] = {}
        raw[section][key] = value
    return raw


def settings_path() -> str:
    """Settings file location (TTS_RELAY_SETTINGS, default config/settings.yaml)."""
    return os.getenv("TTS_RELAY_SETTINGS", "config/settings.yaml")


def load_settings(path: str | None = None) -> Settings:
    """
    Read a settings YAML file and apply TTS_RELAY_* overrides.

    An empty file yields empty settings. A missing file raises
    FileNotFoundError with the resolved path.
    """
    settings_file = Path(path or settings_path())
    if not settings_file.is_file():
        raise FileNotFoundError(f"no settings file at {settings_file.resolve()}")
    raw = yaml.safe_load(settings_file.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ConfigValidationError(f"{settings_file}: top level must be a mapping")
    return Settings(raw=apply_env_overrides(raw))


def load_settings_or_defaults(path: str | None = None) -> Settings:
    """Like load_settings, but a missing file means defaults plus environment."""
    try:
        return load_settings(path)
    except FileNotFoundError:
        return Settings(raw=apply_env_overrides({}))
