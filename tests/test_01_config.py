"""
Tests for configuration validation and defaults.

Tests cover:
- RelayConfig.from_settings() - all sections
- Defaults class values
- ConfigValidationError on invalid values
- String log level coercion ("DEBUG" -> 4)
- Environment overrides
- Settings file loading and the missing-file fallback
"""

import pytest

from tts_relay.core.config import (
    ConfigValidationError,
    Defaults,
    RelayConfig,
    Settings,
    load_settings,
    load_settings_or_defaults,
)


class TestDefaults:
    """Tests for Defaults class values."""

    def test_forwarder_defaults(self):
        assert Defaults.FORWARDER_MAX_INPUT_CHARS == 4096
        assert Defaults.FORWARDER_MIN_SPEED == 0.25
        assert Defaults.FORWARDER_MAX_SPEED == 4.0
        assert Defaults.FORWARDER_FORMATS == ("mp3",)

    def test_catalog_defaults(self):
        assert Defaults.CATALOG_MAX_AGE_SECONDS == 3600
        assert Defaults.CATALOG_PROBE_VOICE == "invalid-voice-name"

    def test_storage_defaults(self):
        assert Defaults.STORAGE_KEYS_FILE == "api-keys.json"
        assert Defaults.STORAGE_VOICES_FILE == "voices.json"

    def test_history_and_rate_limit_defaults(self):
        assert Defaults.HISTORY_CAPACITY == 10
        assert Defaults.RATE_LIMIT_ENFORCE is False
        assert Defaults.RATE_LIMIT_DEFAULT == 1000


class TestRelayConfigFromSettings:
    """Tests for RelayConfig.from_settings()."""

    def test_empty_settings_use_defaults(self):
        config = RelayConfig.from_settings(Settings(raw={}))
        assert config.upstream.endpoint == ""
        assert config.upstream.timeout_s == 30.0
        assert config.history.capacity == 10
        assert config.dashboard.master_key == ""
        assert config.logging.level == 2

    def test_sections_are_read(self, tmp_path):
        config = RelayConfig.from_settings(Settings(raw={
            "upstream": {"endpoint": "https://x/tts", "api_key": "up_1", "timeout_s": 5},
            "storage": {"data_dir": str(tmp_path)},
            "catalog": {"max_age_seconds": 60},
            "forwarder": {"max_input_chars": 100, "formats": ["MP3"]},
            "history": {"capacity": 3},
            "rate_limit": {"enforce": True, "default_daily": 50},
        }))
        assert config.upstream.endpoint == "https://x/tts"
        assert config.upstream.timeout_s == 5.0
        assert config.storage.keys_path == tmp_path / "api-keys.json"
        assert config.storage.voices_path == tmp_path / "voices.json"
        assert config.catalog.max_age_seconds == 60
        assert config.forwarder.max_input_chars == 100
        assert config.forwarder.formats == ("mp3",)
        assert config.history.capacity == 3
        assert config.rate_limit.enforce is True
        assert config.rate_limit.default_daily == 50

    def test_string_log_level(self):
        config = RelayConfig.from_settings(Settings(raw={"logging": {"level": "DEBUG"}}))
        assert config.logging.level == 4
        assert config.logging.preview_chars == 80

    def test_null_sections_use_defaults(self):
        config = RelayConfig.from_settings(Settings(raw={"upstream": None, "catalog": None}))
        assert config.catalog.max_age_seconds == Defaults.CATALOG_MAX_AGE_SECONDS


class TestValidation:
    """Invalid values raise ConfigValidationError."""

    @pytest.mark.parametrize("raw", [
        {"upstream": {"timeout_s": 0}},
        {"catalog": {"max_age_seconds": -1}},
        {"forwarder": {"max_input_chars": 0}},
        {"forwarder": {"min_speed": 2.0, "max_speed": 1.0}},
        {"forwarder": {"formats": []}},
        {"history": {"capacity": 0}},
        {"dashboard": {"max_sessions": 0}},
        {"rate_limit": {"default_daily": -5}},
        {"logging": {"level": 9}},
        {"logging": {"level": "loud"}},
        {"logging": {"text_preview_chars": -1}},
        {"storage": {"keys_file": "same.json", "voices_file": "same.json"}},
    ])
    def test_invalid_values_rejected(self, raw):
        with pytest.raises(ConfigValidationError):
            RelayConfig.from_settings(Settings(raw=raw))


class TestSettings:
    """Tests for Settings properties and loading."""

    def test_service_properties(self):
        settings = Settings(raw={"service": {"name": "relay-a", "version": "v9"}})
        assert settings.service_name == "relay-a"
        assert settings.service_version == "v9"

    def test_service_defaults(self):
        settings = Settings(raw={})
        assert settings.service_name == "tts-relay"
        assert settings.master_key == ""

    def test_load_settings_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(str(tmp_path / "nope.yaml"))

    def test_load_settings_yaml(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TTS_RELAY_MASTER_KEY", raising=False)
        path = tmp_path / "settings.yaml"
        path.write_text("dashboard:\n  master_key: from-file\n", encoding="utf-8")
        assert load_settings(str(path)).master_key == "from-file"

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "settings.yaml"
        path.write_text("upstream:\n  endpoint: https://file/tts\n", encoding="utf-8")
        monkeypatch.setenv("TTS_RELAY_UPSTREAM_ENDPOINT", "https://env/tts")
        monkeypatch.setenv("TTS_RELAY_DATA_DIR", str(tmp_path / "d"))
        settings = load_settings(str(path))
        assert settings.raw["upstream"]["endpoint"] == "https://env/tts"
        assert settings.data_dir == str(tmp_path / "d")

    def test_missing_file_falls_back_to_defaults(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TTS_RELAY_MASTER_KEY", "env-master")
        settings = load_settings_or_defaults(str(tmp_path / "nope.yaml"))
        assert settings.master_key == "env-master"
        assert settings.get_relay_config().dashboard.master_key == "env-master"

    def test_shipped_settings_file_is_valid(self):
        from pathlib import Path

        path = Path(__file__).parent.parent / "config" / "settings.yaml"
        config = load_settings(str(path)).get_relay_config()
        assert config.forwarder.max_input_chars == 4096
