"""
Process-wide logging state and the per-request id.

The request id is a ContextVar: a handler binds it once and every line the
key store, catalog and forwarder write for that request carries it.
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict, Optional

from .levels import LEVEL_NAMES, LogLevel

_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_state: Dict[str, Any] = {
    "configured": False,
    "level": LogLevel.NORMAL,
    "config": {},
}

# Environment variable -> logging config key, parser
_ENV = (
    ("TTS_RELAY_LOG_LEVEL", "level", str),
    ("TTS_RELAY_LOG_DIR", "log_dir", str),
    ("TTS_RELAY_JSONL_FILE", "jsonl_file", str),
    ("TTS_RELAY_LOG_ROTATE_BYTES", "rotate_max_bytes", int),
    ("TTS_RELAY_LOG_ROTATE_BACKUP", "rotate_backup_count", int),
)


def get_request_id() -> str:
    return _request_id.get()


def set_request_id(rid: str) -> None:
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _state["level"]


def set_level(level: LogLevel) -> None:
    _state["level"] = level


def get_level_name() -> str:
    return LEVEL_NAMES.get(int(_state["level"]), "NORMAL")


def is_configured() -> bool:
    return _state["configured"]


def set_configured(value: bool) -> None:
    _state["configured"] = value


def get_log_config() -> Dict[str, Any]:
    return _state["config"]


def set_log_config(config: Dict[str, Any]) -> None:
    _state["config"] = config


def read_logging_config(section: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Merge a settings logging section with TTS_RELAY_LOG_* variables.

    ``section`` is the logging mapping of already loaded settings; without
    it the default settings file is read. Variables win. Rotation sizes
    that are not plain digits are ignored.
    """
    if section is None:
        from tts_relay.core.config import load_settings_or_defaults

        section = load_settings_or_defaults().raw.get("logging")
    cfg: Dict[str, Any] = dict(section) if isinstance(section, dict) else {}

    for env_name, key, parse in _ENV:
        value = os.getenv(env_name, "").strip()
        if not value:
            continue
        if parse is int and not value.isdigit():
            continue
        cfg[key] = parse(value)
    return cfg
