"""
Relay logging.

Every module logs through a named stdlib logger and the emit helpers below,
which attach a tag, the current request id and free-form key=value fields:

    from tts_relay.core.logging import get_logger, info, warn

    _LOG = get_logger("tts-relay.keys")
    info(_LOG, "custom_key_created", key_id=key.id, name=key.name)
    warn(_LOG, "catalog_fallback", reason="upstream unavailable", cached=412)

Output goes to stdout in color and, when TTS_RELAY_LOG_DIR is set, to a
rotating JSONL file as well. Verbosity is one of four levels (see
levels.py), taken from the argument to configure_logging(), then
TTS_RELAY_LOG_LEVEL, then the settings file. TTS_RELAY_NO_COLOR=1 turns
colors off.

API keys never go into a log line unmasked; use mask_secret().
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Dict, Optional, TextIO

from . import colors
from .colors import Colors, colorize, get_tag_color, supports_color
from .context import (
    get_level,
    get_level_name,
    get_log_config,
    get_request_id,
    is_configured,
    read_logging_config,
    set_configured,
    set_level,
    set_log_config,
    set_request_id,
)
from .formatters import ColoredConsoleFormatter, JsonlFormatter
from .levels import LEVEL_MAP, LEVEL_NAMES, LogLevel, coerce_level

SECRET_PREVIEW_CHARS = 10

# Handlers do their own filtering; the root logger passes everything
_PASS_ALL = logging.DEBUG - 10


def _jsonl_handler(cfg: Dict[str, Any]) -> logging.Handler:
    log_dir = Path(cfg["log_dir"])
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / str(cfg.get("jsonl_file", "tts-relay.jsonl")),
        maxBytes=int(cfg.get("rotate_max_bytes", 10 * 1024 * 1024)),
        backupCount=int(cfg.get("rotate_backup_count", 5)),
        encoding="utf-8",
        delay=True,
    )
    handler.setLevel(_PASS_ALL)
    handler.setFormatter(JsonlFormatter())
    return handler


def configure_logging(
    level: Optional[int | str | LogLevel] = None,
    force: bool = False,
    section: Optional[Dict[str, Any]] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Install the console (and optional JSONL) handler on the root logger.

    Runs once per process unless force=True; get_logger() calls it lazily.
    ``section`` is the logging mapping of settings the caller already loaded
    (default: read the default settings file). ``stream`` receives console
    lines (default: stdout).
    """
    if is_configured() and not force:
        return

    colors.USE_COLORS = supports_color()
    cfg = read_logging_config(section)
    set_log_config(cfg)

    chosen = coerce_level(level if level is not None else cfg.get("level", LogLevel.NORMAL))
    set_level(chosen)

    console = logging.StreamHandler(stream if stream is not None else sys.stdout)
    console.setLevel(LEVEL_MAP[chosen])
    console.setFormatter(ColoredConsoleFormatter())

    root = logging.getLogger()
    root.setLevel(_PASS_ALL)
    root.handlers = [console]
    if cfg.get("log_dir"):
        root.addHandler(_jsonl_handler(cfg))

    set_configured(True)


def get_logger(name: str = "tts-relay") -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)


def mask_secret(secret: Optional[str]) -> str:
    """First SECRET_PREVIEW_CHARS characters and "...", or "None" for no secret."""
    if not secret:
        return "None"
    return f"{secret[:SECRET_PREVIEW_CHARS]}..."


def _emitter(tag: str, stdlib_level: int, relay_level: LogLevel) -> Callable[..., None]:
    def emit(logger: logging.Logger, msg: str, **fields: Any) -> None:
        if relay_level > get_level():
            return
        extra = {
            "tag": tag,
            "request_id": get_request_id(),
            "event": fields.pop("event", None),
            "seconds": fields.pop("seconds", None),
            "numeric_level": int(relay_level),
            "extra_data": fields or None,
        }
        logger.log(stdlib_level, msg, extra=extra)

    emit.__doc__ = f"Emit a {tag} line, shown from level {relay_level.name} up."
    return emit


info = _emitter("INFO", logging.INFO, LogLevel.NORMAL)
success = _emitter("SUCCESS", logging.INFO, LogLevel.NORMAL)
warn = _emitter("WARN", logging.WARNING, LogLevel.NORMAL)
error = _emitter("ERROR", logging.ERROR, LogLevel.MINIMAL)
fail = _emitter("FAIL", logging.ERROR, LogLevel.MINIMAL)
verbose = _emitter("INFO", logging.DEBUG, LogLevel.VERBOSE)
debug = _emitter("DEBUG", logging.DEBUG - 5, LogLevel.DEBUG)


__all__ = [
    "LogLevel",
    "LEVEL_MAP",
    "LEVEL_NAMES",
    "coerce_level",
    "Colors",
    "supports_color",
    "colorize",
    "get_tag_color",
    "get_request_id",
    "set_request_id",
    "get_level",
    "set_level",
    "get_level_name",
    "get_log_config",
    "JsonlFormatter",
    "ColoredConsoleFormatter",
    "configure_logging",
    "get_logger",
    "mask_secret",
    "info",
    "warn",
    "error",
    "success",
    "fail",
    "verbose",
    "debug",
]
