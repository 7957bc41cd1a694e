"""
Console and JSONL renderings of relay log records.

Both read the same record attributes set by the emit helpers: tag,
request_id, event, seconds, extra_data and numeric_level.

File line:
    {"ts": "...", "level": 2, "tag": "INFO", "message": "speech_request",
     "request_id": "a1b2c3d4e5f6", "extra": {"voice": "Joanna", "chars": 42}}

Console line:
    14:30:05 [ INFO  ] (a1b2c3d4e5f6) speech_request voice=Joanna chars=42
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict, List

from .colors import Colors, colorize, get_tag_color


def _attr(record: logging.LogRecord, name: str, default: Any = None) -> Any:
    return getattr(record, name, default)


class JsonlFormatter(logging.Formatter):
    """One JSON object per line; optional keys appear only when set."""

    def format(self, record: logging.LogRecord) -> str:
        line: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created).astimezone().isoformat(),
            "level": _attr(record, "numeric_level", 2),
            "tag": _attr(record, "tag", record.levelname),
            "message": record.getMessage(),
            "request_id": _attr(record, "request_id", "-"),
        }
        for key, attr in (("event", "event"), ("seconds", "seconds"), ("extra", "extra_data")):
            value = _attr(record, attr)
            if value is not None and value != {}:
                line[key] = value
        return json.dumps(line, ensure_ascii=False, default=str)


def _status_color(status: int) -> str:
    if status >= 500:
        return Colors.RED
    return Colors.YELLOW if status >= 400 else Colors.GREEN


def _duration_color(seconds: float) -> str:
    # A typical upstream synthesis round trip is about a second
    if seconds >= 5.0:
        return Colors.RED
    return Colors.YELLOW if seconds >= 0.5 else Colors.GREEN


class ColoredConsoleFormatter(logging.Formatter):
    """Compact single-line output; HTTP statuses and durations are colored by severity."""

    def format(self, record: logging.LogRecord) -> str:
        tag = _attr(record, "tag", record.levelname)
        rid = _attr(record, "request_id", "-")

        out: List[str] = [
            colorize(datetime.fromtimestamp(record.created).strftime("%H:%M:%S"), Colors.DIM),
            colorize(f"[{tag:^7}]", get_tag_color(tag)),
        ]
        if rid != "-":
            out.append(colorize(f"({rid})", Colors.DIM + Colors.CYAN))
        out.append(record.getMessage())

        if _attr(record, "event"):
            out.append(colorize(f"event={record.event}", Colors.BLUE))
        if _attr(record, "seconds") is not None:
            out.append(colorize(f"{record.seconds:.3f}s", _duration_color(record.seconds)))

        for key, value in (_attr(record, "extra_data") or {}).items():
            if key in ("status", "upstream_status") and isinstance(value, int):
                color = _status_color(value)
            else:
                color = Colors.RED if key == "error" else Colors.DIM
            out.append(colorize(f"{key}={value}", color))
        return " ".join(out)
