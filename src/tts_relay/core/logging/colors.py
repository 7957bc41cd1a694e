"""
Terminal colors for the console formatter.

Turned off for non-TTY stdout, when NO_COLOR is set (https://no-color.org/)
and when TTS_RELAY_NO_COLOR=1.
"""
from __future__ import annotations

import os
import sys


class Colors:
    RESET = "\033[0m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    GRAY = "\033[90m"
    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_CYAN = "\033[96m"


def supports_color() -> bool:
    if os.getenv("TTS_RELAY_NO_COLOR") == "1" or os.getenv("NO_COLOR"):
        return False
    stream_isatty = getattr(sys.stdout, "isatty", None)
    return bool(stream_isatty and stream_isatty()) and sys.platform != "win32"


# Re-evaluated by configure_logging()
USE_COLORS = supports_color()


def colorize(text: str, color: str) -> str:
    return f"{color}{text}{Colors.RESET}" if USE_COLORS else text


_BY_TAG = {
    "SUCCESS": Colors.BRIGHT_GREEN,
    "INFO": Colors.BRIGHT_CYAN,
    "WARN": Colors.BRIGHT_YELLOW,
    "WARNING": Colors.BRIGHT_YELLOW,
    "ERROR": Colors.BRIGHT_RED,
    "FAIL": Colors.BRIGHT_RED,
    "DEBUG": Colors.GRAY,
}


def get_tag_color(tag: str) -> str:
    return _BY_TAG.get(tag.upper(), Colors.WHITE)
