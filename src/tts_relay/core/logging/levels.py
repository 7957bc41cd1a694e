"""
Relay verbosity levels.

Operators pick one of four levels; each maps onto a stdlib threshold for
the console handler:

    MINIMAL (1)  WARNING     lifecycle and failures
    NORMAL  (2)  INFO        one line per request and per key/catalog change
    VERBOSE (3)  DEBUG       upstream timings, cache hits and misses
    DEBUG   (4)  DEBUG - 5   request bodies, internal state
"""
from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any


class LogLevel(IntEnum):
    MINIMAL = 1
    NORMAL = 2
    VERBOSE = 3
    DEBUG = 4


LEVEL_MAP = {
    LogLevel.MINIMAL: logging.WARNING,
    LogLevel.NORMAL: logging.INFO,
    LogLevel.VERBOSE: logging.DEBUG,
    LogLevel.DEBUG: logging.DEBUG - 5,
}

LEVEL_NAMES = {lvl.value: lvl.name for lvl in LogLevel}

# Relay names plus the stdlib spellings people type out of habit
_ALIASES = {
    **{lvl.name: lvl for lvl in LogLevel},
    "TRACE": LogLevel.DEBUG,
    "INFO": LogLevel.NORMAL,
    "WARN": LogLevel.MINIMAL,
    "WARNING": LogLevel.MINIMAL,
    "ERROR": LogLevel.MINIMAL,
    "CRITICAL": LogLevel.MINIMAL,
}


def _from_stdlib(value: int) -> LogLevel:
    if value >= logging.WARNING:
        return LogLevel.MINIMAL
    if value >= logging.INFO:
        return LogLevel.NORMAL
    return LogLevel.DEBUG


def coerce_level(value: Any) -> LogLevel:
    """
    Best-effort conversion to a LogLevel; anything unrecognised is NORMAL.

    Accepts 1-4, stdlib numbers (logging.WARNING -> MINIMAL), names from
    either vocabulary in any case, and digit strings such as "3".
    """
    if isinstance(value, LogLevel):
        return value
    if isinstance(value, str):
        text = value.strip().upper()
        if not text.isdigit():
            return _ALIASES.get(text, LogLevel.NORMAL)
        value = int(text)
    if isinstance(value, int):
        return LogLevel(value) if 1 <= value <= 4 else _from_stdlib(value)
    return LogLevel.NORMAL
