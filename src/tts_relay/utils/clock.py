"""
Clock and identifier helpers.

Timestamps are stored as ISO-8601 UTC with millisecond precision and a
trailing "Z" (e.g. 2025-01-15T14:30:05.123Z). Daily usage buckets are
keyed by the UTC date (YYYY-MM-DD).
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    """Format an aware datetime as ISO-8601 UTC with milliseconds and "Z"."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def utc_now_iso() -> str:
    return to_iso(utc_now())


def day_key(moment: datetime) -> str:
    """UTC calendar date of a moment, as YYYY-MM-DD."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%d")


def new_id() -> str:
    """Random UUID4 in canonical hyphenated form."""
    return str(uuid.uuid4())


def new_request_id() -> str:
    return str(uuid.uuid4())[:12]
