"""
Request History Ring.

Bounded, newest-first record of dashboard playground results. It lives in
process memory only and is lost on restart. One ring is owned by the
application's RelayServices and handed to the dashboard routes.
"""
from __future__ import annotations

import base64
import threading
import uuid
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from tts_relay.utils.clock import utc_now_iso


@dataclass
class TtsHistoryEntry:
    id: str
    audio: str
    timestamp: str
    voice: str
    text: str
    duration: int
    apiKey: str
    apiKeyName: str

    @classmethod
    def from_audio(
        cls,
        audio: bytes,
        voice: str,
        text: str,
        api_key: str,
        api_key_name: Optional[str] = None,
    ) -> "TtsHistoryEntry":
        """Entry for freshly relayed audio; duration is a rough estimate from size."""
        return cls(
            id=uuid.uuid4().hex[:12],
            audio="data:audio/mpeg;base64," + base64.b64encode(audio).decode("ascii"),
            timestamp=utc_now_iso(),
            voice=voice,
            text=text,
            duration=round(len(audio) / 1000),
            apiKey=api_key,
            apiKeyName=api_key_name or "Unknown Key",
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class HistoryRing:
    """Thread-safe ring of the most recent entries."""

    def __init__(self, capacity: int = 10):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._entries: List[TtsHistoryEntry] = []
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def record(self, entry: TtsHistoryEntry) -> None:
        with self._lock:
            self._entries.insert(0, entry)
            del self._entries[self._capacity:]

    def list(self) -> List[TtsHistoryEntry]:
        with self._lock:
            return list(self._entries)

    def remove(self, entry_id: str) -> bool:
        """False when no entry has this id."""
        with self._lock:
            for i, entry in enumerate(self._entries):
                if entry.id == entry_id:
                    del self._entries[i]
                    return True
            return False

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
