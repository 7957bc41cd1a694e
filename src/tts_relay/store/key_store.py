"""
Key Store for tts-relay.

Durable record of custom keys (issued to downstream callers), original keys
(upstream provider credentials), the mapping between them, and the daily
usage ledger. Everything lives in one JSON document:

    {
      "customKeys":   [CustomKey, ...],
      "originalKeys": [OriginalKey, ...],
      "keyMappings":  {"sk-...": "<originalKeyId>"},
      "usage":        {"2025-01-15": {"sk-...": 3}}
    }

Field names are camelCase so files written by earlier deployments load
unchanged.

Consistency:
    Every operation runs inside KeyStore.transaction(): the store lock is
    taken, the full document is loaded, the operation mutates it and the full
    document is written back atomically. Two operations issued in sequence
    never clobber each other's fields, and concurrent request threads are
    serialized. The lock is shared by every KeyStore opened on the same file
    within a process; multiple processes are not coordinated.

KeyMapping and CustomKey.originalKeyId hold the same link. Both are written
together by every operation that changes a link.

Usage:
    store = KeyStore(Path("data/api-keys.json"))
    upstream = store.create_original_key("P1", "up_123", "https://x/tts")
    key = store.create_custom_key("mobile-app", original_key_id=upstream.id)
    store.resolve_original_key(key.api_key)   # -> upstream
"""
from __future__ import annotations

import json
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from tts_relay.core.config import RateLimitConfig
from tts_relay.core.logging import debug, error, get_logger, info, mask_secret, warn
from tts_relay.core.metrics import metrics
from tts_relay.services.errors import (
    InternalError,
    NotFoundError,
    RateLimitError,
    RelayError,
    ValidationError,
)
from tts_relay.utils.clock import Clock, day_key, new_id, to_iso, utc_now
from tts_relay.utils.files import read_json, write_json_atomic

_LOG = get_logger("tts-relay.keys")

STATUS_ACTIVE = "active"
STATUS_DISABLED = "disabled"
KEY_STATUSES = (STATUS_ACTIVE, STATUS_DISABLED)

SECRET_PREFIX = "sk-"
DEFAULT_RATE_LIMIT = 1000


@dataclass
class CustomKey:
    """A caller-facing credential issued by the operator."""
    id: str
    name: str
    api_key: str
    status: str = STATUS_ACTIVE
    rate_limit: int = DEFAULT_RATE_LIMIT
    usage_count: int = 0
    created_at: str = ""
    last_used: Optional[str] = None
    original_key_id: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "apiKey": self.api_key,
            "status": self.status,
            "rateLimit": self.rate_limit,
            "usageCount": self.usage_count,
            "createdAt": self.created_at,
            "lastUsed": self.last_used,
            "originalKeyId": self.original_key_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CustomKey":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            api_key=str(data["apiKey"]),
            status=str(data.get("status", STATUS_ACTIVE)),
            rate_limit=int(data.get("rateLimit", DEFAULT_RATE_LIMIT)),
            usage_count=int(data.get("usageCount", 0)),
            created_at=str(data.get("createdAt", "")),
            last_used=data.get("lastUsed"),
            original_key_id=data.get("originalKeyId"),
        )


@dataclass
class OriginalKey:
    """An upstream provider credential and the endpoint it is valid for."""
    id: str
    name: str
    api_key: str
    endpoint: str
    status: str = STATUS_ACTIVE
    usage_count: int = 0
    created_at: str = ""
    last_used: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "apiKey": self.api_key,
            "endpoint": self.endpoint,
            "status": self.status,
            "usageCount": self.usage_count,
            "createdAt": self.created_at,
            "lastUsed": self.last_used,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OriginalKey":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            api_key=str(data["apiKey"]),
            endpoint=str(data.get("endpoint", "")),
            status=str(data.get("status", STATUS_ACTIVE)),
            usage_count=int(data.get("usageCount", 0)),
            created_at=str(data.get("createdAt", "")),
            last_used=data.get("lastUsed"),
        )


@dataclass
class KeyStoreState:
    """The whole store document, loaded for the duration of one transaction."""
    custom_keys: List[CustomKey] = field(default_factory=list)
    original_keys: List[OriginalKey] = field(default_factory=list)
    key_mappings: Dict[str, str] = field(default_factory=dict)
    usage: Dict[str, Dict[str, int]] = field(default_factory=dict)

    def custom_by_secret(self, api_key: str) -> Optional[CustomKey]:
        return next((k for k in self.custom_keys if k.api_key == api_key), None)

    def custom_by_id(self, key_id: str) -> Optional[CustomKey]:
        return next((k for k in self.custom_keys if k.id == key_id), None)

    def original_by_id(self, key_id: Optional[str]) -> Optional[OriginalKey]:
        if not key_id:
            return None
        return next((k for k in self.original_keys if k.id == key_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "customKeys": [k.to_dict() for k in self.custom_keys],
            "originalKeys": [k.to_dict() for k in self.original_keys],
            "keyMappings": dict(self.key_mappings),
            "usage": self.usage,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KeyStoreState":
        return cls(
            custom_keys=[CustomKey.from_dict(k) for k in data.get("customKeys") or []],
            original_keys=[OriginalKey.from_dict(k) for k in data.get("originalKeys") or []],
            key_mappings={str(k): str(v) for k, v in (data.get("keyMappings") or {}).items()},
            usage={
                str(day): {str(s): int(n) for s, n in (counts or {}).items()}
                for day, counts in (data.get("usage") or {}).items()
            },
        )


_PATH_LOCKS: Dict[str, threading.Lock] = {}
_PATH_LOCKS_GUARD = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _PATH_LOCKS_GUARD:
        return _PATH_LOCKS.setdefault(key, threading.Lock())


def generate_secret() -> str:
    """New custom key secret: "sk-" followed by 32 lowercase hex characters."""
    return SECRET_PREFIX + uuid.uuid4().hex


def _require_text(field_name: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


class KeyStore:
    """
    Repository over the key store file.

    Args:
        path: Location of the JSON document (created on first use).
        rate_limit: Rate limit settings; enforcement is off by default.
        clock: Returns the current aware datetime; injectable for tests.
    """

    def __init__(
        self,
        path: Path,
        rate_limit: Optional[RateLimitConfig] = None,
        clock: Clock = utc_now,
    ):
        self._path = Path(path)
        self._rate_limit = rate_limit or RateLimitConfig()
        self._clock = clock
        self._lock = _lock_for(self._path)

    @property
    def path(self) -> Path:
        return self._path

    # ─────────────────────────────────────────────────────────────────────────
    # Persistence
    # ─────────────────────────────────────────────────────────────────────────

    def _load(self) -> KeyStoreState:
        if not self._path.exists():
            state = KeyStoreState()
            self._save(state)
            info(_LOG, "key_store_created", path=str(self._path))
            return state
        try:
            return KeyStoreState.from_dict(read_json(self._path))
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
            error(_LOG, "key_store_unreadable", path=str(self._path), error=str(e))
            raise InternalError("Key store is unreadable", details={"path": str(self._path)}) from e

    def _save(self, state: KeyStoreState) -> None:
        try:
            write_json_atomic(self._path, state.to_dict())
        except OSError as e:
            error(_LOG, "key_store_write_failed", path=str(self._path), error=str(e))
            raise InternalError("Key store could not be written") from e

    @contextmanager
    def transaction(self) -> Iterator[KeyStoreState]:
        """
        Read-modify-write boundary.

        The yielded state is written back only when the block exits without
        an exception.
        """
        with self._lock:
            state = self._load()
            yield state
            self._save(state)

    @contextmanager
    def _snapshot(self) -> Iterator[KeyStoreState]:
        with self._lock:
            yield self._load()

    def init_storage(self) -> Path:
        """Create the data directory and an empty store file if missing."""
        with self._snapshot():
            pass
        return self._path

    # ─────────────────────────────────────────────────────────────────────────
    # Creation
    # ─────────────────────────────────────────────────────────────────────────

    def create_custom_key(
        self,
        name: Any,
        rate_limit: Any = None,
        original_key_id: Optional[str] = None,
    ) -> CustomKey:
        """
        Issue a new custom key.

        rate_limit defaults to rate_limit.default_daily from settings.

        Raises:
            ValidationError: name missing, rate_limit not a non-negative
                integer, or original_key_id naming no original key.
        """
        name = _require_text("name", name)
        if rate_limit is None:
            rate_limit = self._rate_limit.default_daily
        if isinstance(rate_limit, bool) or not isinstance(rate_limit, int) or rate_limit < 0:
            raise ValidationError("rateLimit must be a non-negative integer")

        with self.transaction() as state:
            if original_key_id and state.original_by_id(original_key_id) is None:
                raise ValidationError(f"Original API key '{original_key_id}' not found")

            taken = {k.api_key for k in state.custom_keys}
            secret = generate_secret()
            while secret in taken:
                secret = generate_secret()

            key = CustomKey(
                id=new_id(),
                name=name,
                api_key=secret,
                rate_limit=rate_limit,
                created_at=to_iso(self._clock()),
                original_key_id=original_key_id or None,
            )
            state.custom_keys.append(key)
            if key.original_key_id:
                state.key_mappings[key.api_key] = key.original_key_id

        info(_LOG, "custom_key_created", key_id=key.id, name=name, secret=mask_secret(key.api_key),
             linked=bool(key.original_key_id))
        return key

    def create_original_key(self, name: Any, api_key: Any, endpoint: Any) -> OriginalKey:
        """Store an upstream credential as given. It is not verified upstream."""
        name = _require_text("name", name)
        api_key = _require_text("apiKey", api_key)
        endpoint = _require_text("endpoint", endpoint)

        with self.transaction() as state:
            key = OriginalKey(
                id=new_id(),
                name=name,
                api_key=api_key,
                endpoint=endpoint,
                created_at=to_iso(self._clock()),
            )
            state.original_keys.append(key)

        info(_LOG, "original_key_created", key_id=key.id, name=name, endpoint=endpoint)
        return key

    # ─────────────────────────────────────────────────────────────────────────
    # Lookup
    # ─────────────────────────────────────────────────────────────────────────

    def validate_custom_key(self, api_key: Optional[str]) -> bool:
        """True iff the secret belongs to an active custom key."""
        if not api_key:
            return False
        key = self.get_key_info(api_key)
        return key is not None and key.is_active

    def get_key_info(self, api_key: str) -> Optional[CustomKey]:
        with self._snapshot() as state:
            key = state.custom_by_secret(api_key)
        debug(_LOG, "key_lookup", secret=mask_secret(api_key), found=key is not None)
        return key

    def resolve_original_key(self, custom_api_key: str) -> Optional[OriginalKey]:
        """The original key a custom secret is mapped to, or None."""
        with self._snapshot() as state:
            return state.original_by_id(state.key_mappings.get(custom_api_key))

    def list_custom_keys(self, masked: bool = True) -> List[Dict[str, Any]]:
        """Custom keys for display, annotated with originalKeyName."""
        with self._snapshot() as state:
            result = []
            for key in state.custom_keys:
                entry = key.to_dict()
                if masked:
                    entry["apiKey"] = mask_secret(key.api_key)
                linked = state.original_by_id(key.original_key_id)
                entry["originalKeyName"] = linked.name if linked else None
                result.append(entry)
            return result

    def list_original_keys(self) -> List[OriginalKey]:
        with self._snapshot() as state:
            return list(state.original_keys)

    def list_playground_keys(self) -> List[Dict[str, Any]]:
        """Active custom keys with full secrets, for the dashboard playground."""
        with self._snapshot() as state:
            return [
                {
                    "id": k.id,
                    "name": k.name,
                    "apiKey": k.api_key,
                    "usageCount": k.usage_count,
                    "createdAt": k.created_at,
                }
                for k in state.custom_keys
                if k.is_active
            ]

    # ─────────────────────────────────────────────────────────────────────────
    # Mutation
    # ─────────────────────────────────────────────────────────────────────────

    def record_usage(self, api_key: str) -> None:
        """
        Count one successful call against a custom key.

        Increments usageCount, sets lastUsed and bumps today's ledger cell.
        Unknown secrets are ignored. Never raises; storage failures are
        logged.
        """
        now = self._clock()
        try:
            with self.transaction() as state:
                key = state.custom_by_secret(api_key)
                if key is None:
                    debug(_LOG, "usage_unknown_key", secret=mask_secret(api_key))
                    return
                key.usage_count += 1
                key.last_used = to_iso(now)
                day = state.usage.setdefault(day_key(now), {})
                day[api_key] = day.get(api_key, 0) + 1
        except (RelayError, OSError) as e:
            warn(_LOG, "usage_record_failed", secret=mask_secret(api_key), error=str(e))
            return
        metrics.inc_key_usage()

    def check_rate_limit(self, api_key: str) -> None:
        """
        Reject a key whose count for today has reached its rateLimit.

        A no-op unless rate_limit.enforce is enabled.

        Raises:
            RateLimitError: The daily limit is exhausted.
        """
        if not self._rate_limit.enforce:
            return
        today = day_key(self._clock())
        with self._snapshot() as state:
            key = state.custom_by_secret(api_key)
            used = state.usage.get(today, {}).get(api_key, 0)
        if key is not None and used >= key.rate_limit:
            warn(_LOG, "rate_limited", secret=mask_secret(api_key), used=used, limit=key.rate_limit)
            raise RateLimitError(f"Rate limit of {key.rate_limit} requests per day exceeded")

    def link_original_key(self, custom_key_id: str, original_key_id: Optional[str]) -> CustomKey:
        """Point a custom key at another original key, or unlink it with None."""
        with self.transaction() as state:
            key = state.custom_by_id(custom_key_id)
            if key is None:
                raise NotFoundError("API key not found")
            if original_key_id and state.original_by_id(original_key_id) is None:
                raise ValidationError(f"Original API key '{original_key_id}' not found")

            key.original_key_id = original_key_id or None
            if key.original_key_id:
                state.key_mappings[key.api_key] = key.original_key_id
            else:
                state.key_mappings.pop(key.api_key, None)

        info(_LOG, "custom_key_linked", key_id=custom_key_id, original_key_id=key.original_key_id)
        return key

    def set_status(self, custom_key_id: str, status: str) -> CustomKey:
        if status not in KEY_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(KEY_STATUSES)}")
        with self.transaction() as state:
            key = state.custom_by_id(custom_key_id)
            if key is None:
                raise NotFoundError("API key not found")
            key.status = status
        info(_LOG, "custom_key_status", key_id=custom_key_id, status=status)
        return key

    def delete_custom_key(self, key_id: str) -> None:
        """Remove a custom key and the mapping entry keyed by its secret."""
        with self.transaction() as state:
            key = state.custom_by_id(key_id)
            if key is None:
                raise NotFoundError("API key not found")
            state.custom_keys.remove(key)
            state.key_mappings.pop(key.api_key, None)
        info(_LOG, "custom_key_deleted", key_id=key_id, name=key.name)

    def delete_original_key(self, key_id: str) -> None:
        """Remove an original key, unlinking every custom key that used it."""
        with self.transaction() as state:
            key = state.original_by_id(key_id)
            if key is None:
                raise NotFoundError("Original API key not found")
            state.original_keys.remove(key)

            state.key_mappings = {s: oid for s, oid in state.key_mappings.items() if oid != key_id}
            unlinked = 0
            for custom in state.custom_keys:
                if custom.original_key_id == key_id:
                    custom.original_key_id = None
                    unlinked += 1

        info(_LOG, "original_key_deleted", key_id=key_id, name=key.name, unlinked=unlinked)

    # ─────────────────────────────────────────────────────────────────────────
    # Statistics
    # ─────────────────────────────────────────────────────────────────────────

    def usage_stats(self) -> Dict[str, Any]:
        with self._snapshot() as state:
            return {
                "totalKeys": len(state.custom_keys),
                "activeKeys": sum(1 for k in state.custom_keys if k.is_active),
                "totalUsage": sum(k.usage_count for k in state.custom_keys),
                "dailyUsage": state.usage,
            }
