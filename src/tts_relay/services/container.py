"""
Composition root for the relay services.

RelayServices builds every component once from Settings and owns the shared
resources (upstream HTTP client, history ring, dashboard sessions). The
FastAPI app keeps one instance on app.state. The CLI builds its own.

    services = RelayServices.from_settings(load_settings_or_defaults())
    services.key_store.create_custom_key("mobile-app")
    services.close()
"""
from __future__ import annotations

import secrets
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Optional

import httpx

from tts_relay.catalog.catalog import VoiceCatalog
from tts_relay.catalog.classify import GenderClassifier, name_list_gender
from tts_relay.core.config import RelayConfig, Settings
from tts_relay.core.logging import get_logger, info
from tts_relay.services.forwarder import SpeechForwarder
from tts_relay.services.history import HistoryRing
from tts_relay.services.upstream import UpstreamClient
from tts_relay.store.key_store import KeyStore

_LOG = get_logger("tts-relay.services")


@dataclass
class RelayServices:
    settings: Settings
    config: RelayConfig
    upstream: UpstreamClient
    key_store: KeyStore
    catalog: VoiceCatalog
    forwarder: SpeechForwarder
    history: HistoryRing
    _sessions: "OrderedDict[str, None]" = field(default_factory=OrderedDict)
    _sessions_lock: threading.Lock = field(default_factory=threading.Lock)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_client: Optional[httpx.Client] = None,
        gender_classifier: GenderClassifier = name_list_gender,
    ) -> "RelayServices":
        """
        Wire all components.

        Args:
            settings: Loaded settings (validated here).
            http_client: Optional pre-built httpx.Client for the upstream.
            gender_classifier: Replacement for the name-list heuristic.

        Raises:
            ConfigValidationError: Settings fail validation.
        """
        config = settings.get_relay_config()
        upstream = UpstreamClient(config.upstream.timeout_s, client=http_client)
        key_store = KeyStore(config.storage.keys_path, rate_limit=config.rate_limit)
        catalog = VoiceCatalog(
            config.storage.voices_path,
            upstream,
            config.upstream,
            config.catalog,
            gender_classifier=gender_classifier,
        )
        forwarder = SpeechForwarder(
            key_store,
            catalog,
            upstream,
            config.upstream,
            config.forwarder,
            text_preview_chars=config.logging.preview_chars,
        )
        info(_LOG, "services_ready", data_dir=config.storage.data_dir,
             default_upstream=bool(config.upstream.endpoint))
        return cls(
            settings=settings,
            config=config,
            upstream=upstream,
            key_store=key_store,
            catalog=catalog,
            forwarder=forwarder,
            history=HistoryRing(config.history.capacity),
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Dashboard sessions
    # ─────────────────────────────────────────────────────────────────────────

    def login(self, master_key: Optional[str]) -> Optional[str]:
        """
        A new session token, or None for a wrong or unset master key.

        At most dashboard.max_sessions tokens are live; the least recently
        used one is dropped to make room.
        """
        expected = self.config.dashboard.master_key
        if not expected or not master_key:
            return None
        if not secrets.compare_digest(master_key.encode("utf-8"), expected.encode("utf-8")):
            return None
        token = secrets.token_urlsafe(32)
        with self._sessions_lock:
            self._sessions[token] = None
            while len(self._sessions) > self.config.dashboard.max_sessions:
                self._sessions.popitem(last=False)
        info(_LOG, "dashboard_login", sessions=len(self._sessions))
        return token

    def is_session(self, token: Optional[str]) -> bool:
        if not token:
            return False
        with self._sessions_lock:
            if token not in self._sessions:
                return False
            self._sessions.move_to_end(token)
            return True

    def close(self) -> None:
        self.upstream.close()
