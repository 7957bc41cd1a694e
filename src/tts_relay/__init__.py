"""
tts-relay: Key-management proxy in front of an upstream TTS provider.

tts-relay issues "custom" API keys to downstream clients, routes each key to
one of several upstream ("original") credentials, meters usage per key, and
exposes an OpenAI-compatible speech surface that forwards to the provider.

Components:
    - Key Store: custom keys, original keys, mappings and the usage ledger
    - Voice Catalog: cached, enriched snapshot of the provider's voices
    - Speech Forwarder: validate -> resolve credential -> call upstream -> download audio
    - History Ring: last N playground requests, process lifetime only

Example Usage:
    >>> from tts_relay.core.config import Settings
    >>> from tts_relay.services.container import RelayServices
    >>>
    >>> services = RelayServices.from_settings(Settings(raw={}))
    >>> key = services.key_store.create_custom_key("mobile-app", rate_limit=500)
    >>> key.api_key[:3]
    'sk-'
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
