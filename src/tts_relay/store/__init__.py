"""Durable key store: custom keys, original keys, mappings and usage."""
from tts_relay.store.key_store import CustomKey, KeyStore, KeyStoreState, OriginalKey

__all__ = ["CustomKey", "KeyStore", "KeyStoreState", "OriginalKey"]
