"""Cached, enriched catalog of upstream voices."""
from tts_relay.catalog.catalog import Voice, VoiceCatalog, dedupe_and_enrich, sort_by_quality
from tts_relay.catalog.classify import GenderClassifier, name_list_gender

__all__ = [
    "GenderClassifier",
    "Voice",
    "VoiceCatalog",
    "dedupe_and_enrich",
    "name_list_gender",
    "sort_by_quality",
]
