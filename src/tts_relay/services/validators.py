"""
Input validation for speech requests.

Runs before any network call, including the catalog lookup that may
refresh the voice list. Every rule raises ValidationError (HTTP 400,
invalid_request_error) with a message the caller can act on.

Rules:
    - input: non-empty string, at most 4096 characters (whitespace counts,
      nothing is stripped)
    - voice: non-empty string (resolved against the catalog later)
    - response_format: one of the supported formats (mp3)
    - speed: number in [0.25, 4.0]
"""
from __future__ import annotations

from typing import Any, Sequence

from tts_relay.core.config import Defaults
from tts_relay.services.errors import ValidationError


def validate_text(text: Any, max_length: int = Defaults.FORWARDER_MAX_INPUT_CHARS) -> str:
    if not isinstance(text, str) or not text:
        raise ValidationError("Input text is required and must be a string")
    if len(text) > max_length:
        raise ValidationError(
            f"Input text is too long. Maximum length is {max_length} characters.",
            details={"length": len(text)},
        )
    return text


def validate_voice(voice: Any) -> str:
    if not isinstance(voice, str) or not voice:
        raise ValidationError("Voice is required and must be a string")
    return voice


def validate_format(response_format: Any, supported: Sequence[str] = Defaults.FORWARDER_FORMATS) -> str:
    if response_format not in supported:
        raise ValidationError(f"Only {', '.join(supported)} response format is supported")
    return response_format


def validate_speed(
    speed: Any,
    min_speed: float = Defaults.FORWARDER_MIN_SPEED,
    max_speed: float = Defaults.FORWARDER_MAX_SPEED,
) -> float:
    # NaN fails the range comparison
    if isinstance(speed, bool) or not isinstance(speed, (int, float)) or not (min_speed <= speed <= max_speed):
        raise ValidationError(f"Speed must be between {min_speed} and {max_speed}")
    return float(speed)
