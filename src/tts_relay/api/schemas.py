"""
API request schemas.

Field names follow the JSON the dashboard and OpenAI clients send
(camelCase on the dashboard API), mapped to snake_case attributes with
aliases. Content rules (text length, speed range, supported formats,
required names) are enforced by the services so that the same messages
reach HTTP and CLI callers; the models only check types.

Example speech request:
    {
        "model": "tts-1",
        "input": "Hello there!",
        "voice": "Joanna",
        "response_format": "mp3",
        "speed": 1.0
    }
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SpeechRequest(BaseModel):
    """OpenAI-compatible /v1/audio/speech body. model is accepted and ignored."""
    model: str = Field(default="tts-1", description="Accepted for compatibility; ignored.")
    input: Optional[str] = Field(default=None, description="Text to speak (1-4096 characters).")
    voice: Optional[str] = Field(default=None, description="Voice id or exact voice name.")
    response_format: str = Field(default="mp3", description="Only mp3 is supported.")
    speed: float = Field(default=1.0, description="0.25 to 4.0.")


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class LoginRequest(_CamelModel):
    master_key: Optional[str] = Field(default=None, alias="masterKey")


class CreateKeyRequest(_CamelModel):
    name: Optional[str] = None
    rate_limit: Optional[int] = Field(default=None, alias="rateLimit")
    original_key_id: Optional[str] = Field(default=None, alias="originalKeyId")


class CreateOriginalKeyRequest(_CamelModel):
    name: Optional[str] = None
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    endpoint: Optional[str] = None


class LinkOriginalKeyRequest(_CamelModel):
    original_key_id: Optional[str] = Field(default=None, alias="originalKeyId")


class KeyStatusRequest(_CamelModel):
    status: str


class PlaygroundSpeechRequest(_CamelModel):
    text: Optional[str] = None
    voice: Optional[str] = None
    api_key: Optional[str] = Field(default=None, alias="apiKey")
