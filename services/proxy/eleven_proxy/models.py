"""Data models for the ElevenLabs proxy"""

from dataclasses import dataclass
from typing import Any, Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator


class SynthesisRequest(BaseModel):
    """Inbound synthesis request.

    Field names follow the caller's camelCase JSON. Tunables left as ``None``
    are filled from the configured voice defaults when the upstream payload
    is built.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        # Upstream JSON cannot carry NaN or infinities
        allow_inf_nan=False,
        # Avoid conflict with the `model_id` field
        protected_namespaces=(),
    )

    text: str = ""
    voice_id: str = Field(default="", alias="voiceId")
    model_id: Optional[str] = Field(default=None, alias="modelId")
    language_code: Optional[str] = Field(default=None, alias="languageCode")
    stability: Optional[float] = None
    similarity_boost: Optional[float] = Field(default=None, alias="similarityBoost")
    style: Optional[float] = None
    use_speaker_boost: Optional[bool] = Field(default=None, alias="useSpeakerBoost")

    @field_validator("text", "voice_id", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("model_id", "language_code", mode="before")
    @classmethod
    def _coerce_optional_text(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value)


# Upstream outcomes. Exactly one is produced per upstream call, from the
# status line and headers, before any body byte reaches the caller.

@dataclass(frozen=True)
class RedirectBlocked:
    status: int
    location: Optional[str]


@dataclass(frozen=True)
class UpstreamError:
    status: Optional[int]
    body: str


@dataclass(frozen=True)
class ContentTypeRejected:
    content_type: str
    body: str


@dataclass(frozen=True)
class Success:
    response: httpx.Response
    content_type: str


UpstreamOutcome = Union[RedirectBlocked, UpstreamError, ContentTypeRejected, Success]
