"""Pydantic v2 models shared by every provider adapter."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProviderConfig(BaseModel):
    """Per-call provider settings.

    Hosted providers read ``api_key``; locally-served providers read
    ``base_url``. The other field is left ``None`` by ``Config.provider_config``.
    """

    model_config = ConfigDict(frozen=True)

    identifier: str = Field(..., description="Canonical provider identifier")
    api_key: str | None = Field(default=None, description="Credential for hosted providers")
    base_url: str | None = Field(default=None, description="Endpoint for local providers")
    model: str = Field(default="", description="Model name; empty means adapter default")
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, gt=0)
    timeout: float = Field(default=120.0, gt=0, description="Transport timeout in seconds")

    @property
    def configured(self) -> bool:
        return bool(self.api_key or self.base_url)


class GenerationResult(BaseModel):
    """Normalized reply of one adapter call."""

    model_config = ConfigDict(frozen=True)

    content: str = Field(default="", description="Raw text produced by the model")
    model: str = Field(default="", description="Model that produced the response")
    usage: Any = Field(default=None, description="Provider-specific token accounting")
