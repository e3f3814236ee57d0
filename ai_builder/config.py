"""AI Builder configuration.

Centralised, typed configuration for the generation service. All settings use
Pydantic v2 models so they can be validated at construction time and built
from environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

from ai_builder.providers.models import ProviderConfig


class ProviderSettings(BaseModel):
    """Process-level defaults for one provider."""

    api_key: str | None = Field(default=None, description="Credential for hosted providers")
    base_url: str | None = Field(default=None, description="Endpoint for locally-served providers")
    model: str = Field(..., description="Default model name")


# Environment variable names per canonical provider identifier:
# (credential-or-endpoint variables, model variable, default model).
_PROVIDER_ENV: dict[str, tuple[tuple[str, ...], str, str]] = {
    "openai": (("OPENAI_API_KEY",), "OPENAI_MODEL", "gpt-4o-mini"),
    "claude": (("CLAUDE_API_KEY", "ANTHROPIC_API_KEY"), "CLAUDE_MODEL", "claude-3-5-sonnet-20241022"),
    "gemini": (("GEMINI_API_KEY",), "GEMINI_MODEL", "gemini-pro"),
    "groq": (("GROQ_API_KEY",), "GROQ_MODEL", "llama-3.3-70b-versatile"),
    "ollama": (("OLLAMA_URL",), "OLLAMA_MODEL", "llama2"),
    "cohere": (("COHERE_API_KEY",), "COHERE_MODEL", "command"),
    "mistral": (("MISTRAL_API_KEY",), "MISTRAL_MODEL", "mistral-small-latest"),
    "huggingface": (
        ("HUGGINGFACE_API_KEY",),
        "HUGGINGFACE_MODEL",
        "mistralai/Mixtral-8x7B-Instruct-v0.1",
    ),
}

LOCAL_PROVIDERS: frozenset[str] = frozenset({"ollama"})
DEFAULT_OLLAMA_URL = "http://localhost:11434"


def _default_providers() -> dict[str, ProviderSettings]:
    providers: dict[str, ProviderSettings] = {}
    for identifier, (_, _, model) in _PROVIDER_ENV.items():
        base_url = DEFAULT_OLLAMA_URL if identifier in LOCAL_PROVIDERS else None
        providers[identifier] = ProviderSettings(model=model, base_url=base_url)
    return providers


class Config(BaseModel):
    """Global AI Builder configuration.

    Instances are created once by the CLI entry point (or by tests) and
    passed to the application factory. Nothing in the request path mutates
    them; per-request provider overrides produce fresh ``ProviderConfig``
    values through :meth:`provider_config`.
    """

    default_provider: str = Field(default="groq")
    providers: dict[str, ProviderSettings] = Field(default_factory=_default_providers)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=8000, gt=0)
    timeout: float = Field(default=120.0, gt=0, description="Transport timeout in seconds")

    template_path: Path = Field(default=Path("./template"))
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3001, ge=1, le=65535)

    analysis_ttl: float = Field(default=60.0, ge=0, description="Analysis cache TTL in seconds")
    checkpoint_strategy: Literal["git", "backup", "none"] = Field(default="none")
    auto_install_deps: bool = Field(default=False)

    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)

    # ------------------------------------------------------------------
    # Derived paths (read-only properties)
    # ------------------------------------------------------------------

    @property
    def source_root(self) -> Path:
        """The template's ``src/`` directory; every file operation stays below it."""
        return self.template_path / "src"

    # ------------------------------------------------------------------
    # Provider resolution
    # ------------------------------------------------------------------

    def provider_config(
        self,
        identifier: str,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ProviderConfig:
        """Build a fresh ``ProviderConfig`` for ``identifier``.

        ``identifier`` must already be canonical (see
        ``ProviderRegistry.canonical``). Overrides that are ``None`` fall back
        to the process defaults; an explicit ``0.0`` temperature is kept.
        """
        settings = self.providers.get(identifier)
        if settings is None:
            settings = ProviderSettings(model="")
        local = identifier in LOCAL_PROVIDERS
        return ProviderConfig(
            identifier=identifier,
            api_key=None if local else settings.api_key,
            base_url=settings.base_url if local else None,
            model=model or settings.model,
            temperature=self.temperature if temperature is None else temperature,
            max_tokens=max_tokens or self.max_tokens,
            timeout=self.timeout,
        )

    def is_configured(self, identifier: str) -> bool:
        """Return ``True`` when the provider has its credential or endpoint."""
        settings = self.providers.get(identifier)
        if settings is None:
            return False
        if identifier in LOCAL_PROVIDERS:
            return bool(settings.base_url)
        return bool(settings.api_key)

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            AI_PROVIDER, AI_TEMPERATURE, AI_MAX_TOKENS, AI_TIMEOUT,
            <PROVIDER>_API_KEY / <PROVIDER>_MODEL, OLLAMA_URL,
            TEMPLATE_PATH, HOST, PORT, ANALYSIS_CACHE_TTL,
            CHECKPOINT_STRATEGY, AUTO_INSTALL_DEPS, LOG_LEVEL, LOG_JSON.
        """
        providers: dict[str, ProviderSettings] = {}
        for identifier, (key_vars, model_var, default_model) in _PROVIDER_ENV.items():
            value = next((os.environ[v] for v in key_vars if os.environ.get(v)), None)
            model = os.environ.get(model_var) or default_model
            if identifier in LOCAL_PROVIDERS:
                providers[identifier] = ProviderSettings(
                    base_url=value or DEFAULT_OLLAMA_URL, model=model
                )
            else:
                providers[identifier] = ProviderSettings(api_key=value, model=model)

        kwargs: dict[str, Any] = {}
        if os.environ.get("AI_TEMPERATURE"):
            kwargs["temperature"] = float(os.environ["AI_TEMPERATURE"])
        if os.environ.get("AI_MAX_TOKENS"):
            kwargs["max_tokens"] = int(os.environ["AI_MAX_TOKENS"])
        if os.environ.get("AI_TIMEOUT"):
            kwargs["timeout"] = float(os.environ["AI_TIMEOUT"])
        if os.environ.get("TEMPLATE_PATH"):
            kwargs["template_path"] = Path(os.environ["TEMPLATE_PATH"])
        if os.environ.get("HOST"):
            kwargs["host"] = os.environ["HOST"]
        if os.environ.get("PORT"):
            kwargs["port"] = int(os.environ["PORT"])
        if os.environ.get("ANALYSIS_CACHE_TTL"):
            kwargs["analysis_ttl"] = float(os.environ["ANALYSIS_CACHE_TTL"])
        if os.environ.get("CHECKPOINT_STRATEGY"):
            kwargs["checkpoint_strategy"] = os.environ["CHECKPOINT_STRATEGY"].lower()
        if os.environ.get("LOG_LEVEL"):
            kwargs["log_level"] = os.environ["LOG_LEVEL"].upper()

        return cls(
            default_provider=os.environ.get("AI_PROVIDER", "groq").lower(),
            providers=providers,
            auto_install_deps=_env_flag("AUTO_INSTALL_DEPS"),
            log_json=_env_flag("LOG_JSON"),
            **kwargs,
        )


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in {"1", "true", "yes", "on"}
