"""Provider registry: the single source of truth for which providers exist.

Maps case-insensitive identifiers (and documented aliases) to adapter
factories, and carries the static catalog served by ``GET /providers``.

Aliases:
    ``anthropic`` -> ``claude``  (same ``AnthropicAdapter``)
    ``google``    -> ``gemini``  (same ``GeminiAdapter``)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

import httpx

from ai_builder.errors import UnknownProviderError

from .base import ProviderAdapter
from .hosted import (
    AnthropicAdapter,
    CohereAdapter,
    GeminiAdapter,
    GroqAdapter,
    HuggingFaceAdapter,
    MistralAdapter,
    OpenAIAdapter,
)
from .models import ProviderConfig
from .ollama import OllamaAdapter

AdapterFactory = Callable[[ProviderConfig, "httpx.AsyncBaseTransport | None"], ProviderAdapter]


@dataclass
class ProviderInfo:
    """Catalog entry for one canonical provider."""

    id: str
    name: str
    factory: AdapterFactory
    models: list[str] = field(default_factory=list)
    free: bool = False
    local: bool = False
    aliases: tuple[str, ...] = ()

    def as_dict(self) -> dict:
        entry = {"id": self.id, "name": self.name, "models": list(self.models), "free": self.free}
        if self.local:
            entry["local"] = True
        if self.aliases:
            entry["aliases"] = list(self.aliases)
        return entry


class ProviderRegistry:
    """Identifier -> adapter factory mapping.

    Read-only after construction in the server; safe to share across
    concurrent requests.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.transport = transport
        self._providers: dict[str, ProviderInfo] = {}
        self._aliases: dict[str, str] = {}

    def register(self, info: ProviderInfo) -> None:
        """Add a provider and its aliases; identifiers are stored lowercase."""
        key = info.id.lower()
        self._providers[key] = info
        self._aliases[key] = key
        for alias in info.aliases:
            self._aliases[alias.lower()] = key

    def identifiers(self) -> list[str]:
        """Every accepted identifier, aliases included, sorted."""
        return sorted(self._aliases)

    def canonical(self, identifier: str) -> str:
        """Resolve an identifier or alias to its canonical id.

        Raises:
            UnknownProviderError: If the identifier is not registered.
        """
        key = (identifier or "").strip().lower()
        if key not in self._aliases:
            raise UnknownProviderError(identifier, self.identifiers())
        return self._aliases[key]

    def info(self, identifier: str) -> ProviderInfo:
        return self._providers[self.canonical(identifier)]

    def catalog(self) -> list[dict]:
        """Static provider listing, one entry per canonical id."""
        return [info.as_dict() for info in self._providers.values()]

    def create(self, identifier: str, config: ProviderConfig) -> ProviderAdapter:
        """Construct the adapter registered under ``identifier``."""
        return self.info(identifier).factory(config, self.transport)


def default_registry(transport: httpx.AsyncBaseTransport | None = None) -> ProviderRegistry:
    """Registry with every built-in vendor adapter."""
    registry = ProviderRegistry(transport=transport)
    for info in (
        ProviderInfo("openai", "OpenAI", OpenAIAdapter, ["gpt-4o", "gpt-4o-mini", "gpt-4-turbo"]),
        ProviderInfo(
            "claude",
            "Anthropic Claude",
            AnthropicAdapter,
            ["claude-3-5-sonnet-20241022", "claude-3-opus-20240229"],
            aliases=("anthropic",),
        ),
        ProviderInfo(
            "gemini",
            "Google Gemini",
            GeminiAdapter,
            ["gemini-pro", "gemini-1.5-pro"],
            free=True,
            aliases=("google",),
        ),
        ProviderInfo(
            "groq", "Groq", GroqAdapter, ["llama-3.3-70b-versatile", "mixtral-8x7b-32768"], free=True
        ),
        ProviderInfo(
            "ollama",
            "Ollama (Local)",
            OllamaAdapter,
            ["llama2", "codellama", "mistral"],
            free=True,
            local=True,
        ),
        ProviderInfo("cohere", "Cohere", CohereAdapter, ["command", "command-r"]),
        ProviderInfo(
            "mistral", "Mistral AI", MistralAdapter, ["mistral-small-latest", "mistral-large-latest"]
        ),
        ProviderInfo(
            "huggingface",
            "Hugging Face",
            HuggingFaceAdapter,
            ["mistralai/Mixtral-8x7B-Instruct-v0.1"],
            free=True,
        ),
    ):
        registry.register(info)
    return registry
