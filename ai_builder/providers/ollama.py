"""Adapter for a locally-served Ollama instance.

Wraps the non-streaming ``/api/generate`` endpoint. Ollama has no separate
system role in this endpoint's plain-prompt mode, so the system context is
prepended to the prompt text.

Typical usage::

    adapter = OllamaAdapter(ProviderConfig(identifier="ollama", base_url="http://localhost:11434"))
    result = await adapter.generate("Write a React button", "You are a React expert")
    print(result.content)
"""

from __future__ import annotations

import httpx

from .base import combine_prompt, malformed, max_tokens_of, post_json, temperature_of
from .models import GenerationResult, ProviderConfig

DEFAULT_BASE_URL = "http://localhost:11434"


class OllamaAdapter:
    """Async adapter for the Ollama REST API."""

    DEFAULT_MODEL = "llama2"

    def __init__(
        self, config: ProviderConfig, transport: httpx.AsyncBaseTransport | None = None
    ) -> None:
        self.config = config
        self.transport = transport
        self.base_url = (config.base_url or DEFAULT_BASE_URL).rstrip("/")

    @staticmethod
    def _extract_usage(data: dict) -> dict:
        """Token accounting: Ollama reports ``eval_count`` for generated tokens."""
        return {
            "prompt_tokens": data.get("prompt_eval_count"),
            "total_tokens": data.get("eval_count"),
            "duration_ms": data.get("total_duration", 0) / 1_000_000.0,
        }

    async def generate(self, prompt: str, system_context: str) -> GenerationResult:
        model = self.config.model or self.DEFAULT_MODEL
        data = await post_json(
            self.config,
            f"{self.base_url}/api/generate",
            {
                "model": model,
                "prompt": combine_prompt(prompt, system_context),
                "stream": False,
                "options": {
                    "temperature": temperature_of(self.config),
                    "num_predict": max_tokens_of(self.config),
                },
            },
            transport=self.transport,
        )
        try:
            content = data["response"]
        except (KeyError, TypeError) as exc:
            raise malformed(self.config, data, exc) from exc
        return GenerationResult(
            content=content or "",
            model=data.get("model") or model,
            usage=self._extract_usage(data),
        )
