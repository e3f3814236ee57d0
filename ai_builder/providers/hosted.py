"""Adapters for hosted (credential-based) LLM vendors.

Each class translates a ``(prompt, system_context)`` pair into one vendor
request and normalizes the reply into a ``GenerationResult``. Vendors with a
system-role concept receive the system context separately; the others get it
prepended to the prompt.
"""

from __future__ import annotations

from typing import Any

import httpx

from .base import (
    combine_prompt,
    malformed,
    max_tokens_of,
    post_json,
    require_api_key,
    temperature_of,
)
from .models import GenerationResult, ProviderConfig


async def _chat_completion(
    config: ProviderConfig,
    url: str,
    default_model: str,
    prompt: str,
    system_context: str,
    transport: httpx.AsyncBaseTransport | None,
) -> GenerationResult:
    """Shared request shape for OpenAI-compatible ``/chat/completions`` APIs."""
    api_key = require_api_key(config)
    model = config.model or default_model
    messages = []
    if system_context:
        messages.append({"role": "system", "content": system_context})
    messages.append({"role": "user", "content": prompt})
    data = await post_json(
        config,
        url,
        {
            "model": model,
            "messages": messages,
            "temperature": temperature_of(config),
            "max_tokens": max_tokens_of(config),
        },
        headers={"Authorization": f"Bearer {api_key}"},
        transport=transport,
    )
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise malformed(config, data, exc) from exc
    return GenerationResult(
        content=content or "",
        model=data.get("model") or model,
        usage=data.get("usage"),
    )


class OpenAIAdapter:
    """OpenAI chat completions (GPT-4o, GPT-4o-mini, ...)."""

    URL = "https://api.openai.com/v1/chat/completions"
    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(
        self, config: ProviderConfig, transport: httpx.AsyncBaseTransport | None = None
    ) -> None:
        self.config = config
        self.transport = transport

    async def generate(self, prompt: str, system_context: str) -> GenerationResult:
        return await _chat_completion(
            self.config, self.URL, self.DEFAULT_MODEL, prompt, system_context, self.transport
        )


class GroqAdapter:
    """Groq's OpenAI-compatible endpoint (Llama, Mixtral)."""

    URL = "https://api.groq.com/openai/v1/chat/completions"
    DEFAULT_MODEL = "llama-3.3-70b-versatile"

    def __init__(
        self, config: ProviderConfig, transport: httpx.AsyncBaseTransport | None = None
    ) -> None:
        self.config = config
        self.transport = transport

    async def generate(self, prompt: str, system_context: str) -> GenerationResult:
        return await _chat_completion(
            self.config, self.URL, self.DEFAULT_MODEL, prompt, system_context, self.transport
        )


class MistralAdapter:
    """Mistral AI chat completions."""

    URL = "https://api.mistral.ai/v1/chat/completions"
    DEFAULT_MODEL = "mistral-small-latest"

    def __init__(
        self, config: ProviderConfig, transport: httpx.AsyncBaseTransport | None = None
    ) -> None:
        self.config = config
        self.transport = transport

    async def generate(self, prompt: str, system_context: str) -> GenerationResult:
        return await _chat_completion(
            self.config, self.URL, self.DEFAULT_MODEL, prompt, system_context, self.transport
        )


class AnthropicAdapter:
    """Anthropic Messages API; the system context goes in the ``system`` field."""

    URL = "https://api.anthropic.com/v1/messages"
    DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
    API_VERSION = "2023-06-01"

    def __init__(
        self, config: ProviderConfig, transport: httpx.AsyncBaseTransport | None = None
    ) -> None:
        self.config = config
        self.transport = transport

    async def generate(self, prompt: str, system_context: str) -> GenerationResult:
        api_key = require_api_key(self.config)
        model = self.config.model or self.DEFAULT_MODEL
        payload: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens_of(self.config),
            "temperature": temperature_of(self.config),
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_context:
            payload["system"] = system_context
        data = await post_json(
            self.config,
            self.URL,
            payload,
            headers={"x-api-key": api_key, "anthropic-version": self.API_VERSION},
            transport=self.transport,
        )
        try:
            content = "".join(
                block["text"] for block in data["content"] if block.get("type", "text") == "text"
            )
        except (KeyError, TypeError) as exc:
            raise malformed(self.config, data, exc) from exc
        return GenerationResult(
            content=content, model=data.get("model") or model, usage=data.get("usage")
        )


class GeminiAdapter:
    """Google Gemini ``generateContent``; no system role, context is prepended."""

    URL = "https://generativelanguage.googleapis.com/v1/models/{model}:generateContent"
    DEFAULT_MODEL = "gemini-pro"

    def __init__(
        self, config: ProviderConfig, transport: httpx.AsyncBaseTransport | None = None
    ) -> None:
        self.config = config
        self.transport = transport

    async def generate(self, prompt: str, system_context: str) -> GenerationResult:
        api_key = require_api_key(self.config)
        model = self.config.model or self.DEFAULT_MODEL
        data = await post_json(
            self.config,
            self.URL.format(model=model),
            {
                "contents": [{"parts": [{"text": combine_prompt(prompt, system_context)}]}],
                "generationConfig": {
                    "temperature": temperature_of(self.config),
                    "maxOutputTokens": max_tokens_of(self.config),
                },
            },
            params={"key": api_key},
            transport=self.transport,
        )
        try:
            parts = data["candidates"][0]["content"]["parts"]
            content = "".join(part.get("text", "") for part in parts)
        except (KeyError, IndexError, TypeError) as exc:
            raise malformed(self.config, data, exc) from exc
        return GenerationResult(content=content, model=model, usage=data.get("usageMetadata"))


class CohereAdapter:
    """Cohere chat; the system context is sent as the ``preamble``."""

    URL = "https://api.cohere.ai/v1/chat"
    DEFAULT_MODEL = "command"

    def __init__(
        self, config: ProviderConfig, transport: httpx.AsyncBaseTransport | None = None
    ) -> None:
        self.config = config
        self.transport = transport

    async def generate(self, prompt: str, system_context: str) -> GenerationResult:
        api_key = require_api_key(self.config)
        model = self.config.model or self.DEFAULT_MODEL
        payload: dict[str, Any] = {
            "model": model,
            "message": prompt,
            "temperature": temperature_of(self.config),
            "max_tokens": max_tokens_of(self.config),
        }
        if system_context:
            payload["preamble"] = system_context
        data = await post_json(
            self.config,
            self.URL,
            payload,
            headers={"Authorization": f"Bearer {api_key}"},
            transport=self.transport,
        )
        try:
            content = data["text"]
        except (KeyError, TypeError) as exc:
            raise malformed(self.config, data, exc) from exc
        return GenerationResult(content=content or "", model=model, usage=data.get("meta"))


class HuggingFaceAdapter:
    """Hugging Face serverless inference; context is prepended to the prompt."""

    URL = "https://api-inference.huggingface.co/models/{model}"
    DEFAULT_MODEL = "mistralai/Mixtral-8x7B-Instruct-v0.1"

    def __init__(
        self, config: ProviderConfig, transport: httpx.AsyncBaseTransport | None = None
    ) -> None:
        self.config = config
        self.transport = transport

    async def generate(self, prompt: str, system_context: str) -> GenerationResult:
        api_key = require_api_key(self.config)
        model = self.config.model or self.DEFAULT_MODEL
        data = await post_json(
            self.config,
            self.URL.format(model=model),
            {
                "inputs": combine_prompt(prompt, system_context),
                "parameters": {
                    "temperature": temperature_of(self.config),
                    "max_new_tokens": max_tokens_of(self.config),
                    "return_full_text": False,
                },
            },
            headers={"Authorization": f"Bearer {api_key}"},
            transport=self.transport,
        )
        try:
            content = data[0]["generated_text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise malformed(self.config, data, exc) from exc
        return GenerationResult(content=content or "", model=model, usage={})
