"""Unit tests for the vendor adapters (ai_builder.providers).

Every adapter is driven through ``httpx.MockTransport`` so the exact request
shape can be asserted without any network access.

Tests cover:
- Request shape per vendor (URL, auth, system-context placement, options)
- Response normalization into GenerationResult
- Transport and vendor failures mapped to ProviderError
- Missing credentials mapped to ConfigurationError
"""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from ai_builder.errors import ConfigurationError, ProviderError
from ai_builder.providers import (
    AnthropicAdapter,
    CohereAdapter,
    GeminiAdapter,
    GroqAdapter,
    HuggingFaceAdapter,
    MistralAdapter,
    OllamaAdapter,
    OpenAIAdapter,
    ProviderAdapter,
    ProviderConfig,
)


class Recorder:
    """MockTransport handler that records requests and replies with a fixed body."""

    def __init__(self, body: Any = None, status: int = 200, raw: str | None = None) -> None:
        self.body = body
        self.status = status
        self.raw = raw
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raw is not None:
            return httpx.Response(self.status, text=self.raw)
        return httpx.Response(self.status, json=self.body)

    @property
    def payload(self) -> dict:
        return json.loads(self.requests[-1].content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def hosted(identifier: str, **kwargs: Any) -> ProviderConfig:
    return ProviderConfig(identifier=identifier, api_key="secret", **kwargs)


# ---------------------------------------------------------------------------
# OpenAI-compatible
# ---------------------------------------------------------------------------


CHAT_REPLY = {
    "model": "served-model",
    "choices": [{"message": {"role": "assistant", "content": "hello"}}],
    "usage": {"prompt_tokens": 3, "completion_tokens": 1},
}


class TestChatCompletionAdapters:
    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "cls, identifier, host",
        [
            (OpenAIAdapter, "openai", "api.openai.com"),
            (GroqAdapter, "groq", "api.groq.com"),
            (MistralAdapter, "mistral", "api.mistral.ai"),
        ],
    )
    async def test_request_and_result(self, cls, identifier, host):
        recorder = Recorder(CHAT_REPLY)
        adapter = cls(hosted(identifier, temperature=0.2, max_tokens=50), recorder.transport)
        result = await adapter.generate("Build it", "You are a dev")

        request = recorder.requests[0]
        assert request.url.host == host
        assert request.headers["Authorization"] == "Bearer secret"
        assert recorder.payload["messages"] == [
            {"role": "system", "content": "You are a dev"},
            {"role": "user", "content": "Build it"},
        ]
        assert recorder.payload["temperature"] == 0.2
        assert recorder.payload["max_tokens"] == 50
        assert recorder.payload["model"] == cls.DEFAULT_MODEL
        assert result.content == "hello"
        assert result.model == "served-model"
        assert result.usage == {"prompt_tokens": 3, "completion_tokens": 1}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_defaults_when_unset(self):
        recorder = Recorder(CHAT_REPLY)
        await OpenAIAdapter(hosted("openai", model="gpt-4o"), recorder.transport).generate("p", "")
        assert recorder.payload["temperature"] == 0.7
        assert recorder.payload["max_tokens"] == 4000
        assert recorder.payload["model"] == "gpt-4o"
        assert recorder.payload["messages"] == [{"role": "user", "content": "p"}]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_zero_temperature_is_sent(self):
        recorder = Recorder(CHAT_REPLY)
        await GroqAdapter(hosted("groq", temperature=0.0), recorder.transport).generate("p", "s")
        assert recorder.payload["temperature"] == 0.0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unexpected_shape(self):
        recorder = Recorder({"choices": []})
        with pytest.raises(ProviderError, match="unexpected response shape"):
            await OpenAIAdapter(hosted("openai"), recorder.transport).generate("p", "s")


# ---------------------------------------------------------------------------
# Vendor-specific shapes
# ---------------------------------------------------------------------------


class TestAnthropicAdapter:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_system_field_and_headers(self):
        recorder = Recorder({
            "model": "claude-3-5-sonnet-20241022",
            "content": [{"type": "text", "text": "part one "}, {"type": "text", "text": "two"}],
            "usage": {"input_tokens": 5, "output_tokens": 2},
        })
        result = await AnthropicAdapter(hosted("claude"), recorder.transport).generate("p", "sys")
        request = recorder.requests[0]
        assert request.headers["x-api-key"] == "secret"
        assert request.headers["anthropic-version"] == AnthropicAdapter.API_VERSION
        assert recorder.payload["system"] == "sys"
        assert recorder.payload["messages"] == [{"role": "user", "content": "p"}]
        assert result.content == "part one two"
        assert result.usage == {"input_tokens": 5, "output_tokens": 2}


class TestGeminiAdapter:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_key_param_and_combined_prompt(self):
        recorder = Recorder({
            "candidates": [{"content": {"parts": [{"text": "ok"}]}}],
            "usageMetadata": {"totalTokenCount": 9},
        })
        adapter = GeminiAdapter(hosted("gemini", model="gemini-1.5-pro"), recorder.transport)
        result = await adapter.generate("p", "sys")
        request = recorder.requests[0]
        assert request.url.path == "/v1/models/gemini-1.5-pro:generateContent"
        assert request.url.params["key"] == "secret"
        assert recorder.payload["contents"][0]["parts"][0]["text"] == "sys\n\np"
        assert recorder.payload["generationConfig"]["maxOutputTokens"] == 4000
        assert result.content == "ok"
        assert result.model == "gemini-1.5-pro"
        assert result.usage == {"totalTokenCount": 9}


class TestCohereAdapter:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_preamble(self):
        recorder = Recorder({"text": "ok", "meta": {"billed_units": {"output_tokens": 1}}})
        result = await CohereAdapter(hosted("cohere"), recorder.transport).generate("p", "sys")
        assert recorder.payload["preamble"] == "sys"
        assert recorder.payload["message"] == "p"
        assert result.content == "ok"
        assert result.usage == {"billed_units": {"output_tokens": 1}}


class TestHuggingFaceAdapter:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_generated_text(self):
        recorder = Recorder([{"generated_text": "ok"}])
        result = await HuggingFaceAdapter(hosted("huggingface"), recorder.transport).generate("p", "sys")
        assert recorder.requests[0].url.path.endswith("Mixtral-8x7B-Instruct-v0.1")
        assert recorder.payload["inputs"] == "sys\n\np"
        assert recorder.payload["parameters"]["max_new_tokens"] == 4000
        assert result.content == "ok"
        assert result.usage == {}


class TestOllamaAdapter:
    @pytest.mark.unit
    def test_base_url_default_and_trailing_slash(self):
        assert OllamaAdapter(ProviderConfig(identifier="ollama")).base_url == "http://localhost:11434"
        adapter = OllamaAdapter(ProviderConfig(identifier="ollama", base_url="http://gpu:1234/"))
        assert adapter.base_url == "http://gpu:1234"

    @pytest.mark.unit
    def test_extract_usage(self):
        usage = OllamaAdapter._extract_usage(
            {"prompt_eval_count": 10, "eval_count": 20, "total_duration": 1_500_000_000}
        )
        assert usage["prompt_tokens"] == 10
        assert usage["total_tokens"] == 20
        assert abs(usage["duration_ms"] - 1500.0) < 0.1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_generate_without_credentials(self):
        recorder = Recorder({"response": "ok", "model": "llama2", "eval_count": 3})
        config = ProviderConfig(identifier="ollama", base_url="http://gpu:1234", temperature=0.1)
        result = await OllamaAdapter(config, recorder.transport).generate("p", "sys")
        request = recorder.requests[0]
        assert str(request.url) == "http://gpu:1234/api/generate"
        assert "Authorization" not in request.headers
        assert recorder.payload["stream"] is False
        assert recorder.payload["prompt"] == "sys\n\np"
        assert recorder.payload["options"] == {"temperature": 0.1, "num_predict": 4000}
        assert result.content == "ok"
        assert result.usage["total_tokens"] == 3


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


def raising(exc: Exception) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc
    return handler


class TestFailures:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        recorder = Recorder(CHAT_REPLY)
        with pytest.raises(ConfigurationError, match="no API key"):
            await OpenAIAdapter(ProviderConfig(identifier="openai"), recorder.transport).generate("p", "s")
        assert recorder.requests == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_upstream_status_is_preserved(self):
        recorder = Recorder({"error": {"message": "invalid key"}}, status=401)
        with pytest.raises(ProviderError) as exc_info:
            await GroqAdapter(hosted("groq"), recorder.transport).generate("p", "s")
        error = exc_info.value
        assert error.upstream_status == 401
        assert error.provider == "groq"
        assert error.detail == {"error": {"message": "invalid key"}}
        assert error.status_code == 502

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        recorder = Recorder(status=503, raw="<html>down</html>")
        with pytest.raises(ProviderError) as exc_info:
            await MistralAdapter(hosted("mistral"), recorder.transport).generate("p", "s")
        assert exc_info.value.detail == "<html>down</html>"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_json_success_body(self):
        recorder = Recorder(raw="not json")
        with pytest.raises(ProviderError, match="not JSON"):
            await OpenAIAdapter(hosted("openai"), recorder.transport).generate("p", "s")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_connect_error(self):
        transport = httpx.MockTransport(raising(httpx.ConnectError("refused")))
        with pytest.raises(ProviderError, match="Cannot connect"):
            await OllamaAdapter(ProviderConfig(identifier="ollama"), transport).generate("p", "s")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout(self):
        transport = httpx.MockTransport(raising(httpx.ReadTimeout("slow")))
        with pytest.raises(ProviderError, match="timed out"):
            await CohereAdapter(hosted("cohere", timeout=5), transport).generate("p", "s")


class TestProtocol:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "cls",
        [OpenAIAdapter, AnthropicAdapter, GeminiAdapter, GroqAdapter, OllamaAdapter,
         CohereAdapter, MistralAdapter, HuggingFaceAdapter],
    )
    def test_satisfies_protocol(self, cls):
        assert isinstance(cls(hosted("x")), ProviderAdapter)
