"""Adapter capability contract and the shared HTTP transport helper.

Every vendor adapter is an independent class that satisfies
``ProviderAdapter``: one ``generate(prompt, system_context)`` coroutine. There
is no inheritance chain; the only shared behaviour is :func:`post_json`, which
performs exactly one outbound request with a finite timeout and turns every
transport or vendor failure into a ``ProviderError``.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import httpx

from ai_builder.errors import ConfigurationError, ProviderError

from .models import GenerationResult, ProviderConfig

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 4000


@runtime_checkable
class ProviderAdapter(Protocol):
    """Uniform interface over one LLM backend."""

    config: ProviderConfig

    async def generate(self, prompt: str, system_context: str) -> GenerationResult:
        ...


def temperature_of(config: ProviderConfig) -> float:
    """Configured temperature, or the default when omitted (``0.0`` is kept)."""
    return DEFAULT_TEMPERATURE if config.temperature is None else config.temperature


def max_tokens_of(config: ProviderConfig) -> int:
    return config.max_tokens or DEFAULT_MAX_TOKENS


def require_api_key(config: ProviderConfig) -> str:
    """Return the credential or fail with a configuration error."""
    if not config.api_key:
        raise ConfigurationError(
            f"Provider '{config.identifier}' has no API key configured.",
            details={"provider": config.identifier},
        )
    return config.api_key


def combine_prompt(prompt: str, system_context: str) -> str:
    """Prepend the system context for providers without a system role."""
    if not system_context:
        return prompt
    return f"{system_context}\n\n{prompt}"


def _error_detail(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text[:500]


async def post_json(
    config: ProviderConfig,
    url: str,
    payload: dict[str, Any],
    headers: dict[str, str] | None = None,
    params: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Any:
    """POST ``payload`` and return the decoded JSON reply.

    Raises:
        ProviderError: On connection failure, timeout, non-2xx status or a
            body that is not JSON. The upstream status and body are attached
            when available.
    """
    provider = config.identifier
    timeout = httpx.Timeout(config.timeout, connect=10.0)
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.post(url, json=payload, headers=headers, params=params)
            response.raise_for_status()
            return response.json()
    except httpx.ConnectError as exc:
        raise ProviderError(
            f"Cannot connect to {provider} at {url}: {exc}", provider=provider
        ) from exc
    except httpx.TimeoutException as exc:
        raise ProviderError(
            f"Request to {provider} timed out after {config.timeout}s.", provider=provider
        ) from exc
    except httpx.HTTPStatusError as exc:
        raise ProviderError(
            f"{provider} returned HTTP {exc.response.status_code}",
            provider=provider,
            upstream_status=exc.response.status_code,
            detail=_error_detail(exc.response),
        ) from exc
    except httpx.HTTPError as exc:
        raise ProviderError(f"{provider} request failed: {exc}", provider=provider) from exc
    except ValueError as exc:
        raise ProviderError(
            f"{provider} returned a body that is not JSON", provider=provider
        ) from exc


def malformed(config: ProviderConfig, data: Any, exc: Exception) -> ProviderError:
    """Build the error raised when a 2xx reply lacks the expected fields."""
    return ProviderError(
        f"{config.identifier} returned an unexpected response shape: {exc!r}",
        provider=config.identifier,
        detail=str(data)[:500],
    )
