"""AI Builder provider adapters.

Uniform async interface over the supported LLM backends.

Key classes:
    ProviderAdapter   - Capability protocol: ``generate(prompt, system_context)``
    ProviderRegistry  - Identifier/alias -> adapter factory mapping
    ProviderConfig    - Per-call model/temperature/max-tokens/endpoint settings
    GenerationResult  - Normalized ``{content, model, usage}`` reply
"""

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
from .models import GenerationResult, ProviderConfig
from .ollama import OllamaAdapter
from .registry import ProviderInfo, ProviderRegistry, default_registry

__all__ = [
    # Contract
    "ProviderAdapter",
    "ProviderConfig",
    "GenerationResult",
    # Registry
    "ProviderRegistry",
    "ProviderInfo",
    "default_registry",
    # Adapters
    "OpenAIAdapter",
    "AnthropicAdapter",
    "GeminiAdapter",
    "GroqAdapter",
    "OllamaAdapter",
    "CohereAdapter",
    "MistralAdapter",
    "HuggingFaceAdapter",
]
