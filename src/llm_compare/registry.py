from __future__ import annotations

from collections.abc import Callable

import httpx

from .anthropic_adapter import AnthropicAdapter
from .errors import ConfigurationError
from .gguf_adapter import GGUFAdapter
from .huggingface_adapter import HuggingFaceAdapter
from .models import BaseProviderConfig
from .ollama_adapter import OllamaAdapter
from .openai_adapter import OpenAIAdapter
from .provider import ProviderAdapter
from .provider_kinds import ProviderKind

ADAPTERS: dict[ProviderKind, type[ProviderAdapter]] = {
    ProviderKind.OPENAI: OpenAIAdapter,
    ProviderKind.ANTHROPIC: AnthropicAdapter,
    ProviderKind.OLLAMA: OllamaAdapter,
    ProviderKind.GGUF: GGUFAdapter,
    ProviderKind.HUGGINGFACE: HuggingFaceAdapter,
}


def create_adapter(
    config: BaseProviderConfig,
    *,
    client: httpx.AsyncClient | None = None,
    timeout_seconds: float | None = None,
    clock: Callable[[], float] | None = None,
) -> ProviderAdapter:
    adapter_cls = ADAPTERS.get(config.kind)
    if adapter_cls is None:
        raise ConfigurationError(f"No adapter for provider kind {config.kind.value!r}.")
    return adapter_cls(config, client=client, timeout_seconds=timeout_seconds, clock=clock)
