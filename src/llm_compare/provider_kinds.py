from __future__ import annotations

from enum import Enum


class ProviderKind(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OLLAMA = "ollama"
    GGUF = "gguf"
    HUGGINGFACE = "huggingface"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    ProviderKind.OPENAI: "OpenAI",
    ProviderKind.ANTHROPIC: "Anthropic",
    ProviderKind.OLLAMA: "Ollama",
    ProviderKind.GGUF: "GGUF",
    ProviderKind.HUGGINGFACE: "HuggingFace",
}
