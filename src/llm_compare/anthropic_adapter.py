from __future__ import annotations

from typing import Any

from .errors import AuthenticationError, UpstreamProtocolError
from .provider import ProviderAdapter
from .provider_kinds import ProviderKind

ANTHROPIC_API_BASE = "https://api.anthropic.com/v1"
ANTHROPIC_VERSION = "2023-06-01"


class AnthropicAdapter(ProviderAdapter):
    kind = ProviderKind.ANTHROPIC
    default_model = "claude-3-opus-20240229"

    @property
    def base_url(self) -> str:
        return (self.config.base_url or ANTHROPIC_API_BASE).rstrip("/")

    def _check_config(self) -> None:
        if not self.config.api_key:
            raise AuthenticationError("Missing API key for Anthropic connection.")

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["x-api-key"] = self.config.api_key or ""
        headers["anthropic-version"] = ANTHROPIC_VERSION
        return headers

    def _completion_request(self, prompt: str) -> tuple[str, Any]:
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        return f"{self.base_url}/messages", payload

    def _extract_text(self, data: Any) -> str:
        content = data.get("content") if isinstance(data, dict) else None
        if not isinstance(content, list) or not content or not isinstance(content[0], dict):
            raise UpstreamProtocolError("Missing content in Anthropic response.")
        text = content[0].get("text")
        if not isinstance(text, str):
            raise UpstreamProtocolError("Missing text in Anthropic response.")
        return text
