from __future__ import annotations

from typing import Any

from .errors import AuthenticationError, ConfigurationError, UpstreamProtocolError
from .provider import ProviderAdapter
from .provider_kinds import ProviderKind

HUGGINGFACE_API_BASE = "https://api-inference.huggingface.co/models"


class HuggingFaceAdapter(ProviderAdapter):
    """Inference-API style backend: bearer key, model id in the URL path."""

    kind = ProviderKind.HUGGINGFACE

    @property
    def base_url(self) -> str:
        return (self.config.base_url or HUGGINGFACE_API_BASE).rstrip("/")

    def _check_config(self) -> None:
        if not self.config.api_key:
            raise AuthenticationError("Missing API key for HuggingFace connection.")
        if not self.config.model_name:
            raise ConfigurationError("HuggingFace connection needs a model name.")

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def _completion_request(self, prompt: str) -> tuple[str, Any]:
        payload = {
            "inputs": prompt,
            "parameters": {
                "temperature": self.temperature,
                "max_tokens": self.max_tokens,
            },
        }
        return f"{self.base_url}/{self.config.model_name}", payload

    def _extract_text(self, data: Any) -> str:
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise UpstreamProtocolError("Missing generations in HuggingFace response.")
        text = data[0].get("generated_text")
        if not isinstance(text, str):
            raise UpstreamProtocolError("Missing generated_text in HuggingFace response.")
        return text
