from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from .errors import AuthenticationError, ProviderError, UpstreamProtocolError
from .normalizer import OPENAI_DEFAULT_MODEL, OPENAI_MODEL_CAPABILITIES
from .provider import ProviderAdapter
from .provider_kinds import ProviderKind

log = structlog.get_logger()

OPENAI_API_BASE = "https://api.openai.com/v1"


def _header_int(headers: httpx.Headers, name: str) -> int:
    value = headers.get(name, "")
    return int(value) if value.isdigit() else 0


@dataclass(frozen=True)
class RateLimitInfo:
    requests_limit: int
    tokens_limit: int
    requests_remaining: int
    tokens_remaining: int
    requests_reset: str | None
    tokens_reset: str | None

    @classmethod
    def from_headers(cls, headers: httpx.Headers) -> "RateLimitInfo | None":
        if not any(name.startswith("x-ratelimit-") for name in headers.keys()):
            return None
        return cls(
            requests_limit=_header_int(headers, "x-ratelimit-limit-requests"),
            tokens_limit=_header_int(headers, "x-ratelimit-limit-tokens"),
            requests_remaining=_header_int(headers, "x-ratelimit-remaining-requests"),
            tokens_remaining=_header_int(headers, "x-ratelimit-remaining-tokens"),
            requests_reset=headers.get("x-ratelimit-reset-requests"),
            tokens_reset=headers.get("x-ratelimit-reset-tokens"),
        )


class OpenAIAdapter(ProviderAdapter):
    kind = ProviderKind.OPENAI
    default_model = OPENAI_DEFAULT_MODEL

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.last_rate_limit: RateLimitInfo | None = None

    @property
    def base_url(self) -> str:
        return (self.config.base_url or OPENAI_API_BASE).rstrip("/")

    def _check_config(self) -> None:
        if not self.config.api_key:
            raise AuthenticationError("Missing API key for OpenAI connection.")

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["Authorization"] = f"Bearer {self.config.api_key}"
        if self.config.organization:
            headers["OpenAI-Organization"] = self.config.organization
        if self.config.project_id and not self.config.is_project_key:
            headers["OpenAI-Project"] = self.config.project_id
        return headers

    def _completion_request(self, prompt: str) -> tuple[str, Any]:
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        return f"{self.base_url}/chat/completions", payload

    def _extract_text(self, data: Any) -> str:
        choices = data.get("choices") if isinstance(data, dict) else None
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise UpstreamProtocolError("Missing choices in OpenAI response.")
        message = choices[0].get("message")
        if not isinstance(message, dict):
            raise UpstreamProtocolError("Missing message in OpenAI response.")
        content = message.get("content")
        if not isinstance(content, str):
            raise UpstreamProtocolError("Missing content in OpenAI response.")
        return content

    def _on_response(self, resp: httpx.Response) -> None:
        rate_limit = RateLimitInfo.from_headers(resp.headers)
        if rate_limit is not None:
            self.last_rate_limit = rate_limit

    async def list_models(self) -> list[str]:
        """Chat-capable model ids, or the known capability table when listing fails."""
        try:
            self._check_config()
            data = await self._get_json(f"{self.base_url}/models")
        except ProviderError as e:
            log.warning("openai_list_models_failed", config_id=self.config.id, error=str(e))
            return list(OPENAI_MODEL_CAPABILITIES)
        entries = data.get("data") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            return list(OPENAI_MODEL_CAPABILITIES)
        return [
            entry["id"]
            for entry in entries
            if isinstance(entry, dict)
            and isinstance(entry.get("id"), str)
            and entry["id"].startswith("gpt-")
            and "instruct" not in entry["id"]
        ]

    async def probe(self) -> bool:
        try:
            self._check_config()
            await self._get_json(f"{self.base_url}/models")
        except ProviderError as e:
            log.info("openai_probe_failed", config_id=self.config.id, error=str(e))
            return False
        return True
