from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog

from .errors import ConfigurationError, ProviderError, UpstreamProtocolError
from .provider import ProviderAdapter
from .provider_kinds import ProviderKind

log = structlog.get_logger()

GGUF_DEFAULT_PORT = 8080


class GGUFAdapter(ProviderAdapter):
    """Local llama.cpp-style completion server.

    Starting and stopping the server process is left to the operator; the
    adapter only talks to an already listening endpoint.
    """

    kind = ProviderKind.GGUF

    @property
    def base_url(self) -> str:
        if self.config.base_url:
            return self.config.base_url.rstrip("/")
        return f"http://localhost:{self.config.server_port or GGUF_DEFAULT_PORT}"

    @property
    def model(self) -> str:
        if self.config.model_name or self.config.name:
            return self.config.model_name or self.config.name
        if self.config.model_path:
            return Path(self.config.model_path).name
        return "gguf"

    def _check_config(self) -> None:
        if not self.config.model_path and not self.config.base_url:
            raise ConfigurationError("GGUF connection needs a model path or a server URL.")

    def _completion_request(self, prompt: str) -> tuple[str, Any]:
        payload = {
            "prompt": prompt,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        return f"{self.base_url}/completion", payload

    def _extract_text(self, data: Any) -> str:
        text = data.get("content") if isinstance(data, dict) else None
        if not isinstance(text, str):
            raise UpstreamProtocolError("Missing content in GGUF server response.")
        return text

    async def probe(self) -> bool:
        try:
            self._check_config()
            resp = await self._send("GET", f"{self.base_url}/health")
            self._raise_for_status(resp)
        except ProviderError as e:
            log.info("gguf_probe_failed", config_id=self.config.id, error=str(e))
            return False
        return True
