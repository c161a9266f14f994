from __future__ import annotations

from typing import Any

import structlog

from .errors import ProviderError, UpstreamProtocolError
from .provider import ProviderAdapter
from .provider_kinds import ProviderKind

log = structlog.get_logger()

OLLAMA_DEFAULT_BASE = "http://localhost:11434"


class OllamaAdapter(ProviderAdapter):
    kind = ProviderKind.OLLAMA
    default_model = "llama2"

    @property
    def base_url(self) -> str:
        return (self.config.base_url or OLLAMA_DEFAULT_BASE).rstrip("/")

    def _completion_request(self, prompt: str) -> tuple[str, Any]:
        options: dict[str, Any] = {
            "temperature": self.temperature,
            "num_predict": self.max_tokens,
        }
        if self.config.context_size:
            options["num_ctx"] = self.config.context_size
        if self.config.threads:
            options["num_thread"] = self.config.threads
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": options,
        }
        return f"{self.base_url}/api/generate", payload

    def _extract_text(self, data: Any) -> str:
        text = data.get("response") if isinstance(data, dict) else None
        if not isinstance(text, str):
            raise UpstreamProtocolError("Missing response in Ollama response.")
        return text

    async def _tags(self) -> list[dict[str, Any]]:
        data = await self._get_json(f"{self.base_url}/api/tags")
        models = data.get("models") if isinstance(data, dict) else None
        if not isinstance(models, list):
            raise UpstreamProtocolError("Missing models in Ollama tags response.")
        return [m for m in models if isinstance(m, dict)]

    async def list_models(self) -> list[str]:
        """Names of locally installed models; empty when the server is unreachable."""
        try:
            models = await self._tags()
        except ProviderError as e:
            log.warning("ollama_list_models_failed", config_id=self.config.id, error=str(e))
            return []
        return [m["name"] for m in models if isinstance(m.get("name"), str)]

    async def pull_model(self, name: str) -> bool:
        try:
            resp = await self._send("POST", f"{self.base_url}/api/pull", json={"model": name, "stream": False})
            self._decode(resp)
        except ProviderError as e:
            log.warning("ollama_pull_failed", config_id=self.config.id, model=name, error=str(e))
            return False
        log.info("ollama_pull_ok", config_id=self.config.id, model=name)
        return True

    async def show_model(self, name: str) -> dict[str, Any]:
        resp = await self._send("POST", f"{self.base_url}/api/show", json={"model": name})
        data = self._decode(resp)
        if not isinstance(data, dict):
            raise UpstreamProtocolError("Unexpected Ollama show response.")
        return data

    async def probe(self) -> bool:
        try:
            models = await self._tags()
        except ProviderError as e:
            log.info("ollama_probe_failed", config_id=self.config.id, error=str(e))
            return False
        return len(models) > 0
