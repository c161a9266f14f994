from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, ClassVar

import httpx
import structlog

from .contracts import Metrics, ModelResponse
from .errors import AuthenticationError, ProviderError, RateLimitError, UpstreamProtocolError
from .metrics import provider_request_latency_seconds, provider_requests_total
from .models import BaseProviderConfig
from .normalizer import normalize_metrics
from .provider_kinds import ProviderKind

log = structlog.get_logger()

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 1000


class ProviderAdapter(ABC):
    """
    Translate the prompt-in/response-out contract to one backend's wire format.

    `generate` never raises for ordinary failures: configuration gaps, network
    errors, non-success statuses and malformed payloads all come back as a
    `ModelResponse` carrying an error string, so a comparison fan-in can wait
    for every provider without one of them aborting the run.
    """

    kind: ClassVar[ProviderKind]
    default_model: ClassVar[str | None] = None

    def __init__(
        self,
        config: BaseProviderConfig,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))
        self._clock: Callable[[], float] = clock or time.perf_counter

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def label(self) -> str:
        return self.kind.label

    @property
    def model(self) -> str:
        return self.config.model_name or self.default_model or self.config.name

    @property
    def temperature(self) -> float:
        t = self.config.temperature
        return DEFAULT_TEMPERATURE if t is None else t

    @property
    def max_tokens(self) -> int:
        return self.config.max_tokens or DEFAULT_MAX_TOKENS

    def _check_config(self) -> None:
        """Raise `ConfigurationError`/`AuthenticationError` for missing required fields."""

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    @abstractmethod
    def _completion_request(self, prompt: str) -> tuple[str, Any]:
        """Return the completion URL and JSON payload for `prompt`."""

    @abstractmethod
    def _extract_text(self, data: Any) -> str:
        """Pull generated text out of the provider envelope or raise `UpstreamProtocolError`."""

    def _on_response(self, resp: httpx.Response) -> None:
        return None

    async def generate(self, prompt: str) -> ModelResponse:
        try:
            self._check_config()
            url, payload = self._completion_request(prompt)
            start = self._clock()
            resp = await self._send("POST", url, json=payload)
            elapsed_ms = (self._clock() - start) * 1000
            data = self._decode(resp)
            text = self._extract_text(data)
            metrics = normalize_metrics(
                self.kind,
                data,
                elapsed_ms,
                prompt,
                text=text,
                model=self.model,
                context_size=getattr(self.config, "context_size", None),
            )
        except ProviderError as e:
            return self._failure(str(e) or type(e).__name__)
        except Exception as e:
            log.exception("provider_unexpected_error", provider=self.label, config_id=self.config.id)
            return self._failure(f"Unexpected {self.label} error: {e}")

        provider_requests_total.labels(provider=self.label, status="success").inc()
        provider_request_latency_seconds.labels(provider=self.label).observe(metrics.response_time_ms / 1000)
        log.debug(
            "provider_call_ok",
            provider=self.label,
            config_id=self.config.id,
            model=self.model,
            response_time_ms=round(metrics.response_time_ms, 1),
            tokens_per_second=round(metrics.tokens_per_second, 2),
        )
        return ModelResponse(
            id=self.config.id,
            provider=self.label,
            model=self.model,
            text=text,
            metrics=metrics,
        )

    async def probe(self) -> bool:
        """Cheapest liveness check for this backend; hosted kinds fall back to a tiny generation."""
        response = await self.generate("test")
        return response.ok

    def _failure(self, message: str) -> ModelResponse:
        provider_requests_total.labels(provider=self.label, status="error").inc()
        log.warning("provider_call_failed", provider=self.label, config_id=self.config.id, error=message)
        return ModelResponse(
            id=self.config.id,
            provider=self.label,
            model=self.model,
            text="",
            metrics=Metrics.zero(),
            error=message,
        )

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = {**self._headers(), **kwargs.pop("headers", {})}
        try:
            resp = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise UpstreamProtocolError(f"{self.label} request timed out.") from e
        except httpx.HTTPError as e:
            raise UpstreamProtocolError(f"{self.label} request failed: {e}") from e
        self._on_response(resp)
        return resp

    def _decode(self, resp: httpx.Response) -> Any:
        self._raise_for_status(resp)
        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamProtocolError(f"{self.label} returned a non-JSON response.") from e

    def _raise_for_status(self, resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return
        message = _error_message(resp)
        if resp.status_code in (401, 403):
            raise AuthenticationError(message or f"{self.label} rejected the credentials (check the API key).")
        if resp.status_code == 429:
            retry_after = resp.headers.get("retry-after")
            retry_seconds = int(retry_after) if retry_after and retry_after.isdigit() else None
            raise RateLimitError(
                retry_after_seconds=retry_seconds,
                message=message or f"{self.label} rate limit exceeded.",
            )
        raise UpstreamProtocolError(message or f"{self.label} API error ({resp.status_code}).")

    async def _get_json(self, url: str) -> Any:
        resp = await self._send("GET", url)
        return self._decode(resp)


def _error_message(resp: httpx.Response) -> str | None:
    """Provider-reported error text, for the `{"error": {...}}` and `{"error": "..."}` shapes."""
    try:
        data = resp.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    err = data.get("error")
    if isinstance(err, dict):
        err = err.get("message")
    if not err:
        err = data.get("message")
    return err if isinstance(err, str) and err else None
