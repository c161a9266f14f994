from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Callable, Iterable, Sequence
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
import structlog

from .contracts import ComparisonResult, ModelResponse
from .errors import ComparisonInputError, ConfigurationError, NoSuccessfulResponsesError
from .metrics import comparison_duration_seconds, comparison_runs_total
from .models import BaseProviderConfig
from .ollama_adapter import OllamaAdapter
from .provider import ProviderAdapter
from .provider_kinds import ProviderKind
from .registry import create_adapter

log = structlog.get_logger()

AdapterFactory = Callable[..., ProviderAdapter]


def format_error(response: ModelResponse) -> str:
    return f"{response.provider} ({response.model}): {response.error}"


class ComparisonOrchestrator:
    """
    Fan one prompt out to every enabled provider configuration and collect
    the normalized responses.

    Every adapter call is started before any is awaited, and responses are
    gathered in the order they settle. A failing provider never aborts the
    run; only a run in which every provider failed raises.
    """

    def __init__(
        self,
        configs: Iterable[BaseProviderConfig] = (),
        *,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float | None = None,
        adapter_factory: AdapterFactory = create_adapter,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self._configs: tuple[BaseProviderConfig, ...] = tuple(configs)
        self._client = client
        self.timeout_seconds = timeout_seconds
        self._adapter_factory = adapter_factory
        self._clock = clock

    def update_configurations(self, configs: Iterable[BaseProviderConfig]) -> None:
        self._configs = tuple(configs)

    @property
    def configurations(self) -> tuple[BaseProviderConfig, ...]:
        return self._configs

    def enabled_configurations(
        self, configs: Sequence[BaseProviderConfig] | None = None
    ) -> list[BaseProviderConfig]:
        source = self._configs if configs is None else configs
        return [c for c in source if c.enabled]

    @asynccontextmanager
    async def _run_client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_seconds)) as client:
            yield client

    async def compare(
        self, prompt: str, configs: Sequence[BaseProviderConfig] | None = None
    ) -> ComparisonResult:
        if not prompt or not prompt.strip():
            raise ComparisonInputError("Please enter a prompt.")
        enabled = self.enabled_configurations(configs)
        if not enabled:
            raise ComparisonInputError("Please enable at least one model.")

        log.info("comparison_started", providers=len(enabled), prompt_chars=len(prompt))
        async with self._run_client() as client:
            adapters = [self._adapter_factory(cfg, client=client) for cfg in enabled]
            start = self._clock()
            tasks = [asyncio.create_task(adapter.generate(prompt)) for adapter in adapters]
            responses: list[ModelResponse] = []
            for next_done in asyncio.as_completed(tasks):
                responses.append(await next_done)
            total_time_ms = (self._clock() - start) * 1000

        errors = [format_error(r) for r in responses if not r.ok]
        result = ComparisonResult(
            prompt=prompt,
            timestamp=datetime.now(timezone.utc).isoformat(),
            responses=tuple(responses),
            total_time_ms=total_time_ms,
            errors=tuple(errors) if errors else None,
        )
        comparison_duration_seconds.observe(max(total_time_ms, 0.0) / 1000)

        if not result.successful:
            comparison_runs_total.labels(outcome="failed").inc()
            log.warning("comparison_failed", providers=len(responses), errors=errors)
            raise NoSuccessfulResponsesError(result)

        outcome = "partial" if errors else "success"
        comparison_runs_total.labels(outcome=outcome).inc()
        log.info(
            "comparison_finished",
            outcome=outcome,
            successful=len(result.successful),
            failed=len(result.failed),
            total_time_ms=round(total_time_ms, 1),
        )
        return result

    async def validate_connections(
        self, configs: Sequence[BaseProviderConfig] | None = None
    ) -> dict[str, bool]:
        """Probe every enabled configuration concurrently; keyed by configuration id."""
        enabled = self.enabled_configurations(configs)
        if not enabled:
            return {}
        async with self._run_client() as client:
            adapters = [self._adapter_factory(cfg, client=client) for cfg in enabled]
            outcomes = await asyncio.gather(*(adapter.probe() for adapter in adapters))
        results = {cfg.id: bool(ok) for cfg, ok in zip(enabled, outcomes)}
        log.info("connections_validated", total=len(results), reachable=sum(results.values()))
        return results

    def _ollama_adapter(self, config_id: str, client: httpx.AsyncClient) -> OllamaAdapter:
        for cfg in self._configs:
            if cfg.id == config_id and cfg.kind is ProviderKind.OLLAMA:
                adapter = self._adapter_factory(cfg, client=client)
                if isinstance(adapter, OllamaAdapter):
                    return adapter
        raise ConfigurationError(f"No Ollama configuration with id {config_id!r}.")

    async def ollama_models(self, config_id: str) -> list[str]:
        async with self._run_client() as client:
            try:
                adapter = self._ollama_adapter(config_id, client)
            except ConfigurationError:
                return []
            return await adapter.list_models()

    async def pull_ollama_model(self, config_id: str, model: str) -> bool:
        async with self._run_client() as client:
            try:
                adapter = self._ollama_adapter(config_id, client)
            except ConfigurationError:
                return False
            return await adapter.pull_model(model)
