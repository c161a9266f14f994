"""Derive one metric set from heterogeneous provider payloads.

Everything here is pure: no network access, no clocks, no logging. Adapters
measure wall-clock time and hand the raw payload over; the rules for token
estimation, throughput and cost live in this module so they can be tested
without a transport.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from typing import Any

from .contracts import Metrics
from .provider_kinds import ProviderKind

CHARS_PER_TOKEN = 4
DEFAULT_OLLAMA_CONTEXT_SIZE = 4096
NANOSECONDS_PER_SECOND = 1e9
NANOSECONDS_PER_MILLISECOND = 1e6


@dataclass(frozen=True)
class ModelCapabilities:
    max_context_size: int
    input_cost_per_1k: float
    output_cost_per_1k: float


OPENAI_DEFAULT_MODEL = "gpt-4"
OPENAI_MODEL_CAPABILITIES: dict[str, ModelCapabilities] = {
    "gpt-4": ModelCapabilities(max_context_size=8192, input_cost_per_1k=0.03, output_cost_per_1k=0.06),
    "gpt-4-turbo-preview": ModelCapabilities(
        max_context_size=128000, input_cost_per_1k=0.01, output_cost_per_1k=0.03
    ),
    "gpt-3.5-turbo": ModelCapabilities(
        max_context_size=16385, input_cost_per_1k=0.0005, output_cost_per_1k=0.0015
    ),
}

# Price per 1k tokens, applied to prompt + completion.
ANTHROPIC_DEFAULT_PRICE_KEY = "claude-3-opus"
ANTHROPIC_PRICE_PER_1K: dict[str, float] = {
    "claude-3-opus": 0.015,
    "claude-3-sonnet": 0.003,
    "claude-2.1": 0.008,
    "claude-instant-1.2": 0.0008,
}


def estimate_tokens(text: str | None) -> int:
    """Rough token count: one token per four characters, rounded up."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def _finite_non_negative(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        v = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(v) or v < 0:
        return 0.0
    return v


def _count(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float) and math.isfinite(value) and value >= 0:
        return int(value)
    return None


def tokens_per_second(tokens: int | float | None, seconds: float | None) -> float:
    """Throughput that is never negative, infinite or NaN.

    Zero, negative or missing elapsed time yields 0.0 rather than infinity.
    """
    if tokens is None or seconds is None:
        return 0.0
    seconds_f = _finite_non_negative(seconds)
    if seconds_f <= 0:
        return 0.0
    return _finite_non_negative(_finite_non_negative(tokens) / seconds_f)


def _match_prefix(table: Mapping[str, Any], model: str | None) -> Any | None:
    if not model:
        return None
    if model in table:
        return table[model]
    prefixes = [key for key in table if model.startswith(key)]
    if not prefixes:
        return None
    return table[max(prefixes, key=len)]


def openai_capabilities(model: str | None) -> ModelCapabilities | None:
    return _match_prefix(OPENAI_MODEL_CAPABILITIES, model)


def calculate_cost(
    kind: ProviderKind | str,
    model: str | None,
    prompt_tokens: int,
    completion_tokens: int,
) -> float | None:
    """Monetary cost for kinds with a price table; None for the rest."""
    kind = ProviderKind(kind)
    if kind is ProviderKind.OPENAI:
        caps = openai_capabilities(model) or OPENAI_MODEL_CAPABILITIES[OPENAI_DEFAULT_MODEL]
        return (prompt_tokens * caps.input_cost_per_1k + completion_tokens * caps.output_cost_per_1k) / 1000
    if kind is ProviderKind.ANTHROPIC:
        price = _match_prefix(ANTHROPIC_PRICE_PER_1K, model)
        if price is None:
            price = ANTHROPIC_PRICE_PER_1K[ANTHROPIC_DEFAULT_PRICE_KEY]
        return (prompt_tokens + completion_tokens) * price / 1000
    return None


def _as_mapping(payload: Any) -> Mapping[str, Any]:
    return payload if isinstance(payload, Mapping) else {}


def _estimated_metrics(
    response_time_ms: float,
    prompt: str,
    text: str,
    *,
    kind: ProviderKind,
    model: str | None,
    reported_tokens_per_second: Any = None,
) -> Metrics:
    prompt_tokens = estimate_tokens(prompt)
    completion_tokens = estimate_tokens(text)
    if reported_tokens_per_second is not None:
        tps = _finite_non_negative(reported_tokens_per_second)
    else:
        tps = tokens_per_second(completion_tokens, response_time_ms / 1000)
    return Metrics(
        response_time_ms=response_time_ms,
        tokens_per_second=tps,
        total_tokens=prompt_tokens + completion_tokens,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        cost=calculate_cost(kind, model, prompt_tokens, completion_tokens),
        tokens_estimated=True,
    )


def openai_metrics(
    payload: Any, response_time_ms: float, prompt: str, *, text: str, model: str | None, **_: Any
) -> Metrics:
    usage = _as_mapping(_as_mapping(payload).get("usage"))
    completion_tokens = _count(usage.get("completion_tokens"))
    # Context size is only reported for exactly known models.
    exact = OPENAI_MODEL_CAPABILITIES.get(model) if model else None
    context_size = exact.max_context_size if exact else None

    if completion_tokens is None:
        estimated = _estimated_metrics(response_time_ms, prompt, text, kind=ProviderKind.OPENAI, model=model)
        return replace(estimated, context_size=context_size)

    prompt_tokens = _count(usage.get("prompt_tokens"))
    total_tokens = _count(usage.get("total_tokens"))
    if total_tokens is None:
        total_tokens = completion_tokens + (prompt_tokens or 0)
    return Metrics(
        response_time_ms=response_time_ms,
        tokens_per_second=tokens_per_second(completion_tokens, response_time_ms / 1000),
        total_tokens=total_tokens,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        cost=calculate_cost(ProviderKind.OPENAI, model, prompt_tokens or 0, completion_tokens),
        context_size=context_size,
    )


def anthropic_metrics(
    payload: Any, response_time_ms: float, prompt: str, *, text: str, model: str | None, **_: Any
) -> Metrics:
    return _estimated_metrics(response_time_ms, prompt, text, kind=ProviderKind.ANTHROPIC, model=model)


def huggingface_metrics(
    payload: Any, response_time_ms: float, prompt: str, *, text: str, model: str | None, **_: Any
) -> Metrics:
    return _estimated_metrics(response_time_ms, prompt, text, kind=ProviderKind.HUGGINGFACE, model=model)


def gguf_metrics(
    payload: Any, response_time_ms: float, prompt: str, *, text: str, model: str | None, **_: Any
) -> Metrics:
    return _estimated_metrics(
        response_time_ms,
        prompt,
        text,
        kind=ProviderKind.GGUF,
        model=model,
        reported_tokens_per_second=_as_mapping(payload).get("tokens_per_second"),
    )


def ollama_metrics(
    payload: Any,
    response_time_ms: float,
    prompt: str,
    *,
    text: str,
    model: str | None,
    context_size: int | None = None,
    **_: Any,
) -> Metrics:
    data = _as_mapping(payload)

    total_duration = _count(data.get("total_duration"))
    if total_duration:
        response_time_ms = total_duration / NANOSECONDS_PER_MILLISECOND

    eval_count = _count(data.get("eval_count"))
    eval_duration = _count(data.get("eval_duration"))
    prompt_eval_count = _count(data.get("prompt_eval_count"))

    completion_tokens = eval_count if eval_count is not None else estimate_tokens(text)
    prompt_tokens = prompt_eval_count if prompt_eval_count is not None else estimate_tokens(prompt)

    if eval_count is not None and eval_duration:
        tps = tokens_per_second(eval_count, eval_duration / NANOSECONDS_PER_SECOND)
    else:
        tps = tokens_per_second(estimate_tokens(text), response_time_ms / 1000)

    return Metrics(
        response_time_ms=response_time_ms,
        tokens_per_second=tps,
        total_tokens=prompt_tokens + completion_tokens,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        context_size=context_size or DEFAULT_OLLAMA_CONTEXT_SIZE,
        tokens_estimated=eval_count is None or prompt_eval_count is None,
    )


_NORMALIZERS: dict[ProviderKind, Callable[..., Metrics]] = {
    ProviderKind.OPENAI: openai_metrics,
    ProviderKind.ANTHROPIC: anthropic_metrics,
    ProviderKind.HUGGINGFACE: huggingface_metrics,
    ProviderKind.GGUF: gguf_metrics,
    ProviderKind.OLLAMA: ollama_metrics,
}


def normalize_metrics(
    kind: ProviderKind | str,
    payload: Any,
    response_time_ms: float,
    prompt: str,
    *,
    text: str,
    model: str | None = None,
    context_size: int | None = None,
) -> Metrics:
    """Map a raw provider payload and its wall-clock time onto `Metrics`."""
    normalizer = _NORMALIZERS[ProviderKind(kind)]
    return normalizer(
        payload,
        _finite_non_negative(response_time_ms),
        prompt,
        text=text,
        model=model,
        context_size=context_size,
    )
