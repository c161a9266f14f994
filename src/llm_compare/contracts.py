from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Metrics:
    response_time_ms: float
    tokens_per_second: float
    total_tokens: int | None = None
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    cost: float | None = None
    context_size: int | None = None
    # Never populated: no backend reports a usable memory figure.
    memory_used: float | None = None
    tokens_estimated: bool = False

    @classmethod
    def zero(cls) -> "Metrics":
        return cls(response_time_ms=0.0, tokens_per_second=0.0)


@dataclass(frozen=True)
class ModelResponse:
    id: str
    provider: str
    model: str
    text: str
    metrics: Metrics
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ComparisonResult:
    prompt: str
    timestamp: str
    responses: tuple[ModelResponse, ...]
    total_time_ms: float
    errors: tuple[str, ...] | None = None

    @property
    def successful(self) -> list[ModelResponse]:
        return [r for r in self.responses if r.ok]

    @property
    def failed(self) -> list[ModelResponse]:
        return [r for r in self.responses if not r.ok]
