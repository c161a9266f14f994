from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .contracts import ComparisonResult, Metrics, ModelResponse
from .models import ProviderConfig


class CompareRequest(BaseModel):
    prompt: str
    configs: list[ProviderConfig] | None = None


class ValidateConnectionsRequest(BaseModel):
    configs: list[ProviderConfig] | None = None


class ValidateConnectionsResponse(BaseModel):
    results: dict[str, bool]


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class MetricsOut(_CamelModel):
    response_time: float = Field(alias="responseTime")
    tokens_per_second: float = Field(alias="tokensPerSecond")
    # Output quality is not evaluated; the dashboard still expects the field.
    quality_score: float = Field(default=0, alias="qualityScore")
    total_tokens: int | None = Field(default=None, alias="totalTokens")
    prompt_tokens: int | None = Field(default=None, alias="promptTokens")
    completion_tokens: int | None = Field(default=None, alias="completionTokens")
    cost: float | None = None
    context_size: int | None = Field(default=None, alias="contextSize")
    memory_used: float | None = Field(default=None, alias="memoryUsed")
    tokens_estimated: bool = Field(default=False, alias="tokensEstimated")


class ModelResponseOut(_CamelModel):
    id: str
    provider: str
    model: str
    text: str
    metrics: MetricsOut
    error: str | None = None


class ComparisonResultOut(_CamelModel):
    prompt: str
    timestamp: str
    responses: list[ModelResponseOut]
    total_time: float = Field(alias="totalTime")
    errors: list[str] | None = None


def metrics_out(m: Metrics) -> MetricsOut:
    return MetricsOut(
        response_time=m.response_time_ms,
        tokens_per_second=m.tokens_per_second,
        total_tokens=m.total_tokens,
        prompt_tokens=m.prompt_tokens,
        completion_tokens=m.completion_tokens,
        cost=m.cost,
        context_size=m.context_size,
        memory_used=m.memory_used,
        tokens_estimated=m.tokens_estimated,
    )


def response_out(r: ModelResponse) -> ModelResponseOut:
    return ModelResponseOut(
        id=r.id,
        provider=r.provider,
        model=r.model,
        text=r.text,
        metrics=metrics_out(r.metrics),
        error=r.error,
    )


def comparison_result_out(result: ComparisonResult) -> ComparisonResultOut:
    return ComparisonResultOut(
        prompt=result.prompt,
        timestamp=result.timestamp,
        responses=[response_out(r) for r in result.responses],
        total_time=result.total_time_ms,
        errors=list(result.errors) if result.errors else None,
    )


class ErrorBody(BaseModel):
    message: str
    type: str = "api_error"
    code: str | None = None
    details: Any | None = None


class ErrorResponse(BaseModel):
    error: ErrorBody


def make_error_response(
    *,
    message: str,
    type: str = "api_error",
    code: str | None = None,
    details: Any | None = None,
) -> ErrorResponse:
    return ErrorResponse(error=ErrorBody(message=message, type=type, code=code, details=details))
