from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import Any

import structlog

from .api_models import (
    CompareRequest,
    ComparisonResultOut,
    ValidateConnectionsRequest,
    ValidateConnectionsResponse,
    comparison_result_out,
    make_error_response,
)
from .comparison import ComparisonOrchestrator
from .config import CompareSettings
from .config_store import ProviderConfigStore, dump_provider_configs, parse_provider_configs
from .errors import (
    ComparisonInputError,
    ConfigStoreError,
    ConfigurationError,
    NoSuccessfulResponsesError,
    ProviderError,
)
from .http_security import install_middlewares
from .logging import configure_logging
from .metrics import maybe_start_metrics, server_errors_total, server_requests_total

log = structlog.get_logger()


def create_app(
    settings: CompareSettings | None = None,
    orchestrator: ComparisonOrchestrator | None = None,
    store: ProviderConfigStore | None = None,
):
    try:
        from fastapi import Body, FastAPI
        from fastapi.responses import JSONResponse
    except ImportError as e:  # pragma: no cover
        raise RuntimeError('Install the "server" extra: pip install -e ".[server]"') from e

    settings = settings or CompareSettings()
    configure_logging(level=settings.log_level, fmt=settings.log_format, secrets=settings.secrets())
    store = store or ProviderConfigStore(settings.provider_config_path, settings.config_fernet_key)
    orchestrator = orchestrator or ComparisonOrchestrator(
        timeout_seconds=settings.provider_request_timeout_seconds
    )

    def _request_id(request) -> str | None:
        return getattr(getattr(request, "state", None), "request_id", None)

    def _error(request, status_code: int, message: str, type_: str, details: Any = None):
        server_errors_total.labels(type=type_).inc()
        server_requests_total.labels(path=request.url.path, status=str(status_code)).inc()
        return JSONResponse(
            status_code=status_code,
            content=make_error_response(
                message=message,
                type=type_,
                code=_request_id(request),
                details=details,
            ).model_dump(),
        )

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        maybe_start_metrics(enable=settings.enable_metrics, bind=settings.metrics_bind, port=settings.metrics_port)
        if not orchestrator.configurations and store.exists():
            orchestrator.update_configurations(store.load())
            log.info("provider_configs_loaded", count=len(orchestrator.configurations))
        yield

    app = FastAPI(
        title="llm-compare",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.enable_api_docs else None,
        redoc_url="/redoc" if settings.enable_api_docs else None,
        openapi_url="/openapi.json" if settings.enable_api_docs else None,
    )
    install_middlewares(app, settings=settings)

    @app.exception_handler(ComparisonInputError)
    async def _input_error_handler(request, exc: ComparisonInputError):
        return _error(request, 400, str(exc), "invalid_request_error")

    @app.exception_handler(ConfigurationError)
    async def _config_error_handler(request, exc: ConfigurationError):
        return _error(request, 400, str(exc), "invalid_request_error")

    @app.exception_handler(NoSuccessfulResponsesError)
    async def _all_failed_handler(request, exc: NoSuccessfulResponsesError):
        return _error(request, 502, str(exc), "all_providers_failed", details=exc.errors)

    @app.exception_handler(ProviderError)
    async def _provider_error_handler(request, exc: ProviderError):
        return _error(request, 500, str(exc), "api_error")

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/v1/compare", response_model=ComparisonResultOut)
    async def compare(req: CompareRequest):
        if len(req.prompt) > settings.max_prompt_chars:
            raise ComparisonInputError("Prompt too large.")
        result = await orchestrator.compare(req.prompt, req.configs)
        server_requests_total.labels(path="/v1/compare", status="200").inc()
        return comparison_result_out(result)

    @app.post("/v1/connections/validate", response_model=ValidateConnectionsResponse)
    async def validate_connections(req: ValidateConnectionsRequest):
        results = await orchestrator.validate_connections(req.configs)
        server_requests_total.labels(path="/v1/connections/validate", status="200").inc()
        return ValidateConnectionsResponse(results=results)

    @app.get("/v1/configurations")
    async def get_configurations() -> dict[str, list[dict[str, Any]]]:
        return dump_provider_configs(orchestrator.configurations)

    @app.put("/v1/configurations")
    async def put_configurations(payload: dict[str, Any] = Body(...)) -> dict[str, list[dict[str, Any]]]:
        try:
            configs = parse_provider_configs(payload)
        except ConfigStoreError as e:
            raise ConfigurationError(str(e)) from e
        store.save(configs)
        orchestrator.update_configurations(configs)
        server_requests_total.labels(path="/v1/configurations", status="200").inc()
        return dump_provider_configs(configs)

    return app


app = create_app()


def main() -> None:  # pragma: no cover
    try:
        import uvicorn
    except ImportError as e:
        raise RuntimeError('Install the "server" extra: pip install -e ".[server]"') from e

    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run("llm_compare.server:app", host=host, port=port)


if __name__ == "__main__":  # pragma: no cover
    main()
