from __future__ import annotations

from prometheus_client import Counter, Histogram, start_http_server

server_requests_total = Counter(
    "llm_compare_server_requests_total",
    "Total HTTP requests handled by the dashboard API",
    labelnames=["path", "status"],
)

server_errors_total = Counter(
    "llm_compare_server_errors_total",
    "Total error responses returned by the dashboard API",
    labelnames=["type"],
)

comparison_runs_total = Counter(
    "llm_compare_comparison_runs_total",
    "Comparison runs by outcome",
    labelnames=["outcome"],
)

comparison_duration_seconds = Histogram(
    "llm_compare_comparison_duration_seconds",
    "Wall-clock time of a whole comparison fan-out",
    buckets=[0.1, 0.3, 0.5, 1, 2, 5, 10, 30, 60, 120, 300],
)

provider_requests_total = Counter(
    "llm_compare_provider_requests_total",
    "Provider calls by outcome",
    labelnames=["provider", "status"],
)

provider_request_latency_seconds = Histogram(
    "llm_compare_provider_request_latency_seconds",
    "Latency of successful provider calls",
    buckets=[0.1, 0.3, 0.5, 1, 2, 5, 10, 30, 60, 120],
    labelnames=["provider"],
)


def maybe_start_metrics(*, enable: bool, bind: str, port: int) -> None:
    if not enable:
        return
    start_http_server(port, addr=bind)
