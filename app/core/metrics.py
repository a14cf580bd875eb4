from __future__ import annotations

from typing import Any

from prometheus_client import Counter, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

from app.core.config import settings


class _NoOpMetric:
    def labels(self, *args: Any, **kwargs: Any) -> "_NoOpMetric":
        return self

    def observe(self, *_: Any, **__: Any) -> None:
        return None

    def inc(self, *_: Any, **__: Any) -> None:
        return None


def _metric(factory: type, name: str, documentation: str, labels: list[str], **kwargs: Any) -> Any:
    if not settings.METRICS_ENABLED:
        return _NoOpMetric()
    return factory(f"{settings.METRICS_NAMESPACE}_{name}", documentation, labels, **kwargs)


REQUEST_LATENCY = _metric(
    Histogram,
    "http_request_duration_seconds",
    "HTTP request latency in seconds.",
    ["method", "path", "status_code"],
    buckets=settings.METRICS_LATENCY_BUCKETS,
)

REQUEST_COUNT = _metric(
    Counter,
    "http_requests_total",
    "Total HTTP requests processed.",
    ["method", "path", "status_code"],
)

REQUEST_ERRORS = _metric(
    Counter,
    "http_errors_total",
    "Total HTTP requests resulting in 4xx/5xx.",
    ["method", "path", "status_code"],
)

LOGIN_ATTEMPTS = _metric(
    Counter,
    "auth_login_attempts_total",
    "Authentication attempts partitioned by outcome.",
    ["outcome"],
)

MOVEMENTS_REGISTERED = _metric(
    Counter,
    "movements_registered_total",
    "Movimientos de stock registrados por tipo.",
    ["tipo"],
)

MOVEMENTS_VOIDED = _metric(
    Counter,
    "movements_voided_total",
    "Movimientos anulados por tipo original.",
    ["tipo"],
)

MOVEMENTS_REJECTED = _metric(
    Counter,
    "movements_rejected_total",
    "Registros de movimientos rechazados por regla de negocio.",
    ["reason"],
)


def normalize_path(request) -> str:
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    if path:
        return path
    return request.url.path


def record_request_metrics(request, status_code: int, elapsed: float) -> None:
    method = request.method
    path = normalize_path(request)
    labels = (method, path, str(status_code))
    REQUEST_COUNT.labels(*labels).inc()
    REQUEST_LATENCY.labels(*labels).observe(elapsed)
    if status_code >= 400:
        REQUEST_ERRORS.labels(*labels).inc()


def record_login_attempt(outcome: str) -> None:
    LOGIN_ATTEMPTS.labels(outcome=outcome).inc()


def record_movement(tipo: str) -> None:
    MOVEMENTS_REGISTERED.labels(tipo=tipo).inc()


def record_void(tipo: str) -> None:
    MOVEMENTS_VOIDED.labels(tipo=tipo).inc()


def record_rejection(reason: str) -> None:
    MOVEMENTS_REJECTED.labels(reason=reason).inc()


def export_metrics() -> tuple[bytes, str]:
    if not settings.METRICS_ENABLED:
        return b"", "text/plain; charset=utf-8"
    return generate_latest(), CONTENT_TYPE_LATEST
