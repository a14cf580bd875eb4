"""Middlewares HTTP de la API."""

from .observability import ObservabilityMiddleware
from .request_limit import PayloadLimitMiddleware
from .security_headers import SecurityHeadersMiddleware

__all__ = [
    "ObservabilityMiddleware",
    "PayloadLimitMiddleware",
    "SecurityHeadersMiddleware",
]
