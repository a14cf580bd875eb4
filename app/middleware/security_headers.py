from __future__ import annotations

from typing import Callable, Iterable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.config import settings

# Swagger UI y ReDoc cargan scripts de un CDN
DOCS_PATHS = ("/docs", "/redoc")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Cabeceras de seguridad en todas las respuestas; ``no-store`` en la API."""

    def __init__(self, app, csp_exempt_paths: Iterable[str] = DOCS_PATHS) -> None:
        super().__init__(app)
        self.csp_exempt_paths = tuple(csp_exempt_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        path = request.url.path
        headers = response.headers
        headers.setdefault("Strict-Transport-Security", settings.STRICT_TRANSPORT_SECURITY)
        if not path.startswith(self.csp_exempt_paths):
            headers.setdefault("Content-Security-Policy", settings.CONTENT_SECURITY_POLICY)
        headers.setdefault("X-Frame-Options", settings.X_FRAME_OPTIONS)
        headers.setdefault("X-Content-Type-Options", settings.X_CONTENT_TYPE_OPTIONS)
        headers.setdefault("Referrer-Policy", settings.REFERRER_POLICY)
        if path.startswith(settings.API_V1_STR):
            # stock y consumos cambian con cada movimiento
            headers.setdefault("Cache-Control", "no-store")
        return response
