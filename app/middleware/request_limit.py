from __future__ import annotations

from typing import Callable

from fastapi import status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.core.config import settings
from app.core.logging import get_logger
from app.middleware.observability import client_ip


class PayloadLimitMiddleware(BaseHTTPMiddleware):
    """Rechaza con 413 los cuerpos mayores a ``MAX_REQUEST_SIZE_BYTES``.

    Con ``Content-Length`` basta la cabecera; sin ella (chunked) el cuerpo
    se lee completo una vez y se re-inyecta al endpoint.
    """

    def __init__(self, app, max_bytes: int | None = None) -> None:
        super().__init__(app)
        self.max_bytes = max_bytes or settings.MAX_REQUEST_SIZE_BYTES
        self.logger = get_logger("app.request_limit")

    async def dispatch(self, request: Request, call_next: Callable):
        if request.method in ("GET", "HEAD", "OPTIONS", "DELETE"):
            return await call_next(request)

        content_length = request.headers.get("content-length")
        if content_length is not None:
            try:
                size = int(content_length)
            except ValueError:
                return JSONResponse(
                    {"detail": "Content-Length inválido"},
                    status_code=status.HTTP_400_BAD_REQUEST,
                )
            if size > self.max_bytes:
                return self._reject(request, size)
            return await call_next(request)

        body = await request.body()
        if len(body) > self.max_bytes:
            return self._reject(request, len(body))

        body_sent = False

        async def receive():
            nonlocal body_sent
            if not body_sent:
                body_sent = True
                return {"type": "http.request", "body": body, "more_body": False}
            return {"type": "http.request", "body": b"", "more_body": False}

        request._receive = receive  # type: ignore[attr-defined]
        return await call_next(request)

    def _reject(self, request: Request, size: int) -> JSONResponse:
        self.logger.warning(
            "Solicitud rechazada por exceder el tamaño máximo",
            extra={
                "method": request.method,
                "path": request.url.path,
                "content_length": size,
                "max_bytes": self.max_bytes,
                "client_ip": client_ip(request),
            },
        )
        return JSONResponse(
            {"detail": "El cuerpo de la solicitud excede el tamaño permitido", "datos": {"max_bytes": self.max_bytes}},
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        )
