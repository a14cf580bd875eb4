from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError

from app.core.logging import get_logger
from app.services.exceptions import (
    ConflictError,
    DomainValidationError,
    ResourceNotFoundError,
    ServiceError,
)

logger = get_logger("app.errors")


def _body(exc: ServiceError) -> dict:
    content: dict = {"detail": exc.detail}
    if exc.context:
        content["datos"] = jsonable_encoder(exc.context)
    return content


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ResourceNotFoundError)
    async def handle_not_found(_: Request, exc: ResourceNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content=_body(exc))

    @app.exception_handler(DomainValidationError)
    async def handle_validation(_: Request, exc: DomainValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content=_body(exc))

    @app.exception_handler(ConflictError)
    async def handle_conflict(_: Request, exc: ConflictError) -> JSONResponse:
        return JSONResponse(status_code=409, content=_body(exc))

    # Stock insuficiente, límite mensual, adjuntos, cantidades
    @app.exception_handler(ServiceError)
    async def handle_service_error(_: Request, exc: ServiceError) -> JSONResponse:
        return JSONResponse(status_code=400, content=_body(exc))

    @app.exception_handler(OperationalError)
    @app.exception_handler(InterfaceError)
    async def handle_database_error(request: Request, exc: OperationalError | InterfaceError) -> JSONResponse:
        logger.error(
            "Database unavailable",
            extra={"path": request.url.path, "error": str(exc.orig) if exc.orig else str(exc)},
        )
        return JSONResponse(
            status_code=503,
            content={"detail": "Servicio de base de datos no disponible, reintente más tarde."},
        )
