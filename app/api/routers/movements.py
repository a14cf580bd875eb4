from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Path, Query, Security, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_compensation_engine, get_current_user, get_ledger, get_notifier
from app.core.config import settings
from app.core.rate_limiter import rate_limit
from app.db.session_async import get_async_db
from app.domain.enums import MovementKind, MovementStatus
from app.models.user import User
from app.schemas.movement import (
    DailyReport,
    MovementCreate,
    MovementRead,
    MovementStatistics,
    MovementVoid,
    VoidResponse,
)
from app.schemas.pagination import Page, page_of
from app.services import movement_service
from app.services.compensation_service import CompensationEngine
from app.services.ledger_service import InventoryLedger
from app.services.notification_service import Notifier
from app.services.upload_service import delete_attachment, save_attachment

router = APIRouter(prefix="/movimientos", tags=["movimientos"])

_reports_limit = rate_limit(
    settings.RATE_LIMIT_REPORTS_PER_MINUTE,
    settings.RATE_LIMIT_REPORTS_WINDOW_SECONDS,
    scope="reportes",
)


@router.post("", response_model=MovementRead, status_code=status.HTTP_201_CREATED)
async def register_movement(
    payload: MovementCreate,
    ledger: InventoryLedger = Depends(get_ledger),
    current_user: User = Security(get_current_user, scopes=["crear_movimientos"]),
):
    # el ledger confirma o revierte su propia transacción
    return await ledger.register_movement(payload, current_user)


@router.post("/con-adjunto", response_model=MovementRead, status_code=status.HTTP_201_CREATED)
async def register_movement_with_attachment(
    tipo: MovementKind = Form(...),
    producto_id: UUID = Form(...),
    cantidad: int = Form(...),
    precio_unitario: Decimal = Form(...),
    cliente_id: UUID | None = Form(None),
    proveedor_id: UUID | None = Form(None),
    numero_documento: str | None = Form(None),
    motivo: str | None = Form(None),
    archivo_adjunto: UploadFile = File(..., description="Documento de respaldo"),
    ledger: InventoryLedger = Depends(get_ledger),
    current_user: User = Security(get_current_user, scopes=["crear_movimientos"]),
):
    try:
        payload = MovementCreate(
            tipo=tipo,
            producto_id=producto_id,
            cliente_id=cliente_id,
            proveedor_id=proveedor_id,
            cantidad=cantidad,
            precio_unitario=precio_unitario,
            numero_documento=numero_documento,
            motivo=motivo,
        )
    except ValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc

    stored = await save_attachment(archivo_adjunto)
    try:
        return await ledger.register_movement(payload, current_user, attachment=stored)
    except Exception:
        delete_attachment(stored)
        raise


@router.patch("/{movement_id}/anular", response_model=VoidResponse)
async def void_movement(
    payload: MovementVoid,
    movement_id: UUID = Path(..., description="UUID del movimiento"),
    engine: CompensationEngine = Depends(get_compensation_engine),
    current_user: User = Security(get_current_user, scopes=["anular_movimientos"]),
):
    result = await engine.void_movement(movement_id, payload.motivo, current_user)
    return {
        "movimiento_anulado": result.voided,
        "movimiento_compensacion": result.compensation,
    }


@router.get(
    "/estadisticas",
    response_model=MovementStatistics,
    dependencies=[Depends(_reports_limit)],
)
async def movement_statistics(
    fecha_inicio: datetime | None = Query(None),
    fecha_fin: datetime | None = Query(None),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["ver_movimientos"]),
):
    return await movement_service.movement_statistics(db, fecha_inicio, fecha_fin)


@router.get(
    "/reporte-diario",
    response_model=DailyReport,
    dependencies=[Depends(_reports_limit)],
)
async def daily_report(
    db: AsyncSession = Depends(get_async_db),
    notifier: Notifier = Depends(get_notifier),
    current_user: User = Security(get_current_user, scopes=["exportar_reportes"]),
):
    return await movement_service.daily_report(db, notifier)


@router.get("", response_model=Page[MovementRead])
async def list_movements(
    tipo: MovementKind | None = Query(None),
    estado: MovementStatus | None = Query(None),
    producto_id: UUID | None = Query(None),
    cliente_id: UUID | None = Query(None),
    proveedor_id: UUID | None = Query(None),
    fecha_inicio: datetime | None = Query(None),
    fecha_fin: datetime | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["ver_movimientos"]),
):
    items, total = await movement_service.list_movements_with_total(
        db,
        tipo=tipo,
        estado=estado,
        producto_id=producto_id,
        cliente_id=cliente_id,
        proveedor_id=proveedor_id,
        fecha_inicio=fecha_inicio,
        fecha_fin=fecha_fin,
        limit=limit,
        offset=offset,
    )
    return page_of(items, total, limit, offset)


@router.get("/{movement_id}", response_model=MovementRead)
async def get_movement(
    movement_id: UUID = Path(..., description="UUID del movimiento"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["ver_movimientos"]),
):
    return await movement_service.get_movement(db, movement_id)
