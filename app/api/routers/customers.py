from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, Response, Security, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_limit_guard
from app.core.logging import get_logger
from app.db.operations import commit_async, rollback_async
from app.db.session_async import get_async_db
from app.domain.enums import CustomerStatus, MovementKind, MovementStatus
from app.models.user import User
from app.schemas.customer import (
    CustomerConsumption,
    CustomerCreate,
    CustomerLimitUpdate,
    CustomerRead,
    CustomerStatusUpdate,
    CustomerUpdate,
    DepartmentStatistics,
    LimitUpdateResult,
)
from app.schemas.movement import MovementRead
from app.schemas.pagination import Page, page_of
from app.services import customer_service, movement_service
from app.services.limit_guard import LimitGuard

router = APIRouter(prefix="/clientes", tags=["clientes"])

logger = get_logger("app.customers")


@router.get("", response_model=Page[CustomerRead])
async def list_customers(
    search: str | None = Query(None, description="nombre, apellido, email o RUT"),
    departamento: str | None = Query(None),
    estado: CustomerStatus | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["ver_clientes"]),
):
    items, total = await customer_service.list_customers_with_total(
        db, search=search, departamento=departamento, estado=estado, limit=limit, offset=offset
    )
    return page_of(items, total, limit, offset)


@router.get("/departamento/{departamento}/estadisticas", response_model=DepartmentStatistics)
async def department_statistics(
    departamento: str = Path(..., min_length=1, max_length=100),
    fecha_inicio: datetime | None = Query(None),
    fecha_fin: datetime | None = Query(None),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["ver_clientes", "ver_movimientos"]),
):
    return await movement_service.department_statistics(db, departamento, fecha_inicio, fecha_fin)


@router.get("/{customer_id}", response_model=CustomerRead)
async def get_customer(
    customer_id: UUID = Path(..., description="UUID del cliente"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["ver_clientes"]),
):
    return await customer_service.get_customer(db, customer_id)


@router.get("/{customer_id}/consumo", response_model=CustomerConsumption)
async def customer_consumption(
    customer_id: UUID = Path(..., description="UUID del cliente"),
    db: AsyncSession = Depends(get_async_db),
    guard: LimitGuard = Depends(get_limit_guard),
    current_user: User = Security(get_current_user, scopes=["ver_clientes"]),
):
    customer = await customer_service.get_customer(db, customer_id)
    consumo = await guard.monthly_consumption(customer.id)
    disponible = None
    if customer.limite_mensual > 0:
        disponible = max(customer.limite_mensual - consumo, 0)
    return {
        "cliente_id": customer.id,
        "limite_mensual": customer.limite_mensual,
        "consumo_actual": consumo,
        "disponible": disponible,
    }


@router.get("/{customer_id}/movimientos", response_model=Page[MovementRead])
async def customer_movements(
    customer_id: UUID = Path(..., description="UUID del cliente"),
    tipo: MovementKind | None = Query(None),
    estado: MovementStatus | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["ver_clientes", "ver_movimientos"]),
):
    await customer_service.get_customer(db, customer_id)
    items, total = await movement_service.list_movements_with_total(
        db, cliente_id=customer_id, tipo=tipo, estado=estado, limit=limit, offset=offset
    )
    return page_of(items, total, limit, offset)


@router.post("", response_model=CustomerRead, status_code=status.HTTP_201_CREATED)
async def create_customer(
    payload: CustomerCreate,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["crear_clientes"]),
):
    try:
        customer = await customer_service.create_customer(db, payload)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return customer


@router.put("/{customer_id}", response_model=CustomerRead)
async def update_customer(
    payload: CustomerUpdate,
    customer_id: UUID = Path(..., description="UUID del cliente"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["editar_clientes"]),
):
    try:
        customer = await customer_service.get_customer(db, customer_id)
        customer = await customer_service.update_customer(db, customer, payload)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return customer


@router.patch("/{customer_id}/limite", response_model=LimitUpdateResult)
async def update_customer_limit(
    payload: CustomerLimitUpdate,
    customer_id: UUID = Path(..., description="UUID del cliente"),
    db: AsyncSession = Depends(get_async_db),
    guard: LimitGuard = Depends(get_limit_guard),
    current_user: User = Security(get_current_user, scopes=["editar_clientes"]),
):
    customer = await customer_service.get_customer(db, customer_id)
    # LimitGuard confirma su propia transacción
    return await guard.update_monthly_limit(customer, payload.limite_mensual)


@router.patch("/{customer_id}/estado", response_model=CustomerRead)
async def change_customer_status(
    payload: CustomerStatusUpdate,
    customer_id: UUID = Path(..., description="UUID del cliente"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["editar_clientes"]),
):
    try:
        customer = await customer_service.get_customer(db, customer_id)
        customer = await customer_service.change_status(db, customer, payload)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    logger.info("Estado de cliente actualizado", extra={"cliente_id": str(customer.id), "estado": customer.estado.value})
    return customer


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(
    customer_id: UUID = Path(..., description="UUID del cliente"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["eliminar_clientes"]),
):
    try:
        customer = await customer_service.get_customer(db, customer_id)
        soft = await customer_service.delete_customer(db, customer)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    logger.info("Cliente eliminado", extra={"cliente_id": str(customer_id), "baja_logica": soft})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
