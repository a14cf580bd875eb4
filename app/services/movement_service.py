from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import get_logger
from app.domain.enums import CustomerStatus, MovementKind, MovementStatus
from app.domain.periods import day_start, default_statistics_range
from app.models.customer import Customer
from app.models.movement import Movement
from app.services.exceptions import DomainValidationError, ResourceNotFoundError
from app.services.notification_service import Notifier

logger = get_logger("app.movements")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime | None) -> datetime | None:
    # fechas sin zona horaria en la query se interpretan como UTC; todo se compara en UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def get_movement(db: AsyncSession, movement_id: uuid.UUID) -> Movement:
    movement = await db.get(Movement, movement_id)
    if movement is None:
        raise ResourceNotFoundError("Movimiento no encontrado", movimiento_id=str(movement_id))
    return movement


async def list_movements_with_total(
    db: AsyncSession,
    *,
    tipo: MovementKind | None = None,
    estado: MovementStatus | None = None,
    producto_id: uuid.UUID | None = None,
    cliente_id: uuid.UUID | None = None,
    proveedor_id: uuid.UUID | None = None,
    fecha_inicio: datetime | None = None,
    fecha_fin: datetime | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Movement], int]:
    fecha_inicio, fecha_fin = _aware(fecha_inicio), _aware(fecha_fin)
    filters = []
    if tipo is not None:
        filters.append(Movement.tipo == tipo)
    if estado is not None:
        filters.append(Movement.estado == estado)
    if producto_id is not None:
        filters.append(Movement.producto_id == producto_id)
    if cliente_id is not None:
        filters.append(Movement.cliente_id == cliente_id)
    if proveedor_id is not None:
        filters.append(Movement.proveedor_id == proveedor_id)
    if fecha_inicio is not None:
        filters.append(Movement.fecha_creacion >= fecha_inicio)
    if fecha_fin is not None:
        filters.append(Movement.fecha_creacion <= fecha_fin)

    total = (await db.execute(select(func.count(Movement.id)).where(*filters))).scalar_one()
    stmt = (
        select(Movement)
        .where(*filters)
        .order_by(Movement.fecha_creacion.desc())
        .limit(limit)
        .offset(offset)
    )
    items = (await db.execute(stmt)).scalars().all()
    return list(items), int(total)


def _statistics_range(fecha_inicio: datetime | None, fecha_fin: datetime | None) -> tuple[datetime, datetime]:
    fecha_inicio, fecha_fin = _aware(fecha_inicio), _aware(fecha_fin)
    if fecha_inicio is None or fecha_fin is None:
        default_start, default_end = default_statistics_range(_utcnow(), settings.STATISTICS_DEFAULT_DAYS)
        fecha_inicio = fecha_inicio or default_start
        fecha_fin = fecha_fin or default_end
    if fecha_inicio > fecha_fin:
        raise DomainValidationError(
            "La fecha de inicio debe ser anterior a la fecha de fin",
            fecha_inicio=fecha_inicio.isoformat(),
            fecha_fin=fecha_fin.isoformat(),
        )
    return fecha_inicio, fecha_fin


async def movement_statistics(
    db: AsyncSession,
    fecha_inicio: datetime | None = None,
    fecha_fin: datetime | None = None,
) -> dict[str, Any]:
    """Movimientos completados agrupados por tipo dentro del rango."""
    fecha_inicio, fecha_fin = _statistics_range(fecha_inicio, fecha_fin)

    stmt = (
        select(
            Movement.tipo,
            func.count(Movement.id),
            func.coalesce(func.sum(Movement.cantidad), 0),
            func.coalesce(func.sum(Movement.total), 0),
        )
        .where(
            Movement.estado == MovementStatus.completado,
            Movement.fecha_creacion >= fecha_inicio,
            Movement.fecha_creacion <= fecha_fin,
        )
        .group_by(Movement.tipo)
    )
    stats: dict[MovementKind, dict[str, Any]] = {
        kind: {"movimientos": 0, "productos": 0, "valor": Decimal("0.00")} for kind in MovementKind
    }
    for tipo, count, quantity, value in (await db.execute(stmt)).all():
        stats[MovementKind(tipo)] = {
            "movimientos": int(count),
            "productos": int(quantity),
            "valor": Decimal(str(value)).quantize(Decimal("0.01")),
        }
    return {"fecha_inicio": fecha_inicio, "fecha_fin": fecha_fin, "estadisticas": stats}


async def daily_report(
    db: AsyncSession,
    notifier: Notifier | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Estadísticas desde hoy 00:00 (hora local), enviadas por correo."""
    now = now or _utcnow()
    report = await movement_statistics(db, day_start(now, settings.TIMEZONE), now)
    report["total_movimientos"] = sum(item["movimientos"] for item in report["estadisticas"].values())
    report["valor_total"] = sum((item["valor"] for item in report["estadisticas"].values()), Decimal("0.00"))
    report["correos_encolados"] = (notifier or Notifier()).daily_report(report)
    logger.info(
        "Reporte diario generado",
        extra={"total_movimientos": report["total_movimientos"], "valor_total": str(report["valor_total"])},
    )
    return report


async def department_statistics(
    db: AsyncSession,
    departamento: str,
    fecha_inicio: datetime | None = None,
    fecha_fin: datetime | None = None,
) -> dict[str, Any]:
    """Totales de los movimientos completados de los clientes activos de un departamento.

    ``total_clientes`` cuenta solo los clientes con al menos un movimiento en el rango.
    """
    fecha_inicio, fecha_fin = _statistics_range(fecha_inicio, fecha_fin)

    stmt = (
        select(
            func.count(func.distinct(Movement.cliente_id)),
            func.count(Movement.id),
            func.coalesce(func.sum(Movement.cantidad), 0),
            func.coalesce(func.sum(Movement.total), 0),
        )
        .join(Customer, Customer.id == Movement.cliente_id)
        .where(
            Customer.departamento == departamento,
            Customer.estado == CustomerStatus.activo,
            Customer.fecha_eliminacion.is_(None),
            Movement.estado == MovementStatus.completado,
            Movement.fecha_creacion >= fecha_inicio,
            Movement.fecha_creacion <= fecha_fin,
        )
    )
    customers, count, quantity, value = (await db.execute(stmt)).one()
    return {
        "departamento": departamento,
        "fecha_inicio": fecha_inicio,
        "fecha_fin": fecha_fin,
        "total_clientes": int(customers),
        "total_movimientos": int(count),
        "total_productos": int(quantity),
        "valor_total": Decimal(str(value)).quantize(Decimal("0.01")),
    }


async def has_movements(db: AsyncSession, column, value: uuid.UUID) -> bool:
    """True si algún movimiento referencia ``value`` en ``column``."""
    stmt = select(Movement.id).where(column == value).limit(1)
    return (await db.execute(stmt)).first() is not None
