from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.operations import flush_async, refresh_async
from app.domain.enums import CustomerStatus
from app.domain.movements import DELETED_REASON
from app.domain.rut import clean_rut
from app.models.customer import Customer
from app.models.movement import Movement
from app.schemas.customer import CustomerCreate, CustomerStatusUpdate, CustomerUpdate
from app.services.exceptions import ConflictError, ResourceNotFoundError
from app.services.movement_service import has_movements


async def get_customer(db: AsyncSession, customer_id: uuid.UUID) -> Customer:
    customer = await db.get(Customer, customer_id)
    if customer is None or customer.fecha_eliminacion is not None:
        raise ResourceNotFoundError("Cliente no encontrado", cliente_id=str(customer_id))
    return customer


async def create_customer(db: AsyncSession, data: CustomerCreate) -> Customer:
    existing = await db.execute(select(Customer.id).where(Customer.rut == data.rut).limit(1))
    if existing.first() is not None:
        raise ConflictError("Ya existe un cliente con ese RUT", rut=data.rut)

    customer = Customer(**data.model_dump())
    db.add(customer)
    await flush_async(db, customer)
    await refresh_async(db, customer)
    return customer


async def update_customer(db: AsyncSession, customer: Customer, data: CustomerUpdate) -> Customer:
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(customer, field, value)
    await flush_async(db, customer)
    await refresh_async(db, customer)
    return customer


async def change_status(db: AsyncSession, customer: Customer, data: CustomerStatusUpdate) -> Customer:
    customer.estado = data.estado
    customer.motivo_inactivacion = None if data.estado is CustomerStatus.activo else data.motivo
    await flush_async(db, customer)
    await refresh_async(db, customer)
    return customer


async def delete_customer(db: AsyncSession, customer: Customer) -> bool:
    """Devuelve True si fue baja lógica (tiene movimientos)."""
    if await has_movements(db, Movement.cliente_id, customer.id):
        customer.estado = CustomerStatus.inactivo
        customer.motivo_inactivacion = DELETED_REASON
        customer.fecha_eliminacion = datetime.now(timezone.utc)
        await flush_async(db, customer)
        return True
    await db.delete(customer)
    await flush_async(db)
    return False


async def list_customers_with_total(
    db: AsyncSession,
    *,
    search: str | None = None,
    departamento: str | None = None,
    estado: CustomerStatus | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Customer], int]:
    filters = [Customer.fecha_eliminacion.is_(None)]
    if search:
        like = f"%{search.strip()}%"
        conditions = [
            Customer.nombre.ilike(like),
            Customer.apellido.ilike(like),
            Customer.email.ilike(like),
        ]
        # el RUT se compara sin puntos ni guion
        rut = clean_rut(search)
        if any(char.isdigit() for char in rut):
            conditions.append(func.replace(Customer.rut, "-", "").ilike(f"%{rut}%"))
        filters.append(or_(*conditions))
    if departamento:
        filters.append(Customer.departamento == departamento)
    if estado is not None:
        filters.append(Customer.estado == estado)

    total = (await db.execute(select(func.count(Customer.id)).where(*filters))).scalar_one()
    stmt = (
        select(Customer)
        .where(*filters)
        .order_by(Customer.apellido, Customer.nombre)
        .limit(limit)
        .offset(offset)
    )
    items = (await db.execute(stmt)).scalars().all()
    return list(items), int(total)
