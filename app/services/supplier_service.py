from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.operations import flush_async, refresh_async
from app.domain.enums import SupplierStatus
from app.domain.movements import DELETED_REASON
from app.models.movement import Movement
from app.models.product import Product
from app.models.supplier import Supplier
from app.schemas.supplier import SupplierCreate, SupplierStatusUpdate, SupplierUpdate
from app.services.exceptions import ConflictError, ResourceNotFoundError
from app.services.movement_service import has_movements


async def get_supplier(db: AsyncSession, supplier_id: uuid.UUID) -> Supplier:
    supplier = await db.get(Supplier, supplier_id)
    if supplier is None or supplier.fecha_eliminacion is not None:
        raise ResourceNotFoundError("Proveedor no encontrado", proveedor_id=str(supplier_id))
    return supplier


async def create_supplier(db: AsyncSession, data: SupplierCreate) -> Supplier:
    existing = await db.execute(select(Supplier.id).where(Supplier.rut == data.rut).limit(1))
    if existing.first() is not None:
        raise ConflictError("Ya existe un proveedor con ese RUT", rut=data.rut)

    supplier = Supplier(**data.model_dump())
    db.add(supplier)
    await flush_async(db, supplier)
    await refresh_async(db, supplier)
    return supplier


async def update_supplier(db: AsyncSession, supplier: Supplier, data: SupplierUpdate) -> Supplier:
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(supplier, field, value)
    await flush_async(db, supplier)
    await refresh_async(db, supplier)
    return supplier


async def change_status(db: AsyncSession, supplier: Supplier, data: SupplierStatusUpdate) -> Supplier:
    supplier.estado = data.estado
    supplier.motivo_inactivacion = None if data.estado is SupplierStatus.activo else data.motivo
    await flush_async(db, supplier)
    await refresh_async(db, supplier)
    return supplier


async def delete_supplier(db: AsyncSession, supplier: Supplier) -> bool:
    """Baja lógica si tiene movimientos o productos asociados."""
    in_products = (
        await db.execute(select(Product.id).where(Product.proveedor_id == supplier.id).limit(1))
    ).first() is not None
    if in_products or await has_movements(db, Movement.proveedor_id, supplier.id):
        supplier.estado = SupplierStatus.inactivo
        supplier.motivo_inactivacion = DELETED_REASON
        supplier.fecha_eliminacion = datetime.now(timezone.utc)
        await flush_async(db, supplier)
        return True
    await db.delete(supplier)
    await flush_async(db)
    return False


async def list_suppliers_with_total(
    db: AsyncSession,
    *,
    search: str | None = None,
    estado: SupplierStatus | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Supplier], int]:
    filters = [Supplier.fecha_eliminacion.is_(None)]
    if search:
        like = f"%{search.strip()}%"
        filters.append(
            or_(
                Supplier.razon_social.ilike(like),
                Supplier.nombre_contacto.ilike(like),
                Supplier.rut.ilike(like),
            )
        )
    if estado is not None:
        filters.append(Supplier.estado == estado)

    total = (await db.execute(select(func.count(Supplier.id)).where(*filters))).scalar_one()
    stmt = select(Supplier).where(*filters).order_by(Supplier.razon_social).limit(limit).offset(offset)
    items = (await db.execute(stmt)).scalars().all()
    return list(items), int(total)
