from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.operations import flush_async, refresh_async
from app.domain.enums import ProductStatus
from app.domain.movements import DELETED_REASON
from app.models.category import Category
from app.models.movement import Movement
from app.models.product import Product
from app.models.supplier import Supplier
from app.schemas.product import ProductCreate, ProductStatusUpdate, ProductUpdate
from app.services.exceptions import ConflictError, ResourceNotFoundError
from app.services.movement_service import has_movements


async def get_product(db: AsyncSession, product_id: uuid.UUID) -> Product:
    product = await db.get(Product, product_id)
    if product is None or product.fecha_eliminacion is not None:
        raise ResourceNotFoundError("Producto no encontrado", producto_id=str(product_id))
    return product


async def _ensure_references(db: AsyncSession, categoria_id: uuid.UUID | None, proveedor_id: uuid.UUID | None) -> None:
    if categoria_id is not None:
        category = await db.get(Category, categoria_id)
        if category is None or category.fecha_eliminacion is not None:
            raise ResourceNotFoundError("Categoría no encontrada", categoria_id=str(categoria_id))
    if proveedor_id is not None:
        supplier = await db.get(Supplier, proveedor_id)
        if supplier is None or supplier.fecha_eliminacion is not None:
            raise ResourceNotFoundError("Proveedor no encontrado", proveedor_id=str(proveedor_id))


async def create_product(db: AsyncSession, data: ProductCreate) -> Product:
    """Crea el producto con stock 0; el stock inicial lo registra el ledger."""
    existing = await db.execute(select(Product.id).where(Product.codigo == data.codigo).limit(1))
    if existing.first() is not None:
        raise ConflictError("Ya existe un producto con ese código", codigo=data.codigo)
    await _ensure_references(db, data.categoria_id, data.proveedor_id)

    product = Product(**data.model_dump(exclude={"stock_inicial"}), stock=0)
    db.add(product)
    await flush_async(db, product)
    await refresh_async(db, product)
    return product


async def update_product(db: AsyncSession, product: Product, data: ProductUpdate) -> Product:
    changes = data.model_dump(exclude_unset=True)
    await _ensure_references(db, changes.get("categoria_id"), changes.get("proveedor_id"))
    for field, value in changes.items():
        setattr(product, field, value)
    await flush_async(db, product)
    await refresh_async(db, product)
    return product


async def change_status(db: AsyncSession, product: Product, data: ProductStatusUpdate) -> Product:
    product.estado = data.estado
    product.motivo_inactivacion = None if data.estado is ProductStatus.activo else data.motivo
    await flush_async(db, product)
    await refresh_async(db, product)
    return product


async def delete_product(db: AsyncSession, product: Product) -> bool:
    """Devuelve True si fue baja lógica (tiene movimientos)."""
    if await has_movements(db, Movement.producto_id, product.id):
        product.estado = ProductStatus.inactivo
        product.motivo_inactivacion = DELETED_REASON
        product.fecha_eliminacion = datetime.now(timezone.utc)
        await flush_async(db, product)
        return True
    await db.delete(product)
    await flush_async(db)
    return False


async def list_products_with_total(
    db: AsyncSession,
    *,
    search: str | None = None,
    categoria_id: uuid.UUID | None = None,
    proveedor_id: uuid.UUID | None = None,
    estado: ProductStatus | None = None,
    stock_bajo: bool | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Product], int]:
    filters = [Product.fecha_eliminacion.is_(None)]
    if search:
        like = f"%{search.strip()}%"
        filters.append(or_(Product.nombre.ilike(like), Product.codigo.ilike(like)))
    if categoria_id is not None:
        filters.append(Product.categoria_id == categoria_id)
    if proveedor_id is not None:
        filters.append(Product.proveedor_id == proveedor_id)
    if estado is not None:
        filters.append(Product.estado == estado)
    if stock_bajo is True:
        filters.append(Product.stock <= Product.stock_minimo)
    elif stock_bajo is False:
        filters.append(Product.stock > Product.stock_minimo)

    total = (await db.execute(select(func.count(Product.id)).where(*filters))).scalar_one()
    stmt = select(Product).where(*filters).order_by(Product.nombre).limit(limit).offset(offset)
    items = (await db.execute(stmt)).scalars().all()
    return list(items), int(total)
