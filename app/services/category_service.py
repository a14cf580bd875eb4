from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.operations import flush_async, refresh_async
from app.domain.enums import CategoryStatus
from app.models.category import Category
from app.models.product import Product
from app.schemas.category import CategoryCreate, CategoryOrderItem, CategoryUpdate
from app.services.exceptions import ConflictError, ResourceNotFoundError


# ---------------- Utils ----------------
async def _name_exists(db: AsyncSession, nombre: str, exclude_id: uuid.UUID | None = None) -> bool:
    stmt = select(Category.id).where(func.lower(Category.nombre) == nombre.strip().lower())
    if exclude_id is not None:
        stmt = stmt.where(Category.id != exclude_id)
    result = await db.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None


async def _next_order(db: AsyncSession) -> int:
    current = (await db.execute(select(func.max(Category.orden)))).scalar_one_or_none()
    return (current or 0) + 1


# ---------------- Lectura ----------------
async def list_categories(db: AsyncSession, estado: CategoryStatus | None = None) -> Sequence[Category]:
    stmt = select(Category).where(Category.fecha_eliminacion.is_(None))
    if estado is not None:
        stmt = stmt.where(Category.estado == estado)
    result = await db.execute(stmt.order_by(Category.orden, Category.nombre))
    return result.scalars().all()


async def get_category(db: AsyncSession, category_id: uuid.UUID) -> Category:
    category = await db.get(Category, category_id)
    if category is None or category.fecha_eliminacion is not None:
        raise ResourceNotFoundError("Categoría no encontrada", categoria_id=str(category_id))
    return category


# ---------------- CRUD ----------------
async def create_category(db: AsyncSession, payload: CategoryCreate) -> Category:
    if await _name_exists(db, payload.nombre):
        raise ConflictError("Ya existe una categoría con ese nombre", nombre=payload.nombre)

    data = payload.model_dump()
    if data.get("orden") is None:
        data["orden"] = await _next_order(db)
    category = Category(**data)
    db.add(category)
    await flush_async(db, category)
    await refresh_async(db, category)
    return category


async def update_category(db: AsyncSession, category: Category, payload: CategoryUpdate) -> Category:
    changes = payload.model_dump(exclude_unset=True)
    if "nombre" in changes and await _name_exists(db, changes["nombre"], exclude_id=category.id):
        raise ConflictError("Ya existe una categoría con ese nombre", nombre=changes["nombre"])

    for field, value in changes.items():
        setattr(category, field, value)
    await flush_async(db, category)
    await refresh_async(db, category)
    return category


async def delete_category(db: AsyncSession, category: Category) -> bool:
    """Baja lógica si hay productos en la categoría; si no, se borra."""
    in_use = (
        await db.execute(select(Product.id).where(Product.categoria_id == category.id).limit(1))
    ).first() is not None
    if in_use:
        category.estado = CategoryStatus.inactiva
        category.fecha_eliminacion = datetime.now(timezone.utc)
        await flush_async(db, category)
        return True
    await db.delete(category)
    await flush_async(db)
    return False


async def change_status(db: AsyncSession, category: Category, estado: CategoryStatus) -> Category:
    category.estado = estado
    await flush_async(db, category)
    await refresh_async(db, category)
    return category


async def reorder_categories(db: AsyncSession, items: Sequence[CategoryOrderItem]) -> Sequence[Category]:
    """Aplica los ``orden`` recibidos; falla entera si alguna categoría no existe."""
    for item in items:
        category = await get_category(db, item.id)
        category.orden = item.orden
    await flush_async(db)
    return await list_categories(db)
