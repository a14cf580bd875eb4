from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, Response, Security, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.db.operations import commit_async, rollback_async
from app.db.session_async import get_async_db
from app.domain.enums import CategoryStatus, ProductStatus
from app.models.user import User
from app.schemas.category import (
    CategoryCreate,
    CategoryOrderUpdate,
    CategoryRead,
    CategoryStatusUpdate,
    CategoryUpdate,
)
from app.schemas.pagination import Page, page_of
from app.schemas.product import ProductRead
from app.services import category_service, product_service

router = APIRouter(prefix="/categorias", tags=["categorias"])


@router.get("", response_model=List[CategoryRead])
async def list_categories(
    estado: CategoryStatus | None = Query(None),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["ver_categorias"]),
):
    return await category_service.list_categories(db, estado)


@router.patch("/orden", response_model=List[CategoryRead])
async def reorder_categories(
    payload: CategoryOrderUpdate,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["editar_categorias"]),
):
    try:
        categories = await category_service.reorder_categories(db, payload.ordenes)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return categories


@router.get("/{category_id}", response_model=CategoryRead)
async def get_category(
    category_id: UUID = Path(..., description="UUID de la categoría"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["ver_categorias"]),
):
    return await category_service.get_category(db, category_id)


@router.get("/{category_id}/productos", response_model=Page[ProductRead])
async def category_products(
    category_id: UUID = Path(..., description="UUID de la categoría"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["ver_categorias", "ver_productos"]),
):
    await category_service.get_category(db, category_id)
    items, total = await product_service.list_products_with_total(
        db, categoria_id=category_id, estado=ProductStatus.activo, limit=limit, offset=offset
    )
    return page_of(items, total, limit, offset)


@router.get("/{category_id}/productos-stock-bajo", response_model=Page[ProductRead])
async def category_low_stock(
    category_id: UUID = Path(..., description="UUID de la categoría"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["ver_categorias", "ver_productos"]),
):
    await category_service.get_category(db, category_id)
    items, total = await product_service.list_products_with_total(
        db, categoria_id=category_id, estado=ProductStatus.activo, stock_bajo=True, limit=limit, offset=offset
    )
    return page_of(items, total, limit, offset)


@router.post("", response_model=CategoryRead, status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreate,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["crear_categorias"]),
):
    try:
        category = await category_service.create_category(db, payload)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return category


@router.put("/{category_id}", response_model=CategoryRead)
async def update_category(
    payload: CategoryUpdate,
    category_id: UUID = Path(..., description="UUID de la categoría"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["editar_categorias"]),
):
    try:
        category = await category_service.get_category(db, category_id)
        category = await category_service.update_category(db, category, payload)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return category


@router.patch("/{category_id}/estado", response_model=CategoryRead)
async def change_category_status(
    payload: CategoryStatusUpdate,
    category_id: UUID = Path(..., description="UUID de la categoría"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["editar_categorias"]),
):
    try:
        category = await category_service.get_category(db, category_id)
        category = await category_service.change_status(db, category, payload.estado)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return category


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: UUID = Path(..., description="UUID de la categoría"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["eliminar_categorias"]),
):
    try:
        category = await category_service.get_category(db, category_id)
        await category_service.delete_category(db, category)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return Response(status_code=status.HTTP_204_NO_CONTENT)
