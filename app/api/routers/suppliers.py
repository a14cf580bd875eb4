from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, Response, Security, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.db.operations import commit_async, rollback_async
from app.db.session_async import get_async_db
from app.domain.enums import ProductStatus, SupplierStatus
from app.models.user import User
from app.schemas.pagination import Page, page_of
from app.schemas.product import ProductRead
from app.schemas.supplier import SupplierCreate, SupplierRead, SupplierStatusUpdate, SupplierUpdate
from app.services import product_service, supplier_service

router = APIRouter(prefix="/proveedores", tags=["proveedores"])


@router.get("", response_model=Page[SupplierRead])
async def list_suppliers(
    search: str | None = Query(None, description="razón social, contacto o RUT"),
    estado: SupplierStatus | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["ver_proveedores"]),
):
    items, total = await supplier_service.list_suppliers_with_total(
        db, search=search, estado=estado, limit=limit, offset=offset
    )
    return page_of(items, total, limit, offset)


@router.get("/{supplier_id}", response_model=SupplierRead)
async def get_supplier(
    supplier_id: UUID = Path(..., description="UUID del proveedor"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["ver_proveedores"]),
):
    return await supplier_service.get_supplier(db, supplier_id)


@router.get("/{supplier_id}/productos", response_model=Page[ProductRead])
async def supplier_products(
    supplier_id: UUID = Path(..., description="UUID del proveedor"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["ver_proveedores", "ver_productos"]),
):
    await supplier_service.get_supplier(db, supplier_id)
    items, total = await product_service.list_products_with_total(
        db, proveedor_id=supplier_id, estado=ProductStatus.activo, limit=limit, offset=offset
    )
    return page_of(items, total, limit, offset)


@router.post("", response_model=SupplierRead, status_code=status.HTTP_201_CREATED)
async def create_supplier(
    payload: SupplierCreate,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["crear_proveedores"]),
):
    try:
        supplier = await supplier_service.create_supplier(db, payload)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return supplier


@router.put("/{supplier_id}", response_model=SupplierRead)
async def update_supplier(
    payload: SupplierUpdate,
    supplier_id: UUID = Path(..., description="UUID del proveedor"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["editar_proveedores"]),
):
    try:
        supplier = await supplier_service.get_supplier(db, supplier_id)
        supplier = await supplier_service.update_supplier(db, supplier, payload)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return supplier


@router.patch("/{supplier_id}/estado", response_model=SupplierRead)
async def change_supplier_status(
    payload: SupplierStatusUpdate,
    supplier_id: UUID = Path(..., description="UUID del proveedor"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["editar_proveedores"]),
):
    try:
        supplier = await supplier_service.get_supplier(db, supplier_id)
        supplier = await supplier_service.change_status(db, supplier, payload)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return supplier


@router.delete("/{supplier_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_supplier(
    supplier_id: UUID = Path(..., description="UUID del proveedor"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["eliminar_proveedores"]),
):
    try:
        supplier = await supplier_service.get_supplier(db, supplier_id)
        await supplier_service.delete_supplier(db, supplier)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return Response(status_code=status.HTTP_204_NO_CONTENT)
