from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, Response, Security, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_ledger
from app.core.logging import get_logger
from app.db.operations import commit_async, rollback_async
from app.db.session_async import get_async_db
from app.domain.enums import MovementKind, MovementStatus, ProductStatus
from app.models.user import User
from app.schemas.movement import MovementRead
from app.schemas.pagination import Page, page_of
from app.schemas.product import ProductCreate, ProductRead, ProductStatusUpdate, ProductUpdate
from app.services import movement_service, product_service
from app.services.ledger_service import InventoryLedger

router = APIRouter(prefix="/productos", tags=["productos"])

logger = get_logger("app.products")


@router.get("", response_model=Page[ProductRead])
async def list_products(
    search: str | None = Query(None, description="nombre o código"),
    categoria_id: UUID | None = Query(None),
    proveedor_id: UUID | None = Query(None),
    estado: ProductStatus | None = Query(None),
    stock_bajo: bool | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["ver_productos"]),
):
    items, total = await product_service.list_products_with_total(
        db,
        search=search,
        categoria_id=categoria_id,
        proveedor_id=proveedor_id,
        estado=estado,
        stock_bajo=stock_bajo,
        limit=limit,
        offset=offset,
    )
    return page_of(items, total, limit, offset)


@router.get("/stock-bajo", response_model=Page[ProductRead])
async def list_low_stock(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["ver_productos"]),
):
    items, total = await product_service.list_products_with_total(
        db, estado=ProductStatus.activo, stock_bajo=True, limit=limit, offset=offset
    )
    return page_of(items, total, limit, offset)


@router.get("/{product_id}", response_model=ProductRead)
async def get_product(
    product_id: UUID = Path(..., description="UUID del producto"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["ver_productos"]),
):
    return await product_service.get_product(db, product_id)


@router.get("/{product_id}/movimientos", response_model=Page[MovementRead])
async def product_movements(
    product_id: UUID = Path(..., description="UUID del producto"),
    tipo: MovementKind | None = Query(None),
    estado: MovementStatus | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["ver_productos", "ver_movimientos"]),
):
    await product_service.get_product(db, product_id)
    items, total = await movement_service.list_movements_with_total(
        db, producto_id=product_id, tipo=tipo, estado=estado, limit=limit, offset=offset
    )
    return page_of(items, total, limit, offset)


@router.post("", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    db: AsyncSession = Depends(get_async_db),
    ledger: InventoryLedger = Depends(get_ledger),
    current_user: User = Security(get_current_user, scopes=["crear_productos"]),
):
    try:
        product = await product_service.create_product(db, payload)
        if payload.stock_inicial > 0:
            await ledger.stage_initial_stock(product, payload.stock_inicial, current_user)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    logger.info(
        "Producto creado",
        extra={"producto_id": str(product.id), "codigo": product.codigo, "stock_inicial": payload.stock_inicial},
    )
    ledger.notify_stock_level(product)
    return product


@router.put("/{product_id}", response_model=ProductRead)
async def update_product(
    payload: ProductUpdate,
    product_id: UUID = Path(..., description="UUID del producto"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["editar_productos"]),
):
    try:
        product = await product_service.get_product(db, product_id)
        product = await product_service.update_product(db, product, payload)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return product


@router.patch("/{product_id}/estado", response_model=ProductRead)
async def change_product_status(
    payload: ProductStatusUpdate,
    product_id: UUID = Path(..., description="UUID del producto"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["editar_productos"]),
):
    try:
        product = await product_service.get_product(db, product_id)
        product = await product_service.change_status(db, product, payload)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    logger.info("Estado de producto actualizado", extra={"producto_id": str(product.id), "estado": product.estado.value})
    return product


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: UUID = Path(..., description="UUID del producto"),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["eliminar_productos"]),
):
    try:
        product = await product_service.get_product(db, product_id)
        soft = await product_service.delete_product(db, product)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    logger.info("Producto eliminado", extra={"producto_id": str(product_id), "baja_logica": soft})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
