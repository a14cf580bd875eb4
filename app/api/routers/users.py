from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_admin
from app.core.logging import get_logger
from app.db.operations import commit_async, rollback_async
from app.db.session_async import get_async_db
from app.domain.enums import UserRole
from app.models.user import User
from app.schemas.pagination import Page, page_of
from app.schemas.user import UserCreate, UserRead, UserRoleUpdate, UserStatusUpdate, UserUpdate
from app.services import user_service

router = APIRouter(prefix="/usuarios", tags=["usuarios"])

logger = get_logger("app.users")


@router.get("", response_model=Page[UserRead])
async def list_users(
    search: str | None = Query(None, description="nombre, apellido o email"),
    rol: UserRole | None = Query(None),
    activo: bool | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_db),
    admin: User = Depends(get_current_admin),
):
    items, total = await user_service.list_users_with_total(
        db, search=search, rol=rol, activo=activo, limit=limit, offset=offset
    )
    return page_of(items, total, limit, offset)


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_async_db),
    admin: User = Depends(get_current_admin),
):
    try:
        user = await user_service.create_user(db, payload)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    logger.info("Usuario creado", extra={"user_id": str(user.id), "rol": user.rol.value, "admin_id": str(admin.id)})
    return user


@router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: UUID = Path(..., description="UUID del usuario"),
    db: AsyncSession = Depends(get_async_db),
    admin: User = Depends(get_current_admin),
):
    return await user_service.get_user(db, user_id)


@router.put("/{user_id}", response_model=UserRead)
async def update_user(
    payload: UserUpdate,
    user_id: UUID = Path(..., description="UUID del usuario"),
    db: AsyncSession = Depends(get_async_db),
    admin: User = Depends(get_current_admin),
):
    try:
        user = await user_service.get_user(db, user_id)
        user = await user_service.update_user(db, user, payload, admin)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    return user


@router.patch("/{user_id}/rol", response_model=UserRead)
async def change_user_role(
    payload: UserRoleUpdate,
    user_id: UUID = Path(..., description="UUID del usuario"),
    db: AsyncSession = Depends(get_async_db),
    admin: User = Depends(get_current_admin),
):
    try:
        user = await user_service.get_user(db, user_id)
        user = await user_service.change_role(db, user, payload.rol, admin)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    logger.info("Rol de usuario actualizado", extra={"user_id": str(user.id), "rol": user.rol.value, "admin_id": str(admin.id)})
    return user


@router.patch("/{user_id}/estado", response_model=UserRead)
async def change_user_status(
    payload: UserStatusUpdate,
    user_id: UUID = Path(..., description="UUID del usuario"),
    db: AsyncSession = Depends(get_async_db),
    admin: User = Depends(get_current_admin),
):
    try:
        user = await user_service.get_user(db, user_id)
        user = await user_service.change_status(db, user, payload, admin)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    logger.info("Estado de usuario actualizado", extra={"user_id": str(user.id), "activo": user.activo})
    return user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: UUID = Path(..., description="UUID del usuario"),
    db: AsyncSession = Depends(get_async_db),
    admin: User = Depends(get_current_admin),
):
    try:
        user = await user_service.get_user(db, user_id)
        soft = await user_service.delete_user(db, user, admin)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    logger.info("Usuario eliminado", extra={"user_id": str(user_id), "baja_logica": soft})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
