from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import get_password_hash, verify_password
from app.db.operations import flush_async, refresh_async
from app.domain.enums import Theme, UserRole
from app.domain.movements import DELETED_REASON
from app.models.movement import Movement
from app.models.user import User
from app.schemas.user import UserCreate, UserStatusUpdate, UserUpdate
from app.services.exceptions import ConflictError, DomainValidationError, ResourceNotFoundError
from app.services.movement_service import has_movements


def _normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_by_email(db: AsyncSession, email: str) -> User | None:
    stmt = select(User).where(User.email == _normalize_email(email)).limit(1)
    result = await db.execute(stmt)
    return result.scalars().first()


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await db.get(User, user_id)
    if user is None or user.fecha_eliminacion is not None:
        raise ResourceNotFoundError("Usuario no encontrado", usuario_id=str(user_id))
    return user


async def create_user(db: AsyncSession, data: UserCreate) -> User:
    if await get_by_email(db, data.email) is not None:
        raise ConflictError("Ya existe un usuario con ese email", email=data.email)

    user = User(
        nombre=data.nombre,
        apellido=data.apellido,
        email=_normalize_email(data.email),
        hashed_password=get_password_hash(data.password),
        rol=data.rol,
        activo=True,
    )
    db.add(user)
    await flush_async(db, user)
    await refresh_async(db, user)
    return user


async def authenticate(db: AsyncSession, email: str, password: str) -> User | None:
    user = await get_by_email(db, email)
    if not user or not user.hashed_password:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


async def register_login(db: AsyncSession, user: User) -> User:
    user.ultimo_login = datetime.now(timezone.utc)
    await flush_async(db, user)
    return user


async def update_user(db: AsyncSession, user: User, changes: UserUpdate, actor: User | None = None) -> User:
    data = changes.model_dump(exclude_unset=True)
    if actor is not None and user.id == actor.id and data.get("rol", UserRole.admin) is not UserRole.admin:
        raise DomainValidationError("No puede cambiar su propio rol")
    if "email" in data and data["email"] is not None:
        data["email"] = _normalize_email(data["email"])
        other = await get_by_email(db, data["email"])
        if other is not None and other.id != user.id:
            raise ConflictError("Ya existe un usuario con ese email", email=data["email"])
    for field, value in data.items():
        setattr(user, field, value)
    await flush_async(db, user)
    await refresh_async(db, user)
    return user


async def change_status(db: AsyncSession, user: User, data: UserStatusUpdate, actor: User) -> User:
    if user.id == actor.id and not data.activo:
        raise DomainValidationError("No puede desactivar su propia cuenta")
    user.activo = data.activo
    user.motivo_inactivacion = None if data.activo else data.motivo
    await flush_async(db, user)
    await refresh_async(db, user)
    return user


async def change_role(db: AsyncSession, user: User, rol: UserRole, actor: User) -> User:
    # un administrador no puede quitarse a sí mismo el rol
    if user.id == actor.id and rol is not UserRole.admin:
        raise DomainValidationError("No puede cambiar su propio rol")
    user.rol = rol
    await flush_async(db, user)
    await refresh_async(db, user)
    return user


async def change_password(db: AsyncSession, user: User, current: str, new: str) -> User:
    if not verify_password(current, user.hashed_password):
        raise DomainValidationError("La contraseña actual es incorrecta")
    if current == new:
        raise DomainValidationError("La nueva contraseña debe ser distinta de la actual")
    user.hashed_password = get_password_hash(new)
    await flush_async(db, user)
    return user


async def set_theme(db: AsyncSession, user: User, theme: Theme) -> User:
    user.tema_preferido = theme
    await flush_async(db, user)
    await refresh_async(db, user)
    return user


async def delete_user(db: AsyncSession, user: User, actor: User) -> bool:
    """Baja lógica si registró movimientos; si no, se borra."""
    if user.id == actor.id:
        raise DomainValidationError("No puede eliminar su propia cuenta")
    if await has_movements(db, Movement.usuario_id, user.id):
        user.activo = False
        user.motivo_inactivacion = DELETED_REASON
        user.fecha_eliminacion = datetime.now(timezone.utc)
        await flush_async(db, user)
        return True
    await db.delete(user)
    await flush_async(db)
    return False


async def list_users_with_total(
    db: AsyncSession,
    *,
    search: str | None = None,
    rol: UserRole | None = None,
    activo: bool | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[User], int]:
    filters = [User.fecha_eliminacion.is_(None)]
    if search:
        like = f"%{search.strip()}%"
        filters.append(or_(User.nombre.ilike(like), User.apellido.ilike(like), User.email.ilike(like)))
    if rol is not None:
        filters.append(User.rol == rol)
    if activo is not None:
        filters.append(User.activo.is_(activo))

    total = (await db.execute(select(func.count(User.id)).where(*filters))).scalar_one()
    stmt = select(User).where(*filters).order_by(User.apellido, User.nombre).limit(limit).offset(offset)
    items = (await db.execute(stmt)).scalars().all()
    return list(items), int(total)
