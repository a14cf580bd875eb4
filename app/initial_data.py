# app/initial_data.py
from contextlib import asynccontextmanager

from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import get_logger
from app.db.session_async import AsyncSessionLocal
from app.domain.enums import UserRole
from app.models.user import User
from app.schemas.user import UserCreate
from app.services import user_service

logger = get_logger(__name__)

_ADMIN_LOCK_KEY = 731902114


@asynccontextmanager
async def _advisory_lock(session: AsyncSession):
    """Evita que dos workers creen el admin a la vez (sólo PostgreSQL)."""
    dialect = session.bind.dialect.name if session.bind else "unknown"
    got_lock = False
    try:
        if dialect == "postgresql":
            res = await session.execute(text("SELECT pg_try_advisory_lock(:k)"), {"k": _ADMIN_LOCK_KEY})
            got_lock = bool(res.scalar())
            if not got_lock:
                logger.info("Otro worker está inicializando el admin; se omite.")
                yield False
                return
        yield True
    finally:
        if got_lock:
            await session.execute(text("SELECT pg_advisory_unlock(:k)"), {"k": _ADMIN_LOCK_KEY})


async def create_initial_admin_user() -> User | None:
    """
    Crea el administrador inicial si hay credenciales configuradas y
    no existe ningún usuario con rol admin. Idempotente.
    """
    if not settings.INITIAL_ADMIN_EMAIL or not settings.INITIAL_ADMIN_PASSWORD:
        logger.info("Admin inicial omitido: faltan INITIAL_ADMIN_EMAIL o INITIAL_ADMIN_PASSWORD.")
        return None

    async with AsyncSessionLocal() as session:
        async with _advisory_lock(session) as proceed:
            if proceed is False:
                return None

            stmt = select(func.count()).select_from(User).where(
                User.rol == UserRole.admin,
                User.fecha_eliminacion.is_(None),
            )
            if ((await session.execute(stmt)).scalar() or 0) > 0:
                logger.info("Ya existe un administrador; no se crea otro.")
                return None

            existing = await user_service.get_by_email(session, str(settings.INITIAL_ADMIN_EMAIL))
            if existing:
                existing.rol = UserRole.admin
                existing.activo = True
                await session.commit()
                logger.warning(
                    "Usuario inicial existente promovido a administrador.",
                    extra={"user_id": str(existing.id), "email": existing.email},
                )
                return existing

            user = await user_service.create_user(
                session,
                UserCreate(
                    nombre="Administrador",
                    apellido="Sistema",
                    email=str(settings.INITIAL_ADMIN_EMAIL),
                    password=settings.INITIAL_ADMIN_PASSWORD,
                    rol=UserRole.admin,
                ),
            )
            await session.commit()
            logger.info("Administrador inicial creado.", extra={"user_id": str(user.id), "email": user.email})
            return user
