# app/api/deps.py
import uuid

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import OAuth2PasswordBearer, SecurityScopes
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import security_alert
from app.core.security import decode_access_token
from app.db.session_async import get_async_db
from app.domain.permissions import ROLE_PERMISSIONS
from app.models.user import User
from app.schemas.user import TokenPayload
from app.services.compensation_service import CompensationEngine
from app.services.ledger_service import InventoryLedger
from app.services.limit_guard import LimitGuard
from app.services.notification_service import Notifier


def _scope_descriptions() -> dict[str, str]:
    scopes = {
        "admin": "Acceso total de administrador.",
        "users:me": "Acceso al perfil del propio usuario.",
    }
    for permissions in ROLE_PERMISSIONS.values():
        for permission in permissions:
            scopes.setdefault(permission, f"Permiso {permission.replace('_', ' ')}.")
    return scopes


OAUTH_SCOPES = _scope_descriptions()


oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/auth/login",
    scopes=OAUTH_SCOPES,
)


def _decode_token(token: str) -> tuple[TokenPayload, list[str]]:
    payload = decode_access_token(token)
    token_data = TokenPayload(**payload)
    token_scopes: list[str] = payload.get("scopes", []) or []
    return token_data, token_scopes


async def _get_user_by_id(db: AsyncSession, user_id: str | None) -> User | None:
    if not user_id:
        return None
    try:
        key = uuid.UUID(str(user_id))
    except ValueError:
        return None
    return await db.get(User, key)


async def get_current_user(
    security_scopes: SecurityScopes,
    db: AsyncSession = Depends(get_async_db),
    token: str = Depends(oauth2_scheme),
) -> User:
    cred_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="No se pudieron validar las credenciales",
        headers={"WWW-Authenticate": f'Bearer scope="{security_scopes.scope_str}"'},
    )

    try:
        token_data, token_scopes = _decode_token(token)
    except JWTError:
        raise cred_exc

    if token_data.sub is None:
        raise cred_exc

    user = await _get_user_by_id(db, token_data.sub)
    if user is None or user.fecha_eliminacion is not None:
        raise cred_exc
    if not user.activo:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Usuario inactivo")

    if security_scopes.scopes and "admin" not in token_scopes:
        missing = [scope for scope in security_scopes.scopes if scope not in token_scopes]
        if missing:
            security_alert("Acceso denegado por permisos", user_id=str(user.id), rol=user.rol.value, faltantes=missing)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Permisos insuficientes",
                headers={"WWW-Authenticate": f'Bearer scope="{security_scopes.scope_str}"'},
            )
    return user


def get_current_admin(
    current_user: User = Security(get_current_user, scopes=["admin"])
) -> User:
    return current_user


# ---------- servicios de dominio ----------

def get_notifier() -> Notifier:
    return Notifier()


def get_limit_guard(
    db: AsyncSession = Depends(get_async_db),
    notifier: Notifier = Depends(get_notifier),
) -> LimitGuard:
    return LimitGuard(db, notifier)


def get_ledger(
    db: AsyncSession = Depends(get_async_db),
    notifier: Notifier = Depends(get_notifier),
    limit_guard: LimitGuard = Depends(get_limit_guard),
) -> InventoryLedger:
    return InventoryLedger(db, notifier, limit_guard)


def get_compensation_engine(
    db: AsyncSession = Depends(get_async_db),
    notifier: Notifier = Depends(get_notifier),
    ledger: InventoryLedger = Depends(get_ledger),
) -> CompensationEngine:
    return CompensationEngine(db, ledger, notifier)
