from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, Security, status
from fastapi.security import OAuth2PasswordRequestForm
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.core.config import settings
from app.core.logging import get_logger, security_alert
from app.core.metrics import record_login_attempt
from app.core.rate_limiter import rate_limit
from app.core.security import create_access_token, create_refresh_token, decode_refresh_token
from app.db.operations import commit_async, rollback_async
from app.db.session_async import get_async_db
from app.domain.permissions import scopes_for
from app.middleware.observability import client_ip
from app.models.user import User
from app.schemas.auth import RefreshRequest, TokenPair, TokenRefresh
from app.schemas.user import PasswordChange, ThemeUpdate, UserRead
from app.services import user_service
from app.services.email_service import send_password_changed_email

router = APIRouter(prefix="/auth", tags=["auth"])

auth_logger = get_logger("app.auth")

_login_limit = rate_limit(
    settings.RATE_LIMIT_LOGIN_PER_MINUTE,
    settings.RATE_LIMIT_LOGIN_WINDOW_SECONDS,
    scope="login",
)


@router.post("/login", response_model=TokenPair, dependencies=[Depends(_login_limit)])
async def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_async_db),
):
    user = await user_service.authenticate(db, form_data.username, form_data.password)
    if not user or user.fecha_eliminacion is not None:
        record_login_attempt("failure")
        security_alert(
            "Intento de login fallido",
            email=form_data.username,
            client_ip=client_ip(request),
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email o contraseña incorrectos",
        )
    if not user.activo:
        record_login_attempt("inactive")
        security_alert("Login de usuario inactivo", email=user.email, client_ip=client_ip(request))
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Usuario inactivo")

    record_login_attempt("success")
    user_scopes = scopes_for(user.rol)
    access = create_access_token(subject=user.id, extra={"scopes": user_scopes, "rol": user.rol.value})
    refresh = create_refresh_token(subject=user.id, extra={"scopes": user_scopes})

    await user_service.register_login(db, user)
    await commit_async(db)

    auth_logger.info(
        "Usuario autenticado",
        extra={
            "user_id": str(user.id),
            "email": user.email,
            "rol": user.rol.value,
            "client_ip": client_ip(request),
        },
    )

    return {
        "access_token": access,
        "refresh_token": refresh,
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        "user": UserRead.model_validate(user),
    }


@router.post("/refresh", response_model=TokenRefresh)
async def refresh_token(payload: RefreshRequest, db: AsyncSession = Depends(get_async_db)):
    try:
        data = decode_refresh_token(payload.refresh_token)
        user_id = data["sub"]
    except (JWTError, KeyError) as exc:
        security_alert("Refresh token inválido", reason=str(exc))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token inválido",
        ) from exc

    # el rol pudo cambiar desde el login: los scopes se recalculan
    user_uuid = _parse_uuid(user_id)
    user = await db.get(User, user_uuid) if user_uuid else None
    if user is None or user.fecha_eliminacion is not None or not user.activo:
        security_alert("Refresh de usuario inexistente o inactivo", user_id=str(user_id))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Refresh token inválido")

    new_access = create_access_token(
        subject=user.id,
        extra={"scopes": scopes_for(user.rol), "rol": user.rol.value},
    )
    return {
        "access_token": new_access,
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    }


def _parse_uuid(value) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


@router.get("/perfil", response_model=UserRead)
async def profile(current_user: User = Security(get_current_user, scopes=["users:me"])):
    return current_user


@router.post("/cambiar-password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(
    payload: PasswordChange,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["users:me"]),
):
    try:
        await user_service.change_password(db, current_user, payload.password_actual, payload.password_nueva)
        await commit_async(db)
    except Exception:
        await rollback_async(db)
        raise
    auth_logger.info("Contraseña actualizada", extra={"user_id": str(current_user.id)})
    send_password_changed_email(current_user.email, current_user.nombre)


@router.patch("/tema", response_model=UserRead)
async def update_theme(
    payload: ThemeUpdate,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Security(get_current_user, scopes=["users:me"]),
):
    user = await user_service.set_theme(db, current_user, payload.tema)
    await commit_async(db)
    return user
