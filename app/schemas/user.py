# app/schemas/user.py
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.domain.enums import Theme, UserRole


class UserBase(BaseModel):
    nombre: str = Field(min_length=2, max_length=100)
    apellido: str = Field(min_length=2, max_length=100)
    email: EmailStr


class UserCreate(UserBase):
    password: str = Field(min_length=8)
    rol: UserRole = UserRole.usuario


class UserUpdate(BaseModel):
    nombre: str | None = Field(default=None, min_length=2, max_length=100)
    apellido: str | None = Field(default=None, min_length=2, max_length=100)
    email: EmailStr | None = None
    rol: UserRole | None = None


class UserStatusUpdate(BaseModel):
    activo: bool
    motivo: str | None = Field(default=None, max_length=255)


class UserRoleUpdate(BaseModel):
    rol: UserRole


class PasswordChange(BaseModel):
    password_actual: str
    password_nueva: str = Field(min_length=8)


class ThemeUpdate(BaseModel):
    tema: Theme


class UserRead(UserBase):
    id: UUID
    nombre_completo: str
    rol: UserRole
    activo: bool
    tema_preferido: Theme
    permisos: list[str]
    ultimo_login: datetime | None = None
    fecha_creacion: datetime

    model_config = ConfigDict(from_attributes=True)


class TokenPayload(BaseModel):
    sub: str | None = None
    exp: Optional[int] = None
    iat: Optional[int] = None
    jti: Optional[str] = None
    type: Optional[str] = None
    scopes: Optional[List[str]] = None

    model_config = ConfigDict(extra="allow")
