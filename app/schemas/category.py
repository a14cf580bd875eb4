from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.domain.enums import CategoryStatus

_COLOR = r"^#[0-9A-Fa-f]{6}$"


class CategoryBase(BaseModel):
    nombre: str = Field(min_length=2, max_length=100)
    descripcion: str | None = Field(default=None, max_length=500)
    color: str = Field(default="#000000", pattern=_COLOR)


class CategoryCreate(CategoryBase):
    # sin valor se asigna el siguiente
    orden: int | None = Field(default=None, ge=0)


class CategoryUpdate(BaseModel):
    nombre: str | None = Field(default=None, min_length=2, max_length=100)
    descripcion: str | None = Field(default=None, max_length=500)
    color: str | None = Field(default=None, pattern=_COLOR)
    orden: int | None = Field(default=None, ge=0)
    estado: CategoryStatus | None = None


class CategoryRead(CategoryBase):
    id: UUID
    orden: int
    estado: CategoryStatus

    model_config = ConfigDict(from_attributes=True)


class CategoryStatusUpdate(BaseModel):
    estado: CategoryStatus


class CategoryOrderItem(BaseModel):
    id: UUID
    orden: int = Field(ge=0)


class CategoryOrderUpdate(BaseModel):
    ordenes: list[CategoryOrderItem] = Field(min_length=1)
