# app/schemas/supplier.py
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.domain.enums import SupplierStatus
from app.domain.rut import is_valid_rut, normalize_rut


class SupplierBase(BaseModel):
    razon_social: str = Field(min_length=2, max_length=200)
    nombre_contacto: str | None = Field(default=None, max_length=100)
    email: EmailStr
    telefono: str | None = Field(default=None, max_length=20)
    direccion: str | None = Field(default=None, max_length=255)
    comuna: str | None = Field(default=None, max_length=100)
    ciudad: str | None = Field(default=None, max_length=100)
    region: str | None = Field(default=None, max_length=100)
    sitio_web: str | None = Field(default=None, max_length=255)
    condiciones_pago: str | None = Field(default=None, max_length=100)


class SupplierCreate(SupplierBase):
    rut: str

    @field_validator("rut")
    @classmethod
    def validate_rut(cls, value: str) -> str:
        if not is_valid_rut(value):
            raise ValueError("RUT inválido")
        return normalize_rut(value)


class SupplierUpdate(BaseModel):
    razon_social: str | None = Field(default=None, min_length=2, max_length=200)
    nombre_contacto: str | None = Field(default=None, max_length=100)
    email: EmailStr | None = None
    telefono: str | None = Field(default=None, max_length=20)
    direccion: str | None = Field(default=None, max_length=255)
    comuna: str | None = Field(default=None, max_length=100)
    ciudad: str | None = Field(default=None, max_length=100)
    region: str | None = Field(default=None, max_length=100)
    sitio_web: str | None = Field(default=None, max_length=255)
    condiciones_pago: str | None = Field(default=None, max_length=100)


class SupplierStatusUpdate(BaseModel):
    estado: SupplierStatus
    motivo: str | None = Field(default=None, max_length=255)


class SupplierRead(SupplierBase):
    id: UUID
    rut: str
    rut_formateado: str
    estado: SupplierStatus
    motivo_inactivacion: str | None = None
    fecha_creacion: datetime

    model_config = ConfigDict(from_attributes=True)
