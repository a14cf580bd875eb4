# app/schemas/customer.py
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.domain.enums import CustomerStatus
from app.domain.rut import is_valid_rut, normalize_rut


class CustomerBase(BaseModel):
    nombre: str = Field(min_length=2, max_length=100)
    apellido: str = Field(min_length=2, max_length=100)
    email: EmailStr
    telefono: str | None = Field(default=None, max_length=20)
    direccion: str | None = Field(default=None, max_length=255)
    comuna: str | None = Field(default=None, max_length=100)
    ciudad: str | None = Field(default=None, max_length=100)
    region: str | None = Field(default=None, max_length=100)
    departamento: str = Field(min_length=1, max_length=100)
    cargo: str | None = Field(default=None, max_length=100)


class CustomerCreate(CustomerBase):
    rut: str
    limite_mensual: int = Field(default=0, ge=0)

    @field_validator("rut")
    @classmethod
    def validate_rut(cls, value: str) -> str:
        if not is_valid_rut(value):
            raise ValueError("RUT inválido")
        return normalize_rut(value)


class CustomerUpdate(BaseModel):
    nombre: str | None = Field(default=None, min_length=2, max_length=100)
    apellido: str | None = Field(default=None, min_length=2, max_length=100)
    email: EmailStr | None = None
    telefono: str | None = Field(default=None, max_length=20)
    direccion: str | None = Field(default=None, max_length=255)
    comuna: str | None = Field(default=None, max_length=100)
    ciudad: str | None = Field(default=None, max_length=100)
    region: str | None = Field(default=None, max_length=100)
    departamento: str | None = Field(default=None, min_length=1, max_length=100)
    cargo: str | None = Field(default=None, max_length=100)


class CustomerStatusUpdate(BaseModel):
    estado: CustomerStatus
    motivo: str | None = Field(default=None, max_length=255)


class CustomerLimitUpdate(BaseModel):
    limite_mensual: int = Field(ge=0)


class LimitUpdateResult(BaseModel):
    limite_anterior: int
    limite_nuevo: int
    consumo_actual: Decimal


class CustomerConsumption(BaseModel):
    cliente_id: UUID
    limite_mensual: int
    consumo_actual: Decimal
    # None = sin límite
    disponible: Decimal | None = None


class CustomerRead(CustomerBase):
    id: UUID
    rut: str
    rut_formateado: str
    nombre_completo: str
    limite_mensual: int
    estado: CustomerStatus
    motivo_inactivacion: str | None = None
    fecha_creacion: datetime

    model_config = ConfigDict(from_attributes=True)


class DepartmentStatistics(BaseModel):
    departamento: str
    fecha_inicio: datetime
    fecha_fin: datetime
    total_clientes: int
    total_movimientos: int
    total_productos: int
    valor_total: Decimal
