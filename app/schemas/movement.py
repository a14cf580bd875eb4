# app/schemas/movement.py
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.domain.enums import MovementKind, MovementStatus


class MovementCreate(BaseModel):
    tipo: MovementKind
    producto_id: UUID
    cliente_id: UUID | None = None
    proveedor_id: UUID | None = None
    cantidad: int = Field(ge=1)
    precio_unitario: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    numero_documento: str | None = Field(default=None, max_length=50)
    motivo: str | None = Field(default=None, max_length=200)

    @field_validator("numero_documento", "motivo", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value.strip() if isinstance(value, str) else value


class MovementVoid(BaseModel):
    motivo: str = Field(min_length=1, max_length=200)

    @field_validator("motivo")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("El motivo de anulación es requerido")
        return value.strip()


class MovementRead(BaseModel):
    id: UUID
    tipo: MovementKind
    producto_id: UUID
    usuario_id: UUID
    cliente_id: UUID | None = None
    proveedor_id: UUID | None = None
    cantidad: int
    precio_unitario: Decimal
    total: Decimal
    numero_documento: str
    stock_anterior: int
    stock_nuevo: int
    estado: MovementStatus
    motivo: str | None = None
    motivo_anulacion: str | None = None
    movimiento_original_id: UUID | None = None
    archivo_adjunto: str | None = None
    fecha_creacion: datetime
    es_anulable: bool

    model_config = ConfigDict(from_attributes=True)


class VoidResponse(BaseModel):
    movimiento_anulado: MovementRead
    movimiento_compensacion: MovementRead


class KindStatistics(BaseModel):
    movimientos: int = 0
    productos: int = 0
    valor: Decimal = Decimal("0")


class MovementStatistics(BaseModel):
    fecha_inicio: datetime
    fecha_fin: datetime
    estadisticas: dict[MovementKind, KindStatistics]


class DailyReport(MovementStatistics):
    total_movimientos: int
    valor_total: Decimal
    correos_encolados: int = 0
