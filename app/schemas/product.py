# app/schemas/product.py
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.domain.enums import ProductStatus


class ProductBase(BaseModel):
    codigo: str = Field(min_length=1, max_length=50)
    nombre: str = Field(min_length=2, max_length=200)
    descripcion: str | None = Field(default=None, max_length=1000)
    categoria_id: UUID
    proveedor_id: UUID | None = None
    precio_compra: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    precio_venta: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    stock_minimo: int = Field(default=0, ge=0)
    ubicacion: str | None = Field(default=None, max_length=100)


class ProductCreate(ProductBase):
    # se registra como ajuste inicial en el ledger
    stock_inicial: int = Field(default=0, ge=0)


class ProductUpdate(BaseModel):
    nombre: str | None = Field(default=None, min_length=2, max_length=200)
    descripcion: str | None = Field(default=None, max_length=1000)
    categoria_id: UUID | None = None
    proveedor_id: UUID | None = None
    precio_compra: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    precio_venta: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    stock_minimo: int | None = Field(default=None, ge=0)
    ubicacion: str | None = Field(default=None, max_length=100)


class ProductStatusUpdate(BaseModel):
    estado: ProductStatus
    motivo: str | None = Field(default=None, max_length=255)


class ProductRead(ProductBase):
    id: UUID
    stock: int
    estado: ProductStatus
    motivo_inactivacion: str | None = None
    valor_inventario: Decimal
    stock_bajo: bool
    fecha_creacion: datetime
    fecha_actualizacion: datetime

    model_config = ConfigDict(from_attributes=True)
