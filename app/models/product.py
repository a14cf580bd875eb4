# app/models/product.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Enum as SqlEnum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base
from app.db.types import GUID
from app.domain.enums import ProductStatus
from app.models.user import _utcnow


class Product(Base):
    __tablename__ = "productos"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_productos_stock_no_negativo"),
        CheckConstraint("stock_minimo >= 0", name="ck_productos_stock_minimo_no_negativo"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    codigo: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    nombre: Mapped[str] = mapped_column(String(200), nullable=False)
    descripcion: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    categoria_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("categorias.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    proveedor_id: Mapped[uuid.UUID | None] = mapped_column(
        GUID(), ForeignKey("proveedores.id", ondelete="SET NULL"), nullable=True, index=True
    )

    precio_compra: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    precio_venta: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)

    # Sólo el ledger escribe stock
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    stock_minimo: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    ubicacion: Mapped[str | None] = mapped_column(String(100), nullable=True)

    estado: Mapped[ProductStatus] = mapped_column(
        SqlEnum(ProductStatus, name="producto_estado"), default=ProductStatus.activo, nullable=False
    )
    motivo_inactivacion: Mapped[str | None] = mapped_column(String(255), nullable=True)

    fecha_creacion: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    fecha_actualizacion: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )
    fecha_eliminacion: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def valor_inventario(self) -> Decimal:
        return Decimal(self.stock or 0) * Decimal(self.precio_compra or 0)

    @property
    def stock_bajo(self) -> bool:
        return (self.stock or 0) <= (self.stock_minimo or 0)
