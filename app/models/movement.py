# app/models/movement.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.core.config import settings
from app.db.session import Base
from app.db.types import GUID
from app.domain.enums import MovementKind, MovementStatus
from app.domain.movements import is_voidable
from app.models.user import _utcnow


class Movement(Base):
    """Movimiento de stock. Nunca se borra: se anula con un movimiento de compensación."""

    __tablename__ = "movimientos"
    __table_args__ = (
        Index("ix_movimientos_producto_fecha", "producto_id", "fecha_creacion"),
        Index("ix_movimientos_cliente_tipo_fecha", "cliente_id", "tipo", "fecha_creacion"),
        # un ajuste puede fijar el stock en 0 (anulación de un ajuste hecho sobre stock 0)
        CheckConstraint("cantidad >= 1 OR (tipo = 'ajuste' AND cantidad >= 0)", name="ck_movimientos_cantidad_valida"),
        CheckConstraint("precio_unitario >= 0", name="ck_movimientos_precio_no_negativo"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    tipo: Mapped[MovementKind] = mapped_column(SqlEnum(MovementKind, name="movimiento_tipo"), nullable=False)

    producto_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("productos.id", ondelete="RESTRICT"), nullable=False
    )
    usuario_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("usuarios.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    cliente_id: Mapped[uuid.UUID | None] = mapped_column(
        GUID(), ForeignKey("clientes.id", ondelete="RESTRICT"), nullable=True
    )
    proveedor_id: Mapped[uuid.UUID | None] = mapped_column(
        GUID(), ForeignKey("proveedores.id", ondelete="RESTRICT"), nullable=True, index=True
    )

    cantidad: Mapped[int] = mapped_column(Integer, nullable=False)
    precio_unitario: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    numero_documento: Mapped[str] = mapped_column(String(60), index=True, nullable=False)
    stock_anterior: Mapped[int] = mapped_column(Integer, nullable=False)
    stock_nuevo: Mapped[int] = mapped_column(Integer, nullable=False)

    estado: Mapped[MovementStatus] = mapped_column(
        SqlEnum(MovementStatus, name="movimiento_estado"), default=MovementStatus.completado, nullable=False
    )
    motivo: Mapped[str | None] = mapped_column(String(255), nullable=True)
    motivo_anulacion: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # sólo en compensaciones; referencia lógica, sin FK
    movimiento_original_id: Mapped[uuid.UUID | None] = mapped_column(GUID(), nullable=True, index=True)
    archivo_adjunto: Mapped[str | None] = mapped_column(String(255), nullable=True)

    fecha_creacion: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    fecha_actualizacion: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )
    fecha_eliminacion: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def es_anulable(self) -> bool:
        if self.movimiento_original_id is not None:
            return False
        return is_voidable(
            self.estado,
            self.fecha_creacion,
            datetime.now(timezone.utc),
            settings.MOVEMENT_VOID_WINDOW_HOURS,
        )
