# app/models/supplier.py
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum as SqlEnum, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base
from app.db.types import GUID
from app.domain.enums import SupplierStatus
from app.domain.rut import format_rut
from app.models.user import _utcnow


class Supplier(Base):
    __tablename__ = "proveedores"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    rut: Mapped[str] = mapped_column(String(12), unique=True, nullable=False)
    razon_social: Mapped[str] = mapped_column(String(200), nullable=False)
    nombre_contacto: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    telefono: Mapped[str | None] = mapped_column(String(20), nullable=True)
    direccion: Mapped[str | None] = mapped_column(String(255), nullable=True)
    comuna: Mapped[str | None] = mapped_column(String(100), nullable=True)
    ciudad: Mapped[str | None] = mapped_column(String(100), nullable=True)
    region: Mapped[str | None] = mapped_column(String(100), nullable=True)
    sitio_web: Mapped[str | None] = mapped_column(String(255), nullable=True)
    condiciones_pago: Mapped[str | None] = mapped_column(String(100), nullable=True)
    estado: Mapped[SupplierStatus] = mapped_column(
        SqlEnum(SupplierStatus, name="proveedor_estado"), default=SupplierStatus.activo, nullable=False
    )
    motivo_inactivacion: Mapped[str | None] = mapped_column(String(255), nullable=True)

    fecha_creacion: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    fecha_actualizacion: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )
    fecha_eliminacion: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def rut_formateado(self) -> str:
        return format_rut(self.rut)
