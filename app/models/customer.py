# app/models/customer.py
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Enum as SqlEnum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base
from app.db.types import GUID
from app.domain.enums import CustomerStatus
from app.domain.rut import format_rut
from app.models.user import _utcnow


class Customer(Base):
    """Cliente interno (departamento o funcionario que retira stock)."""

    __tablename__ = "clientes"
    __table_args__ = (
        CheckConstraint("limite_mensual >= 0", name="ck_clientes_limite_no_negativo"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    rut: Mapped[str] = mapped_column(String(12), unique=True, nullable=False)
    nombre: Mapped[str] = mapped_column(String(100), nullable=False)
    apellido: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    telefono: Mapped[str | None] = mapped_column(String(20), nullable=True)
    direccion: Mapped[str | None] = mapped_column(String(255), nullable=True)
    comuna: Mapped[str | None] = mapped_column(String(100), nullable=True)
    ciudad: Mapped[str | None] = mapped_column(String(100), nullable=True)
    region: Mapped[str | None] = mapped_column(String(100), nullable=True)
    departamento: Mapped[str] = mapped_column(String(100), nullable=False)
    cargo: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # 0 = sin límite
    limite_mensual: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    estado: Mapped[CustomerStatus] = mapped_column(
        SqlEnum(CustomerStatus, name="cliente_estado"), default=CustomerStatus.activo, nullable=False
    )
    motivo_inactivacion: Mapped[str | None] = mapped_column(String(255), nullable=True)

    fecha_creacion: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    fecha_actualizacion: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )
    fecha_eliminacion: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def nombre_completo(self) -> str:
        return f"{self.nombre} {self.apellido}"

    @property
    def rut_formateado(self) -> str:
        return format_rut(self.rut)
