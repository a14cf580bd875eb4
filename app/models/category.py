# app/models/category.py
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum as SqlEnum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base
from app.db.types import GUID
from app.domain.enums import CategoryStatus
from app.models.user import _utcnow


class Category(Base):
    __tablename__ = "categorias"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    nombre: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    descripcion: Mapped[str | None] = mapped_column(String(500), nullable=True)
    color: Mapped[str] = mapped_column(String(7), default="#000000", nullable=False)
    orden: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    estado: Mapped[CategoryStatus] = mapped_column(
        SqlEnum(CategoryStatus, name="categoria_estado"), default=CategoryStatus.activa, nullable=False
    )

    fecha_creacion: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    fecha_actualizacion: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )
    fecha_eliminacion: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
