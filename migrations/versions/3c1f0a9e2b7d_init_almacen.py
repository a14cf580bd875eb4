"""init almacen

Revision ID: 3c1f0a9e2b7d
Revises:
Create Date: 2026-10-17 10:12:41.118204
"""
from __future__ import annotations

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3c1f0a9e2b7d"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ROL = postgresql.ENUM("admin", "supervisor", "usuario", name="usuario_rol", create_type=False)
TEMA = postgresql.ENUM("light", "dark", name="usuario_tema", create_type=False)
CATEGORIA_ESTADO = postgresql.ENUM("activa", "inactiva", name="categoria_estado", create_type=False)
PROVEEDOR_ESTADO = postgresql.ENUM("activo", "inactivo", "bloqueado", name="proveedor_estado", create_type=False)
CLIENTE_ESTADO = postgresql.ENUM("activo", "inactivo", "bloqueado", name="cliente_estado", create_type=False)
PRODUCTO_ESTADO = postgresql.ENUM("activo", "inactivo", "descontinuado", name="producto_estado", create_type=False)
MOVIMIENTO_TIPO = postgresql.ENUM("entrada", "salida", "ajuste", "devolucion", name="movimiento_tipo", create_type=False)
MOVIMIENTO_ESTADO = postgresql.ENUM("completado", "anulado", name="movimiento_estado", create_type=False)

_ENUMS = (
    ROL, TEMA, CATEGORIA_ESTADO, PROVEEDOR_ESTADO,
    CLIENTE_ESTADO, PRODUCTO_ESTADO, MOVIMIENTO_TIPO, MOVIMIENTO_ESTADO,
)


def _id() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("fecha_creacion", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("fecha_actualizacion", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("fecha_eliminacion", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")
    bind = op.get_bind()
    for enum in _ENUMS:
        enum.create(bind, checkfirst=True)

    op.create_table(
        "usuarios",
        _id(),
        sa.Column("nombre", sa.String(length=100), nullable=False),
        sa.Column("apellido", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("rol", ROL, nullable=False, server_default="usuario"),
        sa.Column("activo", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("tema_preferido", TEMA, nullable=False, server_default="light"),
        sa.Column("ultimo_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column("motivo_inactivacion", sa.String(length=255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_usuarios_email", "usuarios", ["email"], unique=True)

    op.create_table(
        "categorias",
        _id(),
        sa.Column("nombre", sa.String(length=100), nullable=False, unique=True),
        sa.Column("descripcion", sa.String(length=500), nullable=True),
        sa.Column("color", sa.String(length=7), nullable=False, server_default="#000000"),
        sa.Column("orden", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("estado", CATEGORIA_ESTADO, nullable=False, server_default="activa"),
        *_timestamps(),
    )

    op.create_table(
        "proveedores",
        _id(),
        sa.Column("rut", sa.String(length=12), nullable=False, unique=True),
        sa.Column("razon_social", sa.String(length=200), nullable=False),
        sa.Column("nombre_contacto", sa.String(length=100), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("telefono", sa.String(length=20), nullable=True),
        sa.Column("direccion", sa.String(length=255), nullable=True),
        sa.Column("comuna", sa.String(length=100), nullable=True),
        sa.Column("ciudad", sa.String(length=100), nullable=True),
        sa.Column("region", sa.String(length=100), nullable=True),
        sa.Column("sitio_web", sa.String(length=255), nullable=True),
        sa.Column("condiciones_pago", sa.String(length=100), nullable=True),
        sa.Column("estado", PROVEEDOR_ESTADO, nullable=False, server_default="activo"),
        sa.Column("motivo_inactivacion", sa.String(length=255), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "clientes",
        _id(),
        sa.Column("rut", sa.String(length=12), nullable=False, unique=True),
        sa.Column("nombre", sa.String(length=100), nullable=False),
        sa.Column("apellido", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("telefono", sa.String(length=20), nullable=True),
        sa.Column("direccion", sa.String(length=255), nullable=True),
        sa.Column("comuna", sa.String(length=100), nullable=True),
        sa.Column("ciudad", sa.String(length=100), nullable=True),
        sa.Column("region", sa.String(length=100), nullable=True),
        sa.Column("departamento", sa.String(length=100), nullable=False),
        sa.Column("cargo", sa.String(length=100), nullable=True),
        sa.Column("limite_mensual", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("estado", CLIENTE_ESTADO, nullable=False, server_default="activo"),
        sa.Column("motivo_inactivacion", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("limite_mensual >= 0", name="ck_clientes_limite_no_negativo"),
    )

    op.create_table(
        "productos",
        _id(),
        sa.Column("codigo", sa.String(length=50), nullable=False),
        sa.Column("nombre", sa.String(length=200), nullable=False),
        sa.Column("descripcion", sa.String(length=1000), nullable=True),
        sa.Column(
            "categoria_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("categorias.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "proveedor_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("proveedores.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("precio_compra", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("precio_venta", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("stock_minimo", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("ubicacion", sa.String(length=100), nullable=True),
        sa.Column("estado", PRODUCTO_ESTADO, nullable=False, server_default="activo"),
        sa.Column("motivo_inactivacion", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("stock >= 0", name="ck_productos_stock_no_negativo"),
        sa.CheckConstraint("stock_minimo >= 0", name="ck_productos_stock_minimo_no_negativo"),
    )
    op.create_index("ix_productos_codigo", "productos", ["codigo"], unique=True)
    op.create_index("ix_productos_categoria_id", "productos", ["categoria_id"])
    op.create_index("ix_productos_proveedor_id", "productos", ["proveedor_id"])

    op.create_table(
        "movimientos",
        _id(),
        sa.Column("tipo", MOVIMIENTO_TIPO, nullable=False),
        sa.Column(
            "producto_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("productos.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "usuario_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("usuarios.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "cliente_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("clientes.id", ondelete="RESTRICT"),
            nullable=True,
        ),
        sa.Column(
            "proveedor_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("proveedores.id", ondelete="RESTRICT"),
            nullable=True,
        ),
        sa.Column("cantidad", sa.Integer(), nullable=False),
        sa.Column("precio_unitario", sa.Numeric(10, 2), nullable=False),
        sa.Column("total", sa.Numeric(10, 2), nullable=False),
        sa.Column("numero_documento", sa.String(length=60), nullable=False),
        sa.Column("stock_anterior", sa.Integer(), nullable=False),
        sa.Column("stock_nuevo", sa.Integer(), nullable=False),
        sa.Column("estado", MOVIMIENTO_ESTADO, nullable=False, server_default="completado"),
        sa.Column("motivo", sa.String(length=255), nullable=True),
        sa.Column("motivo_anulacion", sa.String(length=255), nullable=True),
        sa.Column("movimiento_original_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("archivo_adjunto", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("cantidad >= 1 OR (tipo = 'ajuste' AND cantidad >= 0)", name="ck_movimientos_cantidad_valida"),
        sa.CheckConstraint("precio_unitario >= 0", name="ck_movimientos_precio_no_negativo"),
    )
    op.create_index("ix_movimientos_producto_fecha", "movimientos", ["producto_id", "fecha_creacion"])
    op.create_index(
        "ix_movimientos_cliente_tipo_fecha", "movimientos", ["cliente_id", "tipo", "fecha_creacion"]
    )
    op.create_index("ix_movimientos_usuario_id", "movimientos", ["usuario_id"])
    op.create_index("ix_movimientos_proveedor_id", "movimientos", ["proveedor_id"])
    op.create_index("ix_movimientos_numero_documento", "movimientos", ["numero_documento"])
    op.create_index("ix_movimientos_movimiento_original_id", "movimientos", ["movimiento_original_id"])


def downgrade() -> None:
    op.drop_table("movimientos")
    op.drop_table("productos")
    op.drop_table("clientes")
    op.drop_table("proveedores")
    op.drop_table("categorias")
    op.drop_index("ix_usuarios_email", table_name="usuarios")
    op.drop_table("usuarios")
    bind = op.get_bind()
    for enum in reversed(_ENUMS):
        enum.drop(bind, checkfirst=True)
