# app/domain/enums.py
import enum


class UserRole(str, enum.Enum):
    admin = "admin"
    supervisor = "supervisor"
    usuario = "usuario"


class Theme(str, enum.Enum):
    light = "light"
    dark = "dark"


class ProductStatus(str, enum.Enum):
    activo = "activo"
    inactivo = "inactivo"
    descontinuado = "descontinuado"


class CustomerStatus(str, enum.Enum):
    activo = "activo"
    inactivo = "inactivo"
    bloqueado = "bloqueado"


class SupplierStatus(str, enum.Enum):
    activo = "activo"
    inactivo = "inactivo"
    bloqueado = "bloqueado"


class CategoryStatus(str, enum.Enum):
    activa = "activa"
    inactiva = "inactiva"


class MovementKind(str, enum.Enum):
    entrada = "entrada"
    salida = "salida"
    ajuste = "ajuste"
    devolucion = "devolucion"


class MovementStatus(str, enum.Enum):
    """Única transición legal: completado -> anulado."""

    completado = "completado"
    anulado = "anulado"
