# app/services/exceptions.py
from typing import Any


class ServiceError(Exception):
    """Clase base para errores de la capa de servicio.

    ``context`` lleva los valores que decidieron el rechazo (stock actual,
    límite, consumo...) y se devuelve al cliente como ``datos``.
    """

    def __init__(self, detail: str, **context: Any):
        self.detail = detail
        self.context = context
        super().__init__(detail)


class InsufficientStockError(ServiceError):
    """Lanzada cuando no hay suficiente stock para una operación."""


class MonthlyLimitExceededError(ServiceError):
    """El movimiento supera el límite mensual del cliente."""


class DomainValidationError(ServiceError):
    """Entrada de dominio inválida."""


class ResourceNotFoundError(ServiceError):
    """Recurso no encontrado."""


class ConflictError(ServiceError):
    """Conflicto de estado en la operación."""


class AttachmentError(ServiceError):
    """Archivo adjunto rechazado (tipo o tamaño)."""
