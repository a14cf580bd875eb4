from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.core.metrics import record_void
from app.db.operations import commit_async, flush_async, get_for_update, rollback_async
from app.domain.enums import MovementStatus
from app.domain.movements import (
    compensated_stock,
    compensation_quantity,
    compute_total,
    inverse_kind,
    void_document_number,
    void_reason,
)
from app.models.movement import Movement
from app.models.product import Product
from app.models.user import User
from app.services.exceptions import (
    ConflictError,
    DomainValidationError,
    ResourceNotFoundError,
)
from app.services.ledger_service import InventoryLedger
from app.services.notification_service import Notifier

logger = get_logger("app.compensation")


@dataclass(frozen=True)
class VoidResult:
    voided: Movement
    compensation: Movement
    product: Product


class CompensationEngine:
    """Anula movimientos completados mediante un movimiento inverso.

    El original nunca se borra: sólo cambian ``estado`` y
    ``motivo_anulacion``. La compensación y el cambio de stock se
    confirman en la misma transacción.
    """

    def __init__(
        self,
        db: AsyncSession,
        ledger: InventoryLedger | None = None,
        notifier: Notifier | None = None,
    ):
        self.db = db
        self.ledger = ledger or InventoryLedger(db, notifier)

    async def _lock_movement(self, movement_id: uuid.UUID) -> Movement:
        movement = await get_for_update(self.db, Movement, movement_id)
        if movement is None:
            raise ResourceNotFoundError("Movimiento no encontrado", movimiento_id=str(movement_id))
        return movement

    async def void_movement(self, movement_id: uuid.UUID, motivo: str, user: User) -> VoidResult:
        try:
            result = await self._void(movement_id, motivo, user)
            await commit_async(self.db)
        except Exception:
            await rollback_async(self.db)
            raise

        record_void(result.voided.tipo.value)
        logger.info(
            "Movimiento anulado",
            extra={
                "movimiento_id": str(result.voided.id),
                "compensacion_id": str(result.compensation.id),
                "tipo_compensacion": result.compensation.tipo.value,
                "producto_id": str(result.product.id),
                "stock_anterior": result.compensation.stock_anterior,
                "stock_nuevo": result.compensation.stock_nuevo,
                "usuario_id": str(user.id),
            },
        )
        self.ledger.notify_stock_level(result.product)
        return result

    async def _void(self, movement_id: uuid.UUID, motivo: str, user: User) -> VoidResult:
        motivo = (motivo or "").strip()
        if not motivo:
            raise DomainValidationError("El motivo de anulación es requerido")

        original = await self._lock_movement(movement_id)
        if original.estado is not MovementStatus.completado:
            raise ConflictError(
                "El movimiento ya está anulado",
                movimiento_id=str(original.id),
                estado=original.estado.value,
            )
        if original.movimiento_original_id is not None:
            raise ConflictError(
                "Un movimiento de compensación no puede anularse",
                movimiento_id=str(original.id),
                movimiento_original_id=str(original.movimiento_original_id),
            )

        product = await self.ledger.lock_product(original.producto_id)
        stock_before = product.stock
        stock_after = self.ledger.ensure_stock(
            product,
            compensated_stock(original.tipo, original.cantidad, original.stock_anterior, stock_before),
            original.cantidad,
        )
        cantidad = compensation_quantity(original.tipo, original.cantidad, stock_after)

        compensation = Movement(
            tipo=inverse_kind(original.tipo),
            producto_id=original.producto_id,
            usuario_id=user.id,
            cliente_id=original.cliente_id,
            proveedor_id=original.proveedor_id,
            cantidad=cantidad,
            precio_unitario=original.precio_unitario,
            total=compute_total(cantidad, original.precio_unitario),
            numero_documento=void_document_number(original.numero_documento),
            stock_anterior=stock_before,
            stock_nuevo=stock_after,
            estado=MovementStatus.completado,
            motivo=void_reason(motivo),
            movimiento_original_id=original.id,
        )
        self.db.add(compensation)
        product.stock = stock_after
        original.estado = MovementStatus.anulado
        original.motivo_anulacion = motivo
        await flush_async(self.db, compensation, product, original)
        return VoidResult(voided=original, compensation=compensation, product=product)
