from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import get_logger
from app.core.metrics import record_movement, record_rejection
from app.db.operations import commit_async, flush_async, get_for_update, rollback_async
from app.domain.enums import CustomerStatus, MovementKind, MovementStatus, ProductStatus
from app.domain.movements import apply_delta, compute_total, generate_document_number
from app.models.customer import Customer
from app.models.movement import Movement
from app.models.product import Product
from app.models.supplier import Supplier
from app.models.user import User
from app.schemas.movement import MovementCreate
from app.services.exceptions import (
    ConflictError,
    DomainValidationError,
    InsufficientStockError,
    ResourceNotFoundError,
    ServiceError,
)
from app.services.limit_guard import LimitDecision, LimitGuard
from app.services.notification_service import Notifier

logger = get_logger("app.ledger")


@dataclass
class _Registration:
    movement: Movement
    product: Product
    customer: Customer | None
    limit: LimitDecision | None


class InventoryLedger:
    """Registra movimientos y es el único escritor de ``Product.stock``.

    Cada registro es una transacción: bloqueo de la fila del producto,
    validaciones, cálculo del total y del nuevo stock, inserción del
    movimiento, actualización del producto y commit. Las notificaciones
    salen recién después del commit.
    """

    def __init__(
        self,
        db: AsyncSession,
        notifier: Notifier | None = None,
        limit_guard: LimitGuard | None = None,
    ):
        self.db = db
        self.notifier = notifier or Notifier()
        self.limit_guard = limit_guard or LimitGuard(db, self.notifier)

    # ---------- lecturas con bloqueo ----------

    async def lock_product(self, product_id: uuid.UUID) -> Product:
        product = await get_for_update(self.db, Product, product_id)
        if product is None:
            raise ResourceNotFoundError("Producto no encontrado", producto_id=str(product_id))
        return product

    async def _get_customer(self, customer_id: uuid.UUID, lock: bool = False) -> Customer:
        # una salida bloquea al cliente: el consumo del mes se lee y se suma bajo ese lock
        if lock:
            customer = await get_for_update(self.db, Customer, customer_id)
        else:
            customer = await self.db.get(Customer, customer_id)
        if customer is None or customer.fecha_eliminacion is not None:
            raise ResourceNotFoundError("Cliente no encontrado", cliente_id=str(customer_id))
        if customer.estado is not CustomerStatus.activo:
            raise ConflictError(
                f"Cliente {customer.estado.value}",
                cliente_id=str(customer_id),
                estado=customer.estado.value,
            )
        return customer

    async def _get_supplier(self, supplier_id: uuid.UUID) -> Supplier:
        supplier = await self.db.get(Supplier, supplier_id)
        if supplier is None or supplier.fecha_eliminacion is not None:
            raise ResourceNotFoundError("Proveedor no encontrado", proveedor_id=str(supplier_id))
        return supplier

    # ---------- stock ----------

    @staticmethod
    def ensure_stock(product: Product, new_stock: int, requested: int) -> int:
        if new_stock < 0:
            raise InsufficientStockError(
                "Stock insuficiente",
                producto_id=str(product.id),
                stock_actual=product.stock,
                cantidad_solicitada=requested,
            )
        return new_stock

    def notify_stock_level(self, product: Product) -> None:
        if product.stock_bajo:
            self.notifier.stock_low(product)

    async def stage_initial_stock(self, product: Product, cantidad: int, user: User) -> Movement:
        """Ajuste inicial dentro de la transacción del alta del producto (sin commit)."""
        movement = Movement(
            tipo=MovementKind.ajuste,
            producto_id=product.id,
            usuario_id=user.id,
            cantidad=cantidad,
            precio_unitario=product.precio_compra,
            total=compute_total(cantidad, product.precio_compra),
            numero_documento=generate_document_number(MovementKind.ajuste),
            stock_anterior=product.stock,
            stock_nuevo=cantidad,
            estado=MovementStatus.completado,
            motivo="Stock inicial",
        )
        self.db.add(movement)
        product.stock = cantidad
        await flush_async(self.db, movement, product)
        record_movement(MovementKind.ajuste.value)
        return movement

    # ---------- registro ----------

    async def register_movement(
        self,
        payload: MovementCreate,
        user: User,
        attachment: str | None = None,
    ) -> Movement:
        try:
            registration = await self._register(payload, user, attachment)
            await commit_async(self.db)
        except ServiceError as exc:
            await rollback_async(self.db)
            record_rejection(type(exc).__name__)
            logger.info(
                "Movimiento rechazado",
                extra={"tipo": payload.tipo.value, "producto_id": str(payload.producto_id), "motivo": exc.detail},
            )
            raise
        except Exception:
            await rollback_async(self.db)
            raise

        movement = registration.movement
        record_movement(movement.tipo.value)
        logger.info(
            "Movimiento registrado",
            extra={
                "movimiento_id": str(movement.id),
                "tipo": movement.tipo.value,
                "producto_id": str(movement.producto_id),
                "stock_anterior": movement.stock_anterior,
                "stock_nuevo": movement.stock_nuevo,
                "numero_documento": movement.numero_documento,
            },
        )
        self._after_commit(registration)
        return movement

    async def _register(self, payload: MovementCreate, user: User, attachment: str | None) -> _Registration:
        kind = MovementKind(payload.tipo)

        product = await self.lock_product(payload.producto_id)
        if product.fecha_eliminacion is not None:
            raise ResourceNotFoundError("Producto no encontrado", producto_id=str(product.id))
        if product.estado is not ProductStatus.activo:
            raise ConflictError("Producto inactivo", producto_id=str(product.id), estado=product.estado.value)

        customer: Customer | None = None
        if kind is MovementKind.salida and payload.cliente_id is None:
            raise DomainValidationError("El cliente es requerido para salidas")
        if payload.cliente_id is not None:
            customer = await self._get_customer(payload.cliente_id, lock=kind is MovementKind.salida)

        if payload.proveedor_id is not None:
            await self._get_supplier(payload.proveedor_id)
        elif kind is MovementKind.entrada:
            logger.warning("Entrada registrada sin proveedor", extra={"producto_id": str(product.id)})

        total = compute_total(payload.cantidad, payload.precio_unitario)
        stock_before = product.stock
        stock_after = self.ensure_stock(product, apply_delta(kind, payload.cantidad, stock_before), payload.cantidad)

        limit: LimitDecision | None = None
        if kind is MovementKind.salida and customer is not None:
            limit = await self.limit_guard.ensure_within_limit(customer, total)

        movement = Movement(
            tipo=kind,
            producto_id=product.id,
            usuario_id=user.id,
            cliente_id=payload.cliente_id,
            proveedor_id=payload.proveedor_id,
            cantidad=payload.cantidad,
            precio_unitario=payload.precio_unitario,
            total=total,
            numero_documento=payload.numero_documento or generate_document_number(kind),
            stock_anterior=stock_before,
            stock_nuevo=stock_after,
            estado=MovementStatus.completado,
            motivo=payload.motivo,
            archivo_adjunto=attachment,
        )
        self.db.add(movement)
        product.stock = stock_after
        await flush_async(self.db, movement, product)
        return _Registration(movement=movement, product=product, customer=customer, limit=limit)

    def _after_commit(self, registration: _Registration) -> None:
        movement, product = registration.movement, registration.product
        self.notify_stock_level(product)
        if registration.limit is not None and registration.limit.reached and registration.customer is not None:
            self.notifier.limit_reached(registration.customer, registration.limit.consumo_resultante)
        if movement.total >= settings.IMPORTANT_MOVEMENT_THRESHOLD:
            self.notifier.important_movement(movement, product)
