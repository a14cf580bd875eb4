from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import get_logger
from app.db.operations import commit_async, flush_async, rollback_async
from app.domain.enums import MovementKind, MovementStatus
from app.domain.periods import month_start
from app.models.customer import Customer
from app.models.movement import Movement
from app.services.exceptions import DomainValidationError, MonthlyLimitExceededError
from app.services.notification_service import Notifier

logger = get_logger("app.limit_guard")

Clock = Callable[[], datetime]

_CENT = Decimal("0.01")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LimitDecision:
    approved: bool
    limite: int
    consumo_actual: Decimal
    monto: Decimal

    @property
    def consumo_resultante(self) -> Decimal:
        return self.consumo_actual + self.monto

    @property
    def reached(self) -> bool:
        """El movimiento aprobado deja el consumo en o sobre el límite."""
        return self.approved and self.limite > 0 and self.consumo_resultante >= self.limite


class LimitGuard:
    """Controla el consumo mensual de salidas por cliente."""

    def __init__(self, db: AsyncSession, notifier: Notifier | None = None, clock: Clock | None = None):
        self.db = db
        self.notifier = notifier or Notifier()
        self.clock = clock or _utcnow

    async def monthly_consumption(self, customer_id: uuid.UUID) -> Decimal:
        """Suma de ``total`` de las salidas completadas del mes en curso."""
        now = self.clock()
        stmt = select(func.coalesce(func.sum(Movement.total), 0)).where(
            Movement.cliente_id == customer_id,
            Movement.tipo == MovementKind.salida,
            Movement.estado == MovementStatus.completado,
            Movement.fecha_creacion >= month_start(now, settings.TIMEZONE),
            Movement.fecha_creacion <= now,
        )
        value = (await self.db.execute(stmt)).scalar_one()
        return Decimal(str(value)).quantize(_CENT)

    async def evaluate(self, customer: Customer, amount: Decimal | int) -> LimitDecision:
        amount = Decimal(str(amount))
        limite = int(customer.limite_mensual or 0)
        if limite == 0:
            return LimitDecision(approved=True, limite=0, consumo_actual=Decimal("0"), monto=amount)
        consumed = await self.monthly_consumption(customer.id)
        return LimitDecision(
            approved=consumed + amount <= Decimal(limite),
            limite=limite,
            consumo_actual=consumed,
            monto=amount,
        )

    async def check_monthly_limit(self, customer: Customer, amount: Decimal | int) -> bool:
        return (await self.evaluate(customer, amount)).approved

    async def ensure_within_limit(self, customer: Customer, amount: Decimal | int) -> LimitDecision:
        decision = await self.evaluate(customer, amount)
        if not decision.approved:
            logger.info(
                "Salida rechazada por límite mensual",
                extra={
                    "cliente_id": str(customer.id),
                    "limite": decision.limite,
                    "consumo_actual": str(decision.consumo_actual),
                    "monto": str(decision.monto),
                },
            )
            raise MonthlyLimitExceededError(
                "El movimiento excede el límite mensual del cliente",
                limite=decision.limite,
                consumo_actual=decision.consumo_actual,
                monto=decision.monto,
                disponible=max(Decimal(decision.limite) - decision.consumo_actual, Decimal("0")),
            )
        return decision

    async def update_monthly_limit(self, customer: Customer, new_limit: int) -> dict:
        """Cambia el límite y avisa si el consumo actual ya lo alcanza."""
        if new_limit < 0:
            raise DomainValidationError("El límite mensual no puede ser negativo", limite_mensual=new_limit)

        try:
            previous = customer.limite_mensual
            customer.limite_mensual = new_limit
            await flush_async(self.db, customer)
            consumed = await self.monthly_consumption(customer.id)
            await commit_async(self.db)
        except Exception:
            await rollback_async(self.db)
            raise

        logger.info(
            "Límite mensual actualizado",
            extra={"cliente_id": str(customer.id), "limite_anterior": previous, "limite_nuevo": new_limit},
        )
        if new_limit > 0 and consumed >= new_limit:
            self.notifier.limit_reached(customer, consumed)

        return {
            "limite_anterior": previous,
            "limite_nuevo": new_limit,
            "consumo_actual": consumed,
        }
