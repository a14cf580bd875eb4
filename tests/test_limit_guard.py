from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.domain.enums import MovementKind, MovementStatus
from app.domain.periods import month_start
from app.models.movement import Movement
from app.schemas.movement import MovementCreate
from app.services.compensation_service import CompensationEngine
from app.services.exceptions import DomainValidationError, MonthlyLimitExceededError
from app.services.ledger_service import InventoryLedger
from app.services.limit_guard import LimitGuard


async def _exit(ledger, user, product, customer, cantidad, precio):
    payload = MovementCreate(
        tipo=MovementKind.salida,
        producto_id=product.id,
        cliente_id=customer.id,
        cantidad=cantidad,
        precio_unitario=Decimal(precio),
    )
    return await ledger.register_movement(payload, user)


@pytest.mark.asyncio
async def test_limit_boundaries(async_db_session, notifier, operator, make_product, make_customer):
    ledger = InventoryLedger(async_db_session, notifier)
    guard = LimitGuard(async_db_session, notifier)
    product = await make_product(stock=100)
    customer = await make_customer(limite_mensual=1000)
    await _exit(ledger, operator, product, customer, 6, "100")

    assert await guard.monthly_consumption(customer.id) == Decimal("600.00")
    assert await guard.check_monthly_limit(customer, Decimal("400")) is True
    assert await guard.check_monthly_limit(customer, Decimal("401")) is False


@pytest.mark.asyncio
async def test_zero_limit_is_unlimited(async_db_session, notifier, operator, make_product, make_customer):
    guard = LimitGuard(async_db_session, notifier)
    customer = await make_customer(limite_mensual=0)

    assert await guard.check_monthly_limit(customer, Decimal("999999999")) is True


@pytest.mark.asyncio
async def test_limit_reached_then_rejected(async_db_session, notifier, operator, make_product, make_customer):
    ledger = InventoryLedger(async_db_session, notifier)
    product = await make_product(stock=100, precio="10000")
    customer = await make_customer(limite_mensual=500000)
    customer_id = customer.id
    await _exit(ledger, operator, product, customer, 45, "10000")
    assert "limite_alcanzado" not in notifier.names

    accepted = await _exit(ledger, operator, product, customer, 5, "10000")
    assert accepted.total == Decimal("50000.00")
    assert notifier.names[-1] == "limite_alcanzado"
    _, recipients, context = notifier.events[-1]
    assert customer.email in recipients
    assert context["consumo"] == "500000.00"

    with pytest.raises(MonthlyLimitExceededError) as exc_info:
        await _exit(ledger, operator, product, customer, 1, "50001")
    datos = exc_info.value.context
    assert datos["limite"] == 500000
    assert datos["consumo_actual"] == Decimal("500000.00")
    assert datos["monto"] == Decimal("50001.00")
    assert datos["disponible"] == Decimal("0")

    guard = LimitGuard(async_db_session, notifier)
    assert await guard.monthly_consumption(customer_id) == Decimal("500000.00")


@pytest.mark.asyncio
async def test_voided_exits_free_the_limit(async_db_session, notifier, operator, make_product, make_customer):
    ledger = InventoryLedger(async_db_session, notifier)
    engine = CompensationEngine(async_db_session, ledger, notifier)
    guard = LimitGuard(async_db_session, notifier)
    product = await make_product(stock=10)
    customer = await make_customer(limite_mensual=500)
    out = await _exit(ledger, operator, product, customer, 5, "100")

    await engine.void_movement(out.id, "Error", operator)

    assert await guard.monthly_consumption(customer.id) == Decimal("0.00")


@pytest.mark.asyncio
async def test_consumption_only_counts_current_month(async_db_session, notifier, operator, make_product, make_customer):
    product = await make_product(stock=10)
    customer = await make_customer(limite_mensual=1000)
    now = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)
    start = month_start(now, "America/Santiago")

    def _movement(when, total, estado=MovementStatus.completado, tipo=MovementKind.salida):
        return Movement(
            tipo=tipo,
            producto_id=product.id,
            usuario_id=operator.id,
            cliente_id=customer.id,
            cantidad=1,
            precio_unitario=Decimal(total),
            total=Decimal(total),
            numero_documento=f"SAL-{when:%H%M%S}-{total}",
            stock_anterior=10,
            stock_nuevo=9,
            estado=estado,
            fecha_creacion=when,
        )

    async_db_session.add_all(
        [
            _movement(start - timedelta(minutes=1), "300"),
            _movement(start + timedelta(minutes=1), "200"),
            _movement(now - timedelta(days=1), "150"),
            _movement(now - timedelta(hours=1), "90", estado=MovementStatus.anulado),
            _movement(now - timedelta(hours=2), "80", tipo=MovementKind.devolucion),
            _movement(now + timedelta(days=1), "500"),
        ]
    )
    await async_db_session.commit()

    guard = LimitGuard(async_db_session, notifier, clock=lambda: now)

    assert await guard.monthly_consumption(customer.id) == Decimal("350.00")
    assert await guard.check_monthly_limit(customer, Decimal("650")) is True
    assert await guard.check_monthly_limit(customer, Decimal("651")) is False


@pytest.mark.asyncio
async def test_update_monthly_limit_notifies_when_already_reached(async_db_session, notifier, operator, make_product, make_customer):
    ledger = InventoryLedger(async_db_session, notifier)
    guard = LimitGuard(async_db_session, notifier)
    product = await make_product(stock=10)
    customer = await make_customer(limite_mensual=0)
    await _exit(ledger, operator, product, customer, 3, "100")

    result = await guard.update_monthly_limit(customer, 250)

    assert result == {"limite_anterior": 0, "limite_nuevo": 250, "consumo_actual": Decimal("300.00")}
    assert notifier.names[-1] == "limite_alcanzado"
    await async_db_session.refresh(customer)
    assert customer.limite_mensual == 250


@pytest.mark.asyncio
async def test_update_monthly_limit_rejects_negative(async_db_session, notifier, make_customer):
    guard = LimitGuard(async_db_session, notifier)
    customer = await make_customer(limite_mensual=100)

    with pytest.raises(DomainValidationError):
        await guard.update_monthly_limit(customer, -1)
