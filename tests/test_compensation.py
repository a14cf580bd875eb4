import uuid
from decimal import Decimal

import pytest
from sqlalchemy import select

from app.domain.enums import MovementKind, MovementStatus
from app.domain.movements import apply_delta
from app.models.movement import Movement
from app.schemas.movement import MovementCreate
from app.services.compensation_service import CompensationEngine
from app.services.exceptions import (
    ConflictError,
    DomainValidationError,
    InsufficientStockError,
    ResourceNotFoundError,
)
from app.services.ledger_service import InventoryLedger


def _engine(session, notifier):
    ledger = InventoryLedger(session, notifier)
    return ledger, CompensationEngine(session, ledger, notifier)


async def _register(ledger, user, tipo, product, cantidad, **extra):
    payload = MovementCreate(
        tipo=tipo,
        producto_id=product.id,
        cantidad=cantidad,
        precio_unitario=Decimal("250"),
        **extra,
    )
    return await ledger.register_movement(payload, user)


@pytest.mark.asyncio
async def test_void_exit_restores_stock_and_links_compensation(async_db_session, notifier, operator, make_product, make_customer):
    ledger, engine = _engine(async_db_session, notifier)
    product = await make_product(stock=40)
    customer = await make_customer()
    out = await _register(ledger, operator, MovementKind.salida, product, 12, cliente_id=customer.id)

    result = await engine.void_movement(out.id, "  Cliente equivocado  ", operator)

    original, compensation = result.voided, result.compensation
    assert original.estado is MovementStatus.anulado
    assert original.motivo_anulacion == "Cliente equivocado"
    assert compensation.tipo is MovementKind.entrada
    assert compensation.movimiento_original_id == original.id
    assert compensation.numero_documento == f"ANUL-{original.numero_documento}"
    assert compensation.motivo == "Anulación: Cliente equivocado"
    assert compensation.cliente_id == customer.id
    assert compensation.total == original.total
    assert (compensation.stock_anterior, compensation.stock_nuevo) == (28, 40)
    assert compensation.estado is MovementStatus.completado
    await async_db_session.refresh(product)
    assert product.stock == 40


@pytest.mark.asyncio
async def test_void_twice_fails_without_touching_stock(async_db_session, notifier, operator, make_product):
    ledger, engine = _engine(async_db_session, notifier)
    product = await make_product(stock=5)
    entry = await _register(ledger, operator, MovementKind.entrada, product, 10)
    entry_id = entry.id

    await engine.void_movement(entry_id, "Duplicado", operator)
    await async_db_session.refresh(product)
    assert product.stock == 5

    with pytest.raises(ConflictError) as exc_info:
        await engine.void_movement(entry_id, "Otra vez", operator)
    assert exc_info.value.detail == "El movimiento ya está anulado"

    await async_db_session.refresh(product)
    assert product.stock == 5
    compensations = (
        await async_db_session.execute(select(Movement).where(Movement.movimiento_original_id == entry_id))
    ).scalars().all()
    assert len(compensations) == 1


@pytest.mark.asyncio
async def test_compensation_cannot_be_voided(async_db_session, notifier, operator, make_product):
    ledger, engine = _engine(async_db_session, notifier)
    product = await make_product(stock=5)
    entry = await _register(ledger, operator, MovementKind.entrada, product, 3)
    result = await engine.void_movement(entry.id, "Error", operator)
    compensation_id = result.compensation.id

    with pytest.raises(ConflictError):
        await engine.void_movement(compensation_id, "Revertir la anulación", operator)

    await async_db_session.refresh(product)
    assert product.stock == 5


@pytest.mark.asyncio
async def test_void_adjustment_restores_previous_stock(async_db_session, notifier, operator, make_product):
    ledger, engine = _engine(async_db_session, notifier)
    product = await make_product(stock=10)
    adjustment = await _register(ledger, operator, MovementKind.ajuste, product, 40, motivo="Conteo")

    result = await engine.void_movement(adjustment.id, "Conteo mal hecho", operator)

    assert result.compensation.tipo is MovementKind.ajuste
    assert (result.compensation.stock_anterior, result.compensation.stock_nuevo) == (40, 10)
    assert result.compensation.cantidad == 10
    assert result.compensation.total == Decimal("2500.00")
    await async_db_session.refresh(product)
    assert product.stock == 10


@pytest.mark.asyncio
async def test_void_adjustment_after_exit_restores_pre_adjustment_stock(async_db_session, notifier, operator, make_product, make_customer):
    ledger, engine = _engine(async_db_session, notifier)
    product = await make_product(stock=10)
    customer = await make_customer()
    adjustment = await _register(ledger, operator, MovementKind.ajuste, product, 50, motivo="Conteo")
    exit_movement = await _register(ledger, operator, MovementKind.salida, product, 5, cliente_id=customer.id)

    result = await engine.void_movement(adjustment.id, "Conteo duplicado", operator)

    assert (result.compensation.stock_anterior, result.compensation.stock_nuevo) == (45, 10)
    assert apply_delta(result.compensation.tipo, result.compensation.cantidad, 45) == 10
    await async_db_session.refresh(product)
    assert product.stock == 10

    # el historial completo, anulados incluidos, reproduce el stock
    replayed = 10
    for movement in (adjustment, exit_movement, result.compensation):
        assert movement.stock_anterior == replayed
        replayed = apply_delta(movement.tipo, movement.cantidad, replayed)
        assert movement.stock_nuevo == replayed
    assert replayed == product.stock


@pytest.mark.asyncio
async def test_void_adjustment_made_on_empty_stock_sets_zero(async_db_session, notifier, operator, make_product):
    ledger, engine = _engine(async_db_session, notifier)
    product = await make_product(stock=0)
    adjustment = await _register(ledger, operator, MovementKind.ajuste, product, 12, motivo="Conteo inicial")

    result = await engine.void_movement(adjustment.id, "Producto equivocado", operator)

    assert result.compensation.cantidad == 0
    assert result.compensation.stock_nuevo == 0
    await async_db_session.refresh(product)
    assert product.stock == 0


@pytest.mark.asyncio
async def test_void_return_is_an_exit(async_db_session, notifier, operator, make_product, make_customer):
    ledger, engine = _engine(async_db_session, notifier)
    product = await make_product(stock=2, stock_minimo=3)
    customer = await make_customer()
    returned = await _register(ledger, operator, MovementKind.devolucion, product, 4, cliente_id=customer.id)
    notifier.events.clear()

    result = await engine.void_movement(returned.id, "No llegó", operator)

    assert result.compensation.tipo is MovementKind.salida
    assert result.compensation.stock_nuevo == 2
    assert notifier.names == ["stock_bajo"]


@pytest.mark.asyncio
async def test_void_entry_that_would_leave_negative_stock_is_rejected(async_db_session, notifier, operator, make_product, make_customer):
    ledger, engine = _engine(async_db_session, notifier)
    product = await make_product(stock=0)
    customer = await make_customer()
    entry = await _register(ledger, operator, MovementKind.entrada, product, 10)
    entry_id = entry.id
    await _register(ledger, operator, MovementKind.salida, product, 8, cliente_id=customer.id)

    with pytest.raises(InsufficientStockError):
        await engine.void_movement(entry_id, "Proveedor equivocado", operator)

    await async_db_session.refresh(product)
    assert product.stock == 2
    original = await async_db_session.get(Movement, entry_id)
    await async_db_session.refresh(original)
    assert original.estado is MovementStatus.completado


@pytest.mark.asyncio
async def test_void_requires_reason_and_existing_movement(async_db_session, notifier, operator, make_product):
    ledger, engine = _engine(async_db_session, notifier)
    product = await make_product(stock=1)
    entry = await _register(ledger, operator, MovementKind.entrada, product, 1)
    entry_id = entry.id

    with pytest.raises(DomainValidationError):
        await engine.void_movement(entry_id, "   ", operator)

    await async_db_session.refresh(operator)
    with pytest.raises(ResourceNotFoundError):
        await engine.void_movement(uuid.uuid4(), "No existe", operator)
