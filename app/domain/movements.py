# app/domain/movements.py
"""Reglas puras de los movimientos de stock.

Sin acceso a base de datos: el ledger y el motor de compensación
las llaman dentro de su transacción.
"""

from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal

from app.domain.enums import MovementKind, MovementStatus

DOCUMENT_PREFIXES: dict[MovementKind, str] = {
    MovementKind.entrada: "ENT",
    MovementKind.salida: "SAL",
    MovementKind.ajuste: "AJU",
    MovementKind.devolucion: "DEV",
}

VOID_DOCUMENT_PREFIX = "ANUL-"
DELETED_REASON = "Eliminado por administrador"

_CENT = Decimal("0.01")

_INVERSE_KIND: dict[MovementKind, MovementKind] = {
    MovementKind.entrada: MovementKind.salida,
    MovementKind.salida: MovementKind.entrada,
    # la devolución sumó stock: su reverso es una salida
    MovementKind.devolucion: MovementKind.salida,
    MovementKind.ajuste: MovementKind.ajuste,
}


def apply_delta(kind: MovementKind, quantity: int, current_stock: int) -> int:
    """Stock resultante de aplicar un movimiento; puede ser negativo (lo valida el ledger)."""
    if kind in (MovementKind.entrada, MovementKind.devolucion):
        return current_stock + quantity
    if kind is MovementKind.salida:
        return current_stock - quantity
    if kind is MovementKind.ajuste:
        return quantity
    raise ValueError(f"Tipo de movimiento desconocido: {kind!r}")


def inverse_kind(kind: MovementKind) -> MovementKind:
    return _INVERSE_KIND[MovementKind(kind)]


def compensated_stock(kind: MovementKind, quantity: int, stock_before: int, current_stock: int) -> int:
    """Stock tras revertir un movimiento completado.

    Un ajuste se revierte fijando otra vez el stock que había antes del ajuste.
    """
    if kind is MovementKind.ajuste:
        return stock_before
    return apply_delta(inverse_kind(kind), quantity, current_stock)


def compensation_quantity(kind: MovementKind, quantity: int, target_stock: int) -> int:
    """Cantidad del movimiento inverso; cumple ``apply_delta(inverso, cantidad, actual) == target_stock``."""
    if kind is MovementKind.ajuste:
        return target_stock
    return quantity


def compute_total(quantity: int, unit_price: Decimal | int | float | str) -> Decimal:
    return (Decimal(quantity) * Decimal(str(unit_price))).quantize(_CENT, rounding=ROUND_HALF_UP)


def generate_document_number(
    kind: MovementKind,
    when: datetime | None = None,
    rng: random.Random | None = None,
) -> str:
    """``{PREFIJO}-{últimos 6 dígitos del epoch en ms}-{000..999}``."""
    when = when or datetime.now(timezone.utc)
    millis = str(int(when.timestamp() * 1000))[-6:]
    suffix = (rng or random).randint(0, 999)
    return f"{DOCUMENT_PREFIXES[MovementKind(kind)]}-{millis}-{suffix:03d}"


def void_document_number(original: str) -> str:
    return f"{VOID_DOCUMENT_PREFIX}{original}"


def void_reason(motivo: str) -> str:
    return f"Anulación: {motivo}"


def is_voidable(
    status: MovementStatus,
    created_at: datetime | None,
    now: datetime,
    window_hours: int,
) -> bool:
    if MovementStatus(status) is not MovementStatus.completado or created_at is None:
        return False
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return now - created_at < timedelta(hours=window_hours)
