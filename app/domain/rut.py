# app/domain/rut.py
"""Helpers para el RUT chileno (clientes y proveedores)."""

import re

_RUT_RE = re.compile(r"^[0-9]{7,8}[0-9K]$")


def clean_rut(rut: str) -> str:
    return re.sub(r"[^0-9Kk]", "", rut or "").upper()


def normalize_rut(rut: str) -> str:
    """Forma almacenada: ``12345678-K``."""
    cleaned = clean_rut(rut)
    return f"{cleaned[:-1]}-{cleaned[-1]}" if cleaned else ""


def check_digit(body: str) -> str:
    total = 0
    factor = 2
    for digit in reversed(body):
        total += int(digit) * factor
        factor = 2 if factor == 7 else factor + 1
    expected = 11 - (total % 11)
    if expected == 11:
        return "0"
    if expected == 10:
        return "K"
    return str(expected)


def is_valid_rut(rut: str) -> bool:
    cleaned = clean_rut(rut)
    if not _RUT_RE.match(cleaned):
        return False
    return check_digit(cleaned[:-1]) == cleaned[-1]


def format_rut(rut: str | None) -> str:
    """``12345678K`` -> ``12.345.678-K``"""
    if not rut:
        return ""
    cleaned = clean_rut(rut)
    body, dv = cleaned[:-1], cleaned[-1]
    groups = []
    while len(body) > 3:
        groups.insert(0, body[-3:])
        body = body[:-3]
    if body:
        groups.insert(0, body)
    return f"{'.'.join(groups)}-{dv}"
