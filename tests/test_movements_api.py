import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.core.config import settings
from app.services.upload_service import DOCUMENTS_DIR
from conftest import auth


def _documents():
    folder = settings.upload_path / DOCUMENTS_DIR
    return set(folder.iterdir()) if folder.is_dir() else set()


def _body(tipo, product, cantidad, precio="100", **extra):
    data = {"tipo": tipo, "producto_id": str(product.id), "cantidad": cantidad, "precio_unitario": precio}
    data.update({key: str(value) if isinstance(value, uuid.UUID) else value for key, value in extra.items()})
    return data


@pytest.mark.asyncio
async def test_register_entry_updates_product_stock(client, user_token, normal_user, supplier, make_product):
    product = await make_product(stock=15)

    resp = await client.post(
        "/api/movimientos",
        json=_body("entrada", product, 10, "1500.50", proveedor_id=supplier.id),
        headers=auth(user_token),
    )

    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["stock_anterior"] == 15
    assert data["stock_nuevo"] == 25
    assert Decimal(data["total"]) == Decimal("15005.00")
    assert data["estado"] == "completado"
    assert data["es_anulable"] is True
    assert data["usuario_id"] == str(normal_user.id)
    assert data["numero_documento"].startswith("ENT-")

    product_resp = await client.get(f"/api/productos/{product.id}", headers=auth(user_token))
    assert product_resp.json()["stock"] == 25


@pytest.mark.asyncio
async def test_exit_above_stock_returns_context(client, user_token, make_product, make_customer):
    product = await make_product(stock=15)
    customer = await make_customer()

    resp = await client.post(
        "/api/movimientos",
        json=_body("salida", product, 16, cliente_id=customer.id),
        headers=auth(user_token),
    )

    assert resp.status_code == 400
    body = resp.json()
    assert body["detail"] == "Stock insuficiente"
    assert body["datos"]["stock_actual"] == 15
    assert body["datos"]["cantidad_solicitada"] == 16


@pytest.mark.asyncio
async def test_exit_without_customer_is_422(client, user_token, make_product):
    product = await make_product(stock=5)

    resp = await client.post("/api/movimientos", json=_body("salida", product, 1), headers=auth(user_token))

    assert resp.status_code == 422
    assert resp.json()["detail"] == "El cliente es requerido para salidas"


@pytest.mark.asyncio
async def test_exit_over_monthly_limit_returns_context(client, user_token, make_product, make_customer, notifier):
    product = await make_product(stock=10)
    customer = await make_customer(limite_mensual=500)

    ok = await client.post(
        "/api/movimientos", json=_body("salida", product, 5, cliente_id=customer.id), headers=auth(user_token)
    )
    assert ok.status_code == 201
    assert "limite_alcanzado" in notifier.names

    resp = await client.post(
        "/api/movimientos", json=_body("salida", product, 1, "0.01", cliente_id=customer.id), headers=auth(user_token)
    )
    assert resp.status_code == 400
    datos = resp.json()["datos"]
    assert datos["limite"] == 500
    assert Decimal(datos["consumo_actual"]) == Decimal("500")


@pytest.mark.asyncio
async def test_invalid_payloads_are_rejected(client, user_token, make_product):
    product = await make_product(stock=5)

    zero = await client.post("/api/movimientos", json=_body("entrada", product, 0), headers=auth(user_token))
    negative_price = await client.post("/api/movimientos", json=_body("entrada", product, 1, "-1"), headers=auth(user_token))
    unknown_kind = await client.post("/api/movimientos", json=_body("traspaso", product, 1), headers=auth(user_token))

    assert zero.status_code == 422
    assert negative_price.status_code == 422
    assert unknown_kind.status_code == 422


@pytest.mark.asyncio
async def test_void_flow_and_permissions(client, user_token, supervisor_token, make_product, make_customer):
    product = await make_product(stock=100, stock_minimo=20)
    customer = await make_customer()
    created = await client.post(
        "/api/movimientos", json=_body("salida", product, 85, cliente_id=customer.id), headers=auth(user_token)
    )
    movement_id = created.json()["id"]

    forbidden = await client.patch(
        f"/api/movimientos/{movement_id}/anular", json={"motivo": "Error"}, headers=auth(user_token)
    )
    assert forbidden.status_code == 403

    blank = await client.patch(
        f"/api/movimientos/{movement_id}/anular", json={"motivo": "   "}, headers=auth(supervisor_token)
    )
    assert blank.status_code == 422

    resp = await client.patch(
        f"/api/movimientos/{movement_id}/anular", json={"motivo": "Error de digitación"}, headers=auth(supervisor_token)
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["movimiento_anulado"]["estado"] == "anulado"
    assert body["movimiento_anulado"]["motivo_anulacion"] == "Error de digitación"
    assert body["movimiento_anulado"]["es_anulable"] is False
    compensation = body["movimiento_compensacion"]
    assert compensation["tipo"] == "entrada"
    assert compensation["movimiento_original_id"] == movement_id
    assert compensation["stock_anterior"] == 15
    assert compensation["stock_nuevo"] == 100
    assert compensation["es_anulable"] is False

    again = await client.patch(
        f"/api/movimientos/{movement_id}/anular", json={"motivo": "Otra vez"}, headers=auth(supervisor_token)
    )
    assert again.status_code == 409
    assert again.json()["datos"]["estado"] == "anulado"

    product_resp = await client.get(f"/api/productos/{product.id}", headers=auth(user_token))
    assert product_resp.json()["stock"] == 100


@pytest.mark.asyncio
async def test_void_unknown_movement_is_404(client, supervisor_token):
    resp = await client.patch(
        f"/api/movimientos/{uuid.uuid4()}/anular", json={"motivo": "No existe"}, headers=auth(supervisor_token)
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_list_and_get_movements(client, user_token, supplier, make_product, make_customer):
    product = await make_product(stock=10)
    customer = await make_customer()
    headers = auth(user_token)
    for _ in range(3):
        await client.post("/api/movimientos", json=_body("entrada", product, 1, proveedor_id=supplier.id), headers=headers)
    exit_resp = await client.post(
        "/api/movimientos", json=_body("salida", product, 2, cliente_id=customer.id), headers=headers
    )

    page = await client.get("/api/movimientos", params={"limit": 2}, headers=headers)
    assert page.status_code == 200
    data = page.json()
    assert data["total"] == 4
    assert data["pages"] == 2
    assert len(data["items"]) == 2
    # más recientes primero
    assert data["items"][0]["id"] == exit_resp.json()["id"]

    exits = await client.get("/api/movimientos", params={"tipo": "salida"}, headers=headers)
    assert exits.json()["total"] == 1
    by_supplier = await client.get("/api/movimientos", params={"proveedor_id": str(supplier.id)}, headers=headers)
    assert by_supplier.json()["total"] == 3

    single = await client.get(f"/api/movimientos/{exit_resp.json()['id']}", headers=headers)
    assert single.status_code == 200
    assert single.json()["cliente_id"] == str(customer.id)

    missing = await client.get(f"/api/movimientos/{uuid.uuid4()}", headers=headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_list_date_filters_treat_naive_dates_as_utc(client, user_token, supplier, make_product):
    product = await make_product(stock=0)
    headers = auth(user_token)
    await client.post("/api/movimientos", json=_body("entrada", product, 4, proveedor_id=supplier.id), headers=headers)

    now = datetime.now(timezone.utc)
    hour = timedelta(hours=1)
    ranges = {
        "naive": ((now - hour).replace(tzinfo=None), (now + hour).replace(tzinfo=None)),
        "utc": (now - hour, now + hour),
        "offset": ((now - hour).astimezone(timezone(timedelta(hours=-4))), (now + hour).astimezone(timezone(timedelta(hours=-4)))),
    }
    for start, end in ranges.values():
        resp = await client.get(
            "/api/movimientos",
            params={"fecha_inicio": start.isoformat(), "fecha_fin": end.isoformat()},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json()["total"] == 1

    past = await client.get(
        "/api/movimientos",
        params={"fecha_fin": (now - hour).replace(tzinfo=None).isoformat()},
        headers=headers,
    )
    assert past.json()["total"] == 0


@pytest.mark.asyncio
async def test_statistics_group_completed_movements(client, user_token, supervisor_token, make_product, make_customer):
    product = await make_product(stock=0)
    customer = await make_customer()
    headers = auth(user_token)
    await client.post("/api/movimientos", json=_body("entrada", product, 10, "10"), headers=headers)
    await client.post("/api/movimientos", json=_body("entrada", product, 5, "10"), headers=headers)
    out = await client.post(
        "/api/movimientos", json=_body("salida", product, 4, "10", cliente_id=customer.id), headers=headers
    )
    await client.patch(
        f"/api/movimientos/{out.json()['id']}/anular", json={"motivo": "Error"}, headers=auth(supervisor_token)
    )

    resp = await client.get("/api/movimientos/estadisticas", headers=headers)

    assert resp.status_code == 200
    stats = resp.json()["estadisticas"]
    # la compensación de la salida es una entrada completada
    assert stats["entrada"]["movimientos"] == 3
    assert stats["entrada"]["productos"] == 19
    assert Decimal(stats["entrada"]["valor"]) == Decimal("190.00")
    assert stats["salida"]["movimientos"] == 0
    assert stats["ajuste"] == {"movimientos": 0, "productos": 0, "valor": "0.00"}


@pytest.mark.asyncio
async def test_statistics_rejects_inverted_range(client, user_token):
    resp = await client.get(
        "/api/movimientos/estadisticas",
        params={"fecha_inicio": "2024-06-10T00:00:00", "fecha_fin": "2024-06-01T00:00:00"},
        headers=auth(user_token),
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_daily_report_requires_export_permission(client, user_token, supervisor_token, make_product, notifier):
    product = await make_product(stock=0)
    await client.post("/api/movimientos", json=_body("entrada", product, 2, "50"), headers=auth(user_token))

    forbidden = await client.get("/api/movimientos/reporte-diario", headers=auth(user_token))
    assert forbidden.status_code == 403

    resp = await client.get("/api/movimientos/reporte-diario", headers=auth(supervisor_token))
    assert resp.status_code == 200
    body = resp.json()
    assert body["total_movimientos"] == 1
    assert Decimal(body["valor_total"]) == Decimal("100.00")
    assert body["correos_encolados"] == 1
    assert "reporte_diario" in notifier.names


@pytest.mark.asyncio
async def test_register_with_attachment_stores_file(client, user_token, make_product):
    product = await make_product(stock=0)
    before = _documents()

    resp = await client.post(
        "/api/movimientos/con-adjunto",
        data={"tipo": "entrada", "producto_id": str(product.id), "cantidad": "3", "precio_unitario": "20"},
        files={"archivo_adjunto": ("factura.pdf", b"%PDF-1.4 factura", "application/pdf")},
        headers=auth(user_token),
    )

    assert resp.status_code == 201, resp.text
    stored = resp.json()["archivo_adjunto"]
    assert stored.startswith(f"{DOCUMENTS_DIR}/doc-") and stored.endswith(".pdf")
    assert (settings.upload_path / stored).read_bytes() == b"%PDF-1.4 factura"
    assert len(_documents() - before) == 1


@pytest.mark.asyncio
async def test_failed_registration_removes_attachment(client, user_token, make_product, make_customer):
    product = await make_product(stock=1)
    customer = await make_customer()
    before = _documents()

    resp = await client.post(
        "/api/movimientos/con-adjunto",
        data={
            "tipo": "salida",
            "producto_id": str(product.id),
            "cliente_id": str(customer.id),
            "cantidad": "2",
            "precio_unitario": "20",
        },
        files={"archivo_adjunto": ("guia.pdf", b"%PDF-1.4 guia", "application/pdf")},
        headers=auth(user_token),
    )

    assert resp.status_code == 400
    assert _documents() == before


@pytest.mark.asyncio
async def test_attachment_with_forbidden_extension(client, user_token, make_product):
    product = await make_product(stock=0)

    resp = await client.post(
        "/api/movimientos/con-adjunto",
        data={"tipo": "entrada", "producto_id": str(product.id), "cantidad": "1", "precio_unitario": "1"},
        files={"archivo_adjunto": ("script.exe", b"MZ", "application/octet-stream")},
        headers=auth(user_token),
    )

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Tipo de archivo no permitido"


@pytest.mark.asyncio
async def test_attachment_form_validation(client, user_token, make_product):
    product = await make_product(stock=0)

    resp = await client.post(
        "/api/movimientos/con-adjunto",
        data={"tipo": "entrada", "producto_id": str(product.id), "cantidad": "0", "precio_unitario": "1"},
        files={"archivo_adjunto": ("factura.pdf", b"%PDF", "application/pdf")},
        headers=auth(user_token),
    )

    assert resp.status_code == 422
