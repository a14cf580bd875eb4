import json
import logging

import pytest

from app.core import logging as app_logging
from app.core.config import settings
from app.core.rate_limiter import RateLimiter, RateLimitExceeded
from app.services import email_delivery


class FakeSMTP:
    instances: list["FakeSMTP"] = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.started_tls = False
        self.logged_in = None
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.started_tls = True

    def login(self, user, password):
        self.logged_in = (user, password)

    def send_message(self, message):
        self.sent.append(message)


def test_email_is_only_logged_when_smtp_disabled(monkeypatch, caplog):
    monkeypatch.setattr(settings, "EMAILS_ENABLED", False)
    caplog.set_level(logging.INFO, logger="app.email")

    assert email_delivery.deliver_email("a@test.local", "Asunto", "Cuerpo") is False
    assert any(record.getMessage() == "Correo no enviado (SMTP deshabilitado)" for record in caplog.records)


def test_email_is_sent_through_smtp(monkeypatch):
    FakeSMTP.instances.clear()
    monkeypatch.setattr(email_delivery.smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(settings, "EMAILS_ENABLED", True)
    monkeypatch.setattr(settings, "SMTP_HOST", "smtp.test.local")
    monkeypatch.setattr(settings, "SMTP_USER", "bodega")
    monkeypatch.setattr(settings, "SMTP_PASSWORD", "secreto")
    monkeypatch.setattr(settings, "EMAIL_REPLY_TO", "soporte@test.local")

    assert email_delivery.deliver_email("a@test.local", "Stock bajo", "Quedan 3 unidades") is True

    server = FakeSMTP.instances[-1]
    assert server.host == "smtp.test.local"
    assert server.timeout == settings.SMTP_TIMEOUT_SECONDS
    assert server.started_tls is True
    assert server.logged_in == ("bodega", "secreto")
    message = server.sent[0]
    assert message["To"] == "a@test.local"
    assert message["Reply-To"] == "soporte@test.local"
    assert "Quedan 3 unidades" in message.get_content()


@pytest.mark.asyncio
async def test_memory_rate_limiter_blocks_after_limit():
    limiter = RateLimiter(redis_url=None)

    for _ in range(3):
        remaining = await limiter.check("login:10.0.0.1", limit=3, period_seconds=60)
        assert 0 < remaining <= 60

    with pytest.raises(RateLimitExceeded) as exc_info:
        await limiter.check("login:10.0.0.1", limit=3, period_seconds=60)
    assert exc_info.value.reset_in > 0

    # otra clave tiene su propio contador
    await limiter.check("login:10.0.0.2", limit=3, period_seconds=60)

    limiter.reset()
    await limiter.check("login:10.0.0.1", limit=3, period_seconds=60)


def test_json_formatter_nests_extra_fields():
    record = logging.makeLogRecord(
        {"name": "app.ledger", "levelno": logging.INFO, "levelname": "INFO", "msg": "Movimiento registrado"}
    )
    record.tipo = "salida"

    entry = json.loads(app_logging.JsonFormatter().format(record))

    assert entry["message"] == "Movimiento registrado"
    assert entry["logger"] == "app.ledger"
    assert entry["extra"] == {"tipo": "salida"}
    assert "location" not in entry


def test_text_formatter_appends_extra_fields():
    record = logging.makeLogRecord(
        {"name": "app.uploads", "levelno": logging.INFO, "levelname": "INFO", "msg": "Adjunto almacenado"}
    )
    record.archivo = "documentos/doc-1.pdf"

    line = app_logging.TextFormatter().format(record)

    assert "app.uploads: Adjunto almacenado" in line
    assert line.endswith("archivo=documentos/doc-1.pdf")
