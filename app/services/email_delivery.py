# app/services/email_delivery.py
"""Envío SMTP de los correos que encola ``email.send_plain``."""

import smtplib
from email.message import EmailMessage

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger("app.email")


def build_message(to_email: str, subject: str, body: str) -> EmailMessage:
    message = EmailMessage()
    message["From"] = settings.EMAIL_FROM
    message["To"] = to_email
    message["Subject"] = subject
    if settings.EMAIL_REPLY_TO:
        message["Reply-To"] = settings.EMAIL_REPLY_TO
    message.set_content(body)
    return message


def deliver_email(to_email: str, subject: str, body: str) -> bool:
    """Devuelve False si el envío SMTP está deshabilitado y el correo solo se registró en el log.

    Los errores de SMTP (``OSError``) se propagan para que la tarea reintente.
    """
    if not settings.EMAILS_ENABLED or not settings.SMTP_HOST:
        logger.info("Correo no enviado (SMTP deshabilitado)", extra={"to": to_email, "subject": subject, "body": body})
        return False

    message = build_message(to_email, subject, body)
    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT_SECONDS) as server:
        if settings.SMTP_TLS:
            server.starttls()
        if settings.SMTP_USER and settings.SMTP_PASSWORD:
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        server.send_message(message)
    logger.info("Correo enviado", extra={"to": to_email, "subject": subject})
    return True
