# app/services/email_service.py
from collections.abc import Iterable

from app.core.config import settings
from app.tasks.email import send_email_task


def _enqueue_email(to_email: str, subject: str, body: str) -> None:
    send_email_task.apply_async((to_email, subject, body), queue=settings.EMAIL_QUEUE, ignore_result=True)


def send_notification_email(recipients: Iterable[str], subject: str, message: str) -> int:
    """Encola un correo por destinatario; devuelve cuántos se encolaron."""
    body = f"Hola,\n\n{message}\n\n{settings.PROJECT_NAME}"
    sent = 0
    for to_email in recipients:
        _enqueue_email(to_email, f"{settings.PROJECT_NAME} - {subject}", body)
        sent += 1
    return sent


def send_password_changed_email(to_email: str, nombre: str) -> None:
    body = (
        f"Hola {nombre},\n\nTu contraseña fue actualizada. "
        "Si no realizaste este cambio contacta al administrador."
    )
    _enqueue_email(to_email, f"{settings.PROJECT_NAME} - Contraseña actualizada", body)
