# app/services/notification_service.py
"""Alertas del almacén por correo.

Todas las notificaciones se disparan después del commit y nunca
propagan errores: un fallo de correo no cambia el resultado de la operación.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from typing import Any

from app.core.config import settings
from app.core.logging import get_logger
from app.services.email_service import send_notification_email

logger = get_logger("app.notifications")


class Notifier:
    def __init__(
        self,
        alert_recipients: Iterable[str] | None = None,
        report_recipients: Iterable[str] | None = None,
    ) -> None:
        self.alert_recipients = list(alert_recipients if alert_recipients is not None else settings.ALERT_EMAILS)
        self.report_recipients = list(report_recipients if report_recipients is not None else settings.REPORT_EMAILS)

    def stock_low(self, product) -> None:
        self._dispatch(
            "stock_bajo",
            self.alert_recipients,
            f"Stock bajo: {product.nombre}",
            (
                f"El producto {product.codigo} - {product.nombre} quedó con stock {product.stock} "
                f"(mínimo {product.stock_minimo})."
            ),
            producto_id=str(product.id),
            stock=product.stock,
            stock_minimo=product.stock_minimo,
        )

    def limit_reached(self, customer, consumo: Decimal) -> None:
        recipients = [customer.email, *self.alert_recipients]
        self._dispatch(
            "limite_alcanzado",
            recipients,
            "Límite mensual alcanzado",
            (
                f"El cliente {customer.nombre} {customer.apellido} ({customer.departamento}) "
                f"alcanzó su límite mensual de {customer.limite_mensual}. Consumo actual: {consumo}."
            ),
            cliente_id=str(customer.id),
            limite=customer.limite_mensual,
            consumo=str(consumo),
        )

    def important_movement(self, movement, product) -> None:
        self._dispatch(
            "movimiento_importante",
            self.alert_recipients,
            f"Movimiento importante {movement.numero_documento}",
            (
                f"Se registró un movimiento de tipo {movement.tipo.value} por {movement.total} "
                f"sobre el producto {product.codigo} - {product.nombre} ({movement.cantidad} unidades)."
            ),
            movimiento_id=str(movement.id),
            total=str(movement.total),
        )

    def daily_report(self, report: dict[str, Any]) -> int:
        lines = [f"Reporte diario de movimientos desde {report['fecha_inicio']:%d-%m-%Y %H:%M}:"]
        for tipo, stats in report["estadisticas"].items():
            label = tipo.value if hasattr(tipo, "value") else tipo
            lines.append(
                f"- {label}: {stats['movimientos']} movimientos, "
                f"{stats['productos']} unidades, valor {stats['valor']}"
            )
        return self._dispatch(
            "reporte_diario",
            self.report_recipients,
            "Reporte diario de movimientos",
            "\n".join(lines),
        )

    def _dispatch(self, event: str, recipients: Iterable[str], subject: str, message: str, **context: Any) -> int:
        recipients = [r for r in recipients if r]
        if not recipients:
            logger.info("Notificación sin destinatarios", extra={"event": event, **context})
            return 0
        try:
            sent = send_notification_email(recipients, subject, message)
        except Exception:
            logger.exception("Fallo al despachar notificación", extra={"event": event, **context})
            return 0
        logger.info("Notificación despachada", extra={"event": event, "recipients": len(recipients), **context})
        return sent
