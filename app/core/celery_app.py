from __future__ import annotations

from celery import Celery
from celery.schedules import crontab
from kombu import Queue

from app.core.config import settings


celery_app = Celery(
    "almacen",
    include=["app.tasks.email", "app.tasks.reports", "app.tasks.uploads"],
)

celery_app.conf.update(
    broker_url=settings.CELERY_BROKER_URL,
    result_backend=settings.CELERY_RESULT_BACKEND,
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    task_eager_propagates=True,
    task_default_queue=settings.CELERY_TASK_DEFAULT_QUEUE,
    broker_connection_retry_on_startup=True,
    timezone=settings.TIMEZONE,
)

celery_app.conf.task_queues = (
    Queue(settings.CELERY_TASK_DEFAULT_QUEUE),
    Queue(settings.EMAIL_QUEUE),
    Queue(settings.REPORTS_QUEUE),
    Queue(settings.MAINTENANCE_QUEUE),
)

celery_app.conf.task_routes = {
    "email.send_plain": {"queue": settings.EMAIL_QUEUE},
    "reports.*": {"queue": settings.REPORTS_QUEUE},
    "uploads.*": {"queue": settings.MAINTENANCE_QUEUE},
}

celery_app.conf.beat_schedule = {
    "limpiar-archivos-temporales": {
        "task": "uploads.cleanup_temp",
        "schedule": float(settings.UPLOAD_CLEANUP_INTERVAL_SECONDS),
    },
    "reporte-diario-movimientos": {
        "task": "reports.daily_movements",
        "schedule": crontab(hour=settings.DAILY_REPORT_HOUR, minute=0),
    },
}
