from __future__ import annotations

import asyncio

from fastapi.encoders import jsonable_encoder

from app.core.celery_app import celery_app
from app.db.session_async import AsyncSessionLocal
from app.services import movement_service


async def _run_async(func, *args, **kwargs):
    async with AsyncSessionLocal() as session:
        return await func(session, *args, **kwargs)


def _run(func, *args, **kwargs):
    return asyncio.run(_run_async(func, *args, **kwargs))


@celery_app.task(name="reports.daily_movements")
def daily_movements_report() -> dict:
    """Estadísticas del día enviadas a ``REPORT_EMAILS`` (programada en beat)."""
    report = _run(movement_service.daily_report)
    return jsonable_encoder(report)
