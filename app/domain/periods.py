# app/domain/periods.py
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo


def _local(now: datetime, tz: str) -> datetime:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz))


def month_start(now: datetime, tz: str) -> datetime:
    """Día 1 del mes en curso a las 00:00 (hora local ``tz``), en UTC."""
    local = _local(now, tz).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return local.astimezone(timezone.utc)


def day_start(now: datetime, tz: str) -> datetime:
    local = _local(now, tz).replace(hour=0, minute=0, second=0, microsecond=0)
    return local.astimezone(timezone.utc)


def default_statistics_range(now: datetime, days: int) -> tuple[datetime, datetime]:
    return now - timedelta(days=days), now
