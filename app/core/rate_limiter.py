from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

import redis.asyncio as redis_async
from fastapi import HTTPException, Request, status
from redis.exceptions import RedisError

from app.core.config import settings
from app.core.logging import get_logger
from app.middleware.observability import client_ip

logger = get_logger("app.rate_limiter")


@dataclass
class RateLimitExceeded(Exception):
    reset_in: float


class RateLimiter:
    """Contador de ventana fija por clave.

    Con ``REDIS_URL`` el contador vive en Redis (``INCR`` + ``EXPIRE``) y se
    comparte entre workers; sin Redis, o si Redis falla, cada proceso cuenta
    en memoria.
    """

    def __init__(self, redis_url: str | None = None, prefix: str = "almacen:rl") -> None:
        self._prefix = prefix
        self._windows: dict[str, tuple[int, float]] = {}
        self._lock = asyncio.Lock()
        self._redis = redis_async.from_url(redis_url, decode_responses=True) if redis_url else None

    async def _count_in_redis(self, key: str, period_seconds: int) -> tuple[int, float] | None:
        if self._redis is None:
            return None
        redis_key = f"{self._prefix}:{key}"
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.incr(redis_key)
                pipe.ttl(redis_key)
                count, ttl = await pipe.execute()
            if ttl < 0:
                await self._redis.expire(redis_key, period_seconds)
                ttl = period_seconds
        except RedisError:
            logger.warning("Rate limiter sin Redis, usando memoria local", extra={"key": key})
            return None
        return int(count), float(ttl if ttl and ttl > 0 else period_seconds)

    async def _count_in_memory(self, key: str, period_seconds: int) -> tuple[int, float]:
        now = time.monotonic()
        async with self._lock:
            count, reset_at = self._windows.get(key, (0, now + period_seconds))
            if now >= reset_at:
                count, reset_at = 0, now + period_seconds
            count += 1
            self._windows[key] = (count, reset_at)
        return count, max(0.0, reset_at - now)

    async def check(self, key: str, limit: int, period_seconds: int) -> float:
        """Registra un intento; devuelve los segundos que le quedan a la ventana."""
        counted = await self._count_in_redis(key, period_seconds)
        if counted is None:
            counted = await self._count_in_memory(key, period_seconds)
        count, reset_in = counted
        if count > limit:
            raise RateLimitExceeded(reset_in=reset_in)
        return reset_in

    def reset(self) -> None:
        self._windows.clear()


_rate_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter(redis_url=settings.REDIS_URL)
    return _rate_limiter


def by_client_ip(request: Request) -> str:
    return client_ip(request) or "anonimo"


def rate_limit(
    limit: int,
    period_seconds: int = 60,
    scope: str = "default",
    identifier: Callable[[Request], str] = by_client_ip,
) -> Callable[[Request], Awaitable[None]]:
    async def dependency(request: Request) -> None:
        key = f"{scope}:{identifier(request)}"
        try:
            reset_in = await get_rate_limiter().check(key, limit=limit, period_seconds=period_seconds)
        except RateLimitExceeded as exc:
            logger.info("Límite de solicitudes alcanzado", extra={"scope": scope, "key": key})
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Demasiadas solicitudes, intente más tarde.",
                headers={"Retry-After": str(max(1, round(exc.reset_in)))},
            ) from exc
        request.state.rate_limit_reset_in = reset_in

    return dependency
