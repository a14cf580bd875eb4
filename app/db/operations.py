# app/db/operations.py
"""Helpers de sesión async compartidos por los servicios."""

from collections.abc import Iterable
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

ModelT = TypeVar("ModelT")


def _as_list(items: Iterable[Any] | None) -> list[Any] | None:
    return list(items) if items else None


async def commit_async(session: AsyncSession) -> None:
    await session.commit()


async def rollback_async(session: AsyncSession) -> None:
    if session.in_transaction():
        await session.rollback()


async def flush_async(session: AsyncSession, *objects: Any) -> None:
    await session.flush(_as_list(objects))


async def refresh_async(session: AsyncSession, *instances: Any) -> None:
    for instance in instances:
        await session.refresh(instance)


async def get_for_update(session: AsyncSession, model: type[ModelT], pk: Any) -> ModelT | None:
    """Lee la fila con ``SELECT ... FOR UPDATE`` pisando lo que haya en la identity map.

    SQLite ignora el ``FOR UPDATE``; ahí la serialización la da su lock de escritura.
    """
    stmt = (
        select(model)
        .where(model.id == pk)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return (await session.execute(stmt)).scalar_one_or_none()
