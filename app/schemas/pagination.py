from math import ceil
from typing import Generic, List, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    total: int
    page: int
    pages: int
    limit: int
    items: List[T]


def page_of(items: list, total: int, limit: int, offset: int) -> dict:
    return {
        "total": total,
        "page": (offset // limit) + 1,
        "pages": ceil(total / limit) if total else 1,
        "limit": limit,
        "items": items,
    }
