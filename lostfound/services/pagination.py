"""Offset pagination shared by every listing."""
from math import ceil
from typing import Callable, Iterable, List, Tuple, TypeVar

from sqlalchemy.orm import Query

from ..config import get_settings
from ..schemas import Page

T = TypeVar("T")


def normalize(page: int, size: int) -> Tuple[int, int]:
    """Clamp a 1-indexed page number and a page size to the allowed range."""

    max_size = get_settings().max_page_size
    return max(page, 1), max(1, min(size, max_size))


def build_page(items: Iterable[T], page: int, size: int, total: int) -> Page[T]:
    return Page(
        items=list(items),
        current_page=page,
        page_size=size,
        total_items=total,
        total_pages=ceil(total / size) if total else 0,
    )


def paginate(query: Query, page: int, size: int, convert: Callable[[object], T]) -> Page[T]:
    page, size = normalize(page, size)
    total = query.order_by(None).count()
    rows: List[object] = query.offset((page - 1) * size).limit(size).all()
    return build_page([convert(row) for row in rows], page, size, total)
