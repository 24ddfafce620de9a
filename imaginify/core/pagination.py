"""Pagination helpers."""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    items: list[T]
    limit: int
    offset: int
    total: int | None = None

    @property
    def next_offset(self) -> int | None:
        """Offset of the following page, or None on the last one."""
        if self.total is None or self.offset + self.limit >= self.total:
            return None
        return self.offset + self.limit


def paginate(limit: int, offset: int, max_limit: int = 100) -> tuple[int, int]:
    """Clamp limit/offset; return (limit, offset)."""
    limit = max(1, min(limit, max_limit))
    offset = max(0, offset)
    return limit, offset
