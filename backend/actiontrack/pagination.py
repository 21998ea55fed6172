from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Generic, List, Optional, Tuple, TypeVar

from . import config

T = TypeVar("T")


def clamp_paging(page: Optional[int], limit: Optional[int]) -> Tuple[int, int]:
    """Clamp page to >= 1 and limit to [1, MAX_PAGE_SIZE]."""
    page_num = max(1, page or 1)
    limit_num = config.DEFAULT_PAGE_SIZE if limit is None else limit
    limit_num = min(config.MAX_PAGE_SIZE, max(1, limit_num))
    return page_num, limit_num


@dataclass
class Page(Generic[T]):
    items: List[T] = field(default_factory=list)
    page: int = 1
    limit: int = config.DEFAULT_PAGE_SIZE
    total: int = 0

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def describe(self, total_key: str) -> dict:
        return {
            "currentPage": self.page,
            "totalPages": self.total_pages,
            total_key: self.total,
            "hasNextPage": self.page < self.total_pages,
            "hasPrevPage": self.page > 1,
        }
