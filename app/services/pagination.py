"""
1-based page/limit pagination shared by the chat and notification services
"""

import math
from dataclasses import dataclass, field
from typing import Generic, List, Optional, Tuple, TypeVar

from app.core.errors import BadRequestError

T = TypeVar("T")


@dataclass
class PageResult(Generic[T]):
    items: List[T] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def page_window(page: Optional[int], limit: Optional[int], default_limit: int) -> Tuple[int, int, int]:
    """Return (page, limit, offset) with defaults applied"""
    page = 1 if page is None else page
    limit = default_limit if limit is None else limit
    if page < 1 or limit < 1:
        raise BadRequestError("page and limit must be positive integers")
    return page, limit, (page - 1) * limit
