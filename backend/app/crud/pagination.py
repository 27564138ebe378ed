# app/crud/pagination.py
from __future__ import annotations

import math
from dataclasses import dataclass

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class Page:
    page: int = 1
    limit: int = 20

    def __post_init__(self) -> None:
        object.__setattr__(self, "page", max(1, int(self.page)))
        object.__setattr__(self, "limit", max(1, min(int(self.limit), MAX_PAGE_SIZE)))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def total_pages(self, total: int) -> int:
        return math.ceil(total / self.limit) if total else 0
