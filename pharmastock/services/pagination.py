# pharmastock/services/pagination.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Generic, List, TypeVar

from pharmastock.core.errors import ValidationError

T = TypeVar("T")

MAX_PER_PAGE = 200


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    per_page: int = 50

    def __post_init__(self) -> None:
        if int(self.page) < 1:
            raise ValidationError("page 必须 >= 1", context={"page": self.page})
        if not (1 <= int(self.per_page) <= MAX_PER_PAGE):
            raise ValidationError(
                f"per_page 必须在 1..{MAX_PER_PAGE} 之间", context={"per_page": self.per_page}
            )

    @property
    def offset(self) -> int:
        return (int(self.page) - 1) * int(self.per_page)


@dataclass
class Page(Generic[T]):
    data: List[T]
    total: int
    page: int
    per_page: int

    @property
    def total_pages(self) -> int:
        return int(math.ceil(self.total / self.per_page)) if self.per_page else 0
