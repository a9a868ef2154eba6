"""
Pagination parameters for list views.

Invalid page/limit values are never rejected: anything that is not a
positive integer (or a string holding one) falls back to the default.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10

T = TypeVar("T")


@dataclass(frozen=True)
class PageRequest:
    """Normalized pagination window.

    Attributes:
        page: 1-based page number
        limit: Page size
    """

    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class PageResult(Generic[T]):
    """One page of a list view.

    An empty ``items`` list is a successful result, not a missing entity.
    """

    items: list[T] = field(default_factory=list)
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    total: int = 0

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def has_more(self) -> bool:
        return self.skip + len(self.items) < self.total

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": self.items,
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
        }


def _coerce_positive(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value if value > 0 else default
    if isinstance(value, float):
        return int(value) if value.is_integer() and value > 0 else default
    if isinstance(value, str):
        try:
            number = int(value.strip())
        except ValueError:
            return default
        return number if number > 0 else default
    return default


def normalize_pagination(
    page: Any = None,
    limit: Any = None,
    default_page: int = DEFAULT_PAGE,
    default_limit: int = DEFAULT_LIMIT,
) -> PageRequest:
    """Coerce raw page/limit input into a PageRequest.

    Example:
        >>> normalize_pagination(0, -5)
        PageRequest(page=1, limit=10)
        >>> normalize_pagination("3", "20").skip
        40
    """
    return PageRequest(
        page=_coerce_positive(page, default_page),
        limit=_coerce_positive(limit, default_limit),
    )
