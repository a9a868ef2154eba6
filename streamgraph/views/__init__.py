"""
Read-optimized views.

- pagination: page/limit coercion and page results
- plan: declarative query plans (match, join, sort, page)
- composer: the platform's views, built as plans (import
  streamgraph.views.composer directly; it depends on the store)
"""

from .pagination import DEFAULT_LIMIT, DEFAULT_PAGE, PageRequest, PageResult, normalize_pagination
from .plan import PlanError, PlanResult, QueryPlan, SortDirection

__all__ = [
    "DEFAULT_LIMIT",
    "DEFAULT_PAGE",
    "PageRequest",
    "PageResult",
    "PlanError",
    "PlanResult",
    "QueryPlan",
    "SortDirection",
    "normalize_pagination",
]
