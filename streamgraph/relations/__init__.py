"""
Relations between entities.

- toggle: like/subscription edges, created or removed by toggling
- ownership: owner-gated mutation checks
- cascade: deletion of entities with their dependents
"""

from .cascade import CascadeCoordinator, CascadeReport, ReconcileSummary
from .ownership import Action, OwnershipGuard, get_ownership_guard
from .toggle import RelationToggleEngine, ToggleResult

__all__ = [
    "Action",
    "CascadeCoordinator",
    "CascadeReport",
    "OwnershipGuard",
    "ReconcileSummary",
    "RelationToggleEngine",
    "ToggleResult",
    "get_ownership_guard",
]
