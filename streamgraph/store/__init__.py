"""
Entity store for StreamGraph.

This module handles persistence of every entity, edge, playlist entry and
reconciliation record in one SQLite database, and executes query plans
built by the view layer.

Invariants:
    - The store is the only source of truth; nothing is cached
    - Toggles and cascades are single transactions
    - SQLite uses WAL mode for concurrent reads during writes
"""

from .entity_store import (
    CascadeAction,
    CascadeOutcome,
    CascadeStep,
    EdgeStateConflictError,
    EntityStore,
    ReferenceMissingError,
    StoreNotInitializedError,
    translate_store_errors,
)

__all__ = [
    "CascadeAction",
    "CascadeOutcome",
    "CascadeStep",
    "EdgeStateConflictError",
    "EntityStore",
    "ReferenceMissingError",
    "StoreNotInitializedError",
    "translate_store_errors",
]
