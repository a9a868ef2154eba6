"""
StreamGraph - core of a social video platform.

This package implements the domain core behind videos, comments, posts,
playlists, likes and subscriptions:
- Entities and Edges (likes, subscriptions) in a single SQLite store
- An atomic relation toggle for edges
- Read views composed as query plans (filter, join, aggregate, sort, page)
- Owner-gated mutations
- Cascading deletes with a durable reconciliation log
- Media bytes in an external media store (S3)

Architecture:
    ┌─────────────┐     ┌──────────────────┐
    │  API layer  │────▶│     Services     │
    │ (actor_id)  │     └────────┬─────────┘
    └─────────────┘              │
          ┌──────────────┬───────┴──────┬───────────────┐
          ▼              ▼              ▼               ▼
    ┌───────────┐  ┌───────────┐  ┌───────────┐  ┌─────────────┐
    │  Toggle   │  │ Ownership │  │   View    │  │   Cascade   │
    │  engine   │  │   guard   │  │ composer  │  │ coordinator │
    └─────┬─────┘  └───────────┘  └─────┬─────┘  └──┬───────┬──┘
          │                             │           │       │
          ▼                             ▼           ▼       ▼
    ┌──────────────────────────────────────────────────┐ ┌───────┐
    │              Entity store (SQLite)               │ │ Media │
    └──────────────────────────────────────────────────┘ └───────┘

Invariants:
    - The entity store is the only source of truth
    - Every operation takes an explicit actor_id where an actor is involved
    - Validation, then existence, then ownership, then the write
    - Toggling an edge twice restores the original state

How to change safely:
    - New entity kinds need a KindSchema and, if deletable, a cascade plan
    - New edge kinds need target rules in EdgeKind.allowed_targets
    - Keep the error kinds stable; the API layer maps them to statuses
"""

from ._version import __version__

__all__ = ["__version__"]
