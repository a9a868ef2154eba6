"""
Ownership checks for StreamGraph.

Every mutation of a Video, Comment, Post or Playlist (and the private
read of a playlist) is owner-gated: only the entity's owner may do it.

Invariants:
    - The owner is the only principal with write access
    - Checks run after the existence check and before any write
    - Ownership never changes after creation

How to change safely:
    - New actions must be additive
    - Keep the existence-then-ownership order in callers
"""

from __future__ import annotations

import logging
from enum import Enum

from ..errors import UnauthorizedError
from ..models import Entity

logger = logging.getLogger(__name__)


class Action(Enum):
    """Owner-gated actions."""

    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class OwnershipGuard:
    """Authorizes owner-gated operations.

    Thread safety:
        This class is stateless and thread-safe.

    Example:
        >>> guard = OwnershipGuard()
        >>> guard.authorize_owner(video, actor_id, Action.DELETE)
    """

    def is_owner(self, entity: Entity, actor_id: str | None) -> bool:
        """Check if actor_id owns entity."""
        return actor_id is not None and entity.owner == actor_id

    def authorize_owner(
        self,
        entity: Entity,
        actor_id: str | None,
        action: Action = Action.UPDATE,
    ) -> None:
        """Raise unless actor_id owns entity.

        Args:
            entity: Loaded entity (existence already established)
            actor_id: Requesting actor
            action: What the actor is trying to do

        Raises:
            UnauthorizedError: If the actor is not the owner
        """
        if self.is_owner(entity, actor_id):
            return

        logger.info(
            "Ownership check failed",
            extra={
                "actor_id": actor_id,
                "entity_id": entity.entity_id,
                "kind": entity.kind.value,
                "action": action.value,
            },
        )
        raise UnauthorizedError(
            actor=actor_id or "anonymous",
            resource_id=entity.entity_id,
            action=f"{action.value} {entity.kind.value}",
        )


# Default guard instance
_default_guard: OwnershipGuard | None = None


def get_ownership_guard() -> OwnershipGuard:
    """Get the default ownership guard instance."""
    global _default_guard
    if _default_guard is None:
        _default_guard = OwnershipGuard()
    return _default_guard
