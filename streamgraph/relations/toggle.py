"""
Relation toggle engine.

Likes and subscriptions are edges that can only be created or removed by
toggling. A toggle validates its input, checks the target exists, then
hands the check-then-act to the store as one atomic conditional write.

Invariants:
    - At most one edge per (actor, target, kind)
    - Toggling twice restores the original state
    - A missing target is NotFound, never a dangling edge
    - Nobody subscribes to their own channel
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import InvalidArgumentError, NotFoundError
from ..models import EdgeKind, EdgeTarget, validate_id
from ..store import EntityStore, translate_store_errors

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToggleResult:
    """Outcome of a toggle.

    Attributes:
        edge_now_exists: True if the edge was created, False if removed
        target: Edge target
        kind: Edge kind
    """

    edge_now_exists: bool
    target: EdgeTarget
    kind: EdgeKind


class RelationToggleEngine:
    """Creates or removes a single edge between an actor and a target.

    Example:
        >>> engine = RelationToggleEngine(store)
        >>> result = await engine.toggle_edge(user_id, EdgeTarget.video(video_id), EdgeKind.LIKE)
        >>> result.edge_now_exists
        True
    """

    def __init__(self, store: EntityStore) -> None:
        self.store = store

    def _validate(self, actor_id: str, target: EdgeTarget, kind: EdgeKind) -> tuple[str, EdgeTarget]:
        actor_id = validate_id(actor_id, "actor_id")
        target = EdgeTarget(
            target.kind, validate_id(target.target_id, f"{target.kind.value}_id")
        )

        if target.kind not in kind.allowed_targets:
            raise InvalidArgumentError(
                f"{kind.value} edges cannot target a {target.kind.value}",
                field_name="target",
            )
        if kind == EdgeKind.SUBSCRIPTION and target.target_id == actor_id:
            raise InvalidArgumentError(
                "Cannot subscribe to your own channel",
                field_name="channel_id",
            )
        return actor_id, target

    async def toggle_edge(
        self,
        actor_id: str,
        target: EdgeTarget,
        kind: EdgeKind,
    ) -> ToggleResult:
        """Toggle the edge (actor_id, target, kind).

        Raises:
            InvalidArgumentError: Malformed ids, target kind inconsistent
                with edge kind, or self-subscription
            NotFoundError: Target does not exist
            ConflictError: Edge state could not be reconciled
            InternalError: Store failure
        """
        actor_id, target = self._validate(actor_id, target, kind)
        entity_kind = target.kind.entity_kind

        with translate_store_errors(f"toggle {kind.value}"):
            entity = await self.store.get_entity(target.target_id, entity_kind)
            if entity is None:
                raise NotFoundError(
                    f"{entity_kind.label} not found",
                    resource_type=entity_kind.value,
                    resource_id=target.target_id,
                )
            exists = await self.store.atomic_toggle_edge(actor_id, target, kind)

        logger.info(
            "Edge toggled",
            extra={
                "actor_id": actor_id,
                "edge_kind": kind.value,
                "target": str(target),
                "edge_now_exists": exists,
            },
        )
        return ToggleResult(edge_now_exists=exists, target=target, kind=kind)

    async def edge_exists(self, actor_id: str, target: EdgeTarget, kind: EdgeKind) -> bool:
        """Check whether the edge currently exists."""
        actor_id, target = self._validate(actor_id, target, kind)
        with translate_store_errors(f"check {kind.value}"):
            return await self.store.edge_exists(actor_id, target, kind)
