"""
Shared plumbing for feature services.

Every service operation follows the same order:

    validate identifiers -> load (existence) -> authorize (ownership)
    -> validate payload -> write

so a non-owner is refused before their payload is even looked at, and a
missing entity is NotFound before ownership is considered. Creates have
no owner to check and validate their payload before the first read.
"""

from __future__ import annotations

from typing import Any

from ..errors import NotFoundError
from ..models import Entity, EntityKind, validate_id
from ..relations import Action, OwnershipGuard
from ..store import EntityStore, translate_store_errors
from ..views.composer import ViewComposer


class ServiceBase:
    """Common collaborators and helpers of the feature services."""

    def __init__(
        self,
        store: EntityStore,
        composer: ViewComposer,
        guard: OwnershipGuard,
    ) -> None:
        self.store = store
        self.composer = composer
        self.guard = guard

    async def _load(self, kind: EntityKind, entity_id: Any, field_name: str | None = None) -> Entity:
        """Validate an identifier and load the entity.

        Raises:
            InvalidArgumentError: If the identifier is malformed
            NotFoundError: If no entity of that kind exists
        """
        entity_id = validate_id(entity_id, field_name or f"{kind.value}_id")
        with translate_store_errors(f"get {kind.value}"):
            entity = await self.store.get_entity(entity_id, kind)
        if entity is None:
            raise NotFoundError(f"{kind.label} not found", kind.value, entity_id)
        return entity

    async def _load_owned(
        self,
        kind: EntityKind,
        entity_id: Any,
        actor_id: Any,
        action: Action = Action.UPDATE,
    ) -> Entity:
        """Load an entity and require that actor_id owns it.

        Raises:
            InvalidArgumentError: If an identifier is malformed
            NotFoundError: If the entity does not exist
            UnauthorizedError: If the actor is not the owner
        """
        actor_id = validate_id(actor_id, "actor_id")
        entity = await self._load(kind, entity_id)
        self.guard.authorize_owner(entity, actor_id, action)
        return entity

    async def _update(self, entity: Entity, patch: dict[str, Any]) -> Entity:
        with translate_store_errors(f"update {entity.kind.value}"):
            updated = await self.store.update_entity(entity.entity_id, patch, entity.kind)
        if updated is None:
            raise NotFoundError(
                f"{entity.kind.label} not found", entity.kind.value, entity.entity_id
            )
        return updated

