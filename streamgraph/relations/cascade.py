"""
Cascade coordinator.

Deleting a parent entity runs an ordered compensation sequence:

    1. delete children      (Video -> its Comments)
    2. delete edges         (likes on the parent and on deleted children)
       and playlist entries (entries referencing a Video, entries of a Playlist)
    3. delete the parent    (delete-if-exists; zero rows is NotFound)
    4. release media        (Video -> video_file and thumbnail)

Steps 1-3 run in one store transaction. Step 4 talks to the media store,
which cannot join that transaction, so its failures are written to the
reconciliation log and retried later by reconcile_pending().

Invariants:
    - No edge, child or playlist entry survives its parent
    - A failed cascade always leaves a reconciliation entry behind
    - Entity kinds without a cascade plan cannot be deleted

How to change safely:
    - New child kinds need a step here and a DELETE_EDGES for their likes
    - Keep step order: children before their edges, parent last
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Any

from ..errors import InternalError, InvalidArgumentError, NotFoundError
from ..media import MediaStore, MediaType
from ..models import EntityKind, ReconciliationEntry
from ..store import CascadeAction, CascadeStep, EntityStore, ReferenceMissingError

logger = logging.getLogger(__name__)

STAGE_STORE = "store"
STAGE_MEDIA = "media"

CASCADE_PLANS: dict[EntityKind, list[CascadeStep]] = {
    EntityKind.VIDEO: [
        CascadeStep(CascadeAction.DELETE_CHILDREN, EntityKind.COMMENT),
        CascadeStep(CascadeAction.DELETE_EDGES, EntityKind.VIDEO),
        CascadeStep(CascadeAction.DELETE_EDGES, EntityKind.COMMENT),
        CascadeStep(CascadeAction.DELETE_ENTRIES),
        CascadeStep(CascadeAction.DELETE_PARENT),
    ],
    EntityKind.COMMENT: [
        CascadeStep(CascadeAction.DELETE_EDGES, EntityKind.COMMENT),
        CascadeStep(CascadeAction.DELETE_PARENT),
    ],
    EntityKind.POST: [
        CascadeStep(CascadeAction.DELETE_EDGES, EntityKind.POST),
        CascadeStep(CascadeAction.DELETE_PARENT),
    ],
    EntityKind.PLAYLIST: [
        CascadeStep(CascadeAction.DELETE_ENTRIES),
        CascadeStep(CascadeAction.DELETE_PARENT),
    ],
}

# Payload fields holding media locators, per kind
MEDIA_FIELDS: dict[EntityKind, tuple[tuple[str, MediaType], ...]] = {
    EntityKind.VIDEO: (
        ("video_file", MediaType.VIDEO),
        ("thumbnail", MediaType.IMAGE),
    ),
}


@dataclass
class CascadeReport:
    """Outcome of a completed cascade.

    Attributes:
        kind: Kind of the deleted entity
        entity_id: Identifier of the deleted entity
        children_removed: Child entities removed
        edges_removed: Edges removed (parent and children)
        entries_removed: Playlist entries removed
        media_released: Media locators deleted from the media store
    """

    kind: EntityKind
    entity_id: str
    children_removed: int = 0
    edges_removed: int = 0
    entries_removed: int = 0
    media_released: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "id": self.entity_id,
            "children_removed": self.children_removed,
            "edges_removed": self.edges_removed,
            "entries_removed": self.entries_removed,
            "media_released": list(self.media_released),
        }


@dataclass
class ReconcileSummary:
    """Result of one reconciliation sweep."""

    attempted: int = 0
    resolved: int = 0
    remaining: int = 0
    failed_ids: list[str] = field(default_factory=list)


def media_of(kind: EntityKind, payload: dict[str, Any]) -> list[dict[str, str]]:
    """Media locators referenced by an entity payload, in reconciliation form."""
    pending = []
    for name, media_type in MEDIA_FIELDS.get(kind, ()):
        locator = payload.get(name)
        if locator:
            pending.append({"locator": locator, "media_type": media_type.value})
    return pending


class CascadeCoordinator:
    """Deletes entities together with everything that depends on them.

    Callers load the entity and authorize the actor first; the
    coordinator only performs the deletion.

    Example:
        >>> coordinator = CascadeCoordinator(store, media_store)
        >>> report = await coordinator.delete_with_cascade(EntityKind.VIDEO, video_id)
        >>> report.children_removed
        3
    """

    def __init__(self, store: EntityStore, media_store: MediaStore) -> None:
        self.store = store
        self.media_store = media_store

    @staticmethod
    def steps_for(kind: EntityKind) -> list[CascadeStep]:
        """Get the store-side cascade steps for a kind.

        Raises:
            InvalidArgumentError: If the kind cannot be deleted
        """
        try:
            return list(CASCADE_PLANS[kind])
        except KeyError:
            raise InvalidArgumentError(f"{kind.label} entities cannot be deleted")

    async def delete_with_cascade(self, kind: EntityKind, entity_id: str) -> CascadeReport:
        """Delete an entity and its dependents.

        Args:
            kind: Kind of the entity
            entity_id: Entity identifier

        Returns:
            CascadeReport with removal counts

        Raises:
            InvalidArgumentError: If the kind has no cascade plan
            NotFoundError: If the entity does not exist
            InternalError: If the store or the media store failed; a
                reconciliation entry has been written
        """
        steps = self.steps_for(kind)

        try:
            outcome = await self.store.run_cascade(kind, entity_id, steps)
        except ReferenceMissingError as e:
            raise NotFoundError(f"{kind.label} not found", kind.value, entity_id) from e
        except sqlite3.Error as e:
            logger.error(
                f"Cascade failed in store for {kind.value} {entity_id}: {e}",
                exc_info=True,
            )
            entry = await self._record(kind, entity_id, STAGE_STORE, str(e), [])
            raise InternalError(
                f"Failed to delete {kind.value} {entity_id}",
                reconciliation_id=entry.entry_id if entry else None,
            ) from e

        report = CascadeReport(
            kind=kind,
            entity_id=entity_id,
            children_removed=outcome.children,
            edges_removed=outcome.edges,
            entries_removed=outcome.entries,
        )

        pending = media_of(kind, outcome.parent.payload) if outcome.parent else []
        remaining = await self._release(pending)
        report.media_released = [
            item["locator"] for item in pending if item not in remaining
        ]

        if remaining:
            entry = await self._record(
                kind,
                entity_id,
                STAGE_MEDIA,
                f"{len(remaining)} media object(s) could not be deleted",
                remaining,
            )
            raise InternalError(
                f"Deleted {kind.value} {entity_id} but media cleanup failed",
                reconciliation_id=entry.entry_id if entry else None,
            )

        logger.info(
            "Cascade completed",
            extra={
                "kind": kind.value,
                "entity_id": entity_id,
                "children": report.children_removed,
                "edges": report.edges_removed,
                "entries": report.entries_removed,
                "media": len(report.media_released),
            },
        )
        return report

    async def release_media(
        self,
        kind: EntityKind,
        entity_id: str,
        pending: list[dict[str, str]],
    ) -> ReconciliationEntry | None:
        """Delete media that an entity no longer references.

        Used when media is replaced rather than deleted with its entity.
        Failures are logged for reconciliation instead of raised.

        Returns:
            The reconciliation entry written, or None if everything was deleted
        """
        remaining = await self._release(pending)
        if not remaining:
            return None
        return await self._record(
            kind,
            entity_id,
            STAGE_MEDIA,
            f"{len(remaining)} replaced media object(s) could not be deleted",
            remaining,
        )

    async def reconcile_pending(self, limit: int = 100) -> ReconcileSummary:
        """Retry unresolved reconciliation entries.

        Store-stage entries re-run the cascade if the parent still exists.
        Media-stage entries (and media uncovered by a re-run) are retried
        against the media store. Entries with nothing left are resolved.
        """
        summary = ReconcileSummary()

        for entry in await self.store.list_pending_reconciliations(limit=limit):
            summary.attempted += 1
            pending = list(entry.pending)
            error = None

            try:
                if entry.stage == STAGE_STORE:
                    parent = await self.store.get_entity(entry.parent_id, entry.parent_kind)
                    if parent is not None:
                        outcome = await self.store.run_cascade(
                            entry.parent_kind,
                            entry.parent_id,
                            self.steps_for(entry.parent_kind),
                        )
                        if outcome.parent is not None:
                            pending.extend(media_of(entry.parent_kind, outcome.parent.payload))
            except (sqlite3.Error, ReferenceMissingError) as e:
                error = str(e)
                logger.error(
                    f"Reconciliation {entry.entry_id} failed in store: {e}",
                    exc_info=True,
                )

            if error is None:
                pending = await self._release(pending)
                if pending:
                    error = f"{len(pending)} media object(s) could not be deleted"

            resolved = error is None
            await self.store.update_reconciliation(entry.entry_id, pending, error, resolved)

            if resolved:
                summary.resolved += 1
                logger.info(
                    "Reconciliation resolved",
                    extra={"entry_id": entry.entry_id, "parent_id": entry.parent_id},
                )
            else:
                summary.remaining += 1
                summary.failed_ids.append(entry.entry_id)
                logger.warning(
                    "Reconciliation still pending",
                    extra={"entry_id": entry.entry_id, "error": error},
                )

        return summary

    async def _release(self, pending: list[dict[str, str]]) -> list[dict[str, str]]:
        """Delete each locator; return the ones that could not be deleted."""
        remaining = []
        for item in pending:
            try:
                ok = await self.media_store.delete(item["locator"], MediaType(item["media_type"]))
            except Exception as e:
                logger.error(f"Media delete failed for {item['locator']}: {e}", exc_info=True)
                ok = False
            if not ok:
                remaining.append(item)
        return remaining

    async def _record(
        self,
        kind: EntityKind,
        entity_id: str,
        stage: str,
        error: str,
        pending: list[dict[str, str]],
    ) -> ReconciliationEntry | None:
        try:
            entry = await self.store.record_reconciliation(kind, entity_id, stage, error, pending)
        except sqlite3.Error as e:
            logger.error(
                f"Could not write reconciliation entry for {kind.value} {entity_id}: {e}",
                exc_info=True,
            )
            return None

        logger.warning(
            "Reconciliation entry recorded",
            extra={
                "entry_id": entry.entry_id,
                "kind": kind.value,
                "entity_id": entity_id,
                "stage": stage,
                "pending": len(pending),
            },
        )
        return entry
