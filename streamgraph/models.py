"""
Core data model for StreamGraph.

Entities (User, Video, Comment, Post, Playlist) are stored as rows with an
opaque UUID, an owner, a JSON payload and timestamps. Likes and
subscriptions are unified as Edges between an actor and an explicit,
tagged EdgeTarget.

Invariants:
    - Identifiers are canonical UUID strings
    - An EdgeTarget carries exactly one identifier and its kind
    - LIKE edges target a Video, Comment or Post; SUBSCRIPTION edges
      target a channel (User)
    - Owner fields never change after creation
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import InvalidArgumentError


class EntityKind(Enum):
    """Primary entity kinds."""

    USER = "user"
    VIDEO = "video"
    COMMENT = "comment"
    POST = "post"
    PLAYLIST = "playlist"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class TargetKind(Enum):
    """Kinds of entity an edge can point at."""

    VIDEO = "video"
    COMMENT = "comment"
    POST = "post"
    CHANNEL = "channel"

    @property
    def entity_kind(self) -> EntityKind:
        return _TARGET_ENTITY_KIND[self]

    @classmethod
    def for_entity_kind(cls, kind: EntityKind) -> TargetKind:
        """Target kind used for edges pointing at entities of ``kind``."""
        for target_kind, entity_kind in _TARGET_ENTITY_KIND.items():
            if entity_kind == kind:
                return target_kind
        raise ValueError(f"{kind.value} entities cannot be edge targets")


_TARGET_ENTITY_KIND = {
    TargetKind.VIDEO: EntityKind.VIDEO,
    TargetKind.COMMENT: EntityKind.COMMENT,
    TargetKind.POST: EntityKind.POST,
    TargetKind.CHANNEL: EntityKind.USER,
}


class EdgeKind(Enum):
    """Relation kinds."""

    LIKE = "like"
    SUBSCRIPTION = "subscription"

    @property
    def allowed_targets(self) -> frozenset[TargetKind]:
        if self == EdgeKind.LIKE:
            return frozenset({TargetKind.VIDEO, TargetKind.COMMENT, TargetKind.POST})
        return frozenset({TargetKind.CHANNEL})


@dataclass(frozen=True)
class KindSchema:
    """Field layout of an entity kind.

    Attributes:
        fields: Payload fields accepted for the kind
        text_fields: Fields eligible for free-text search
        sortable: Payload fields callers may sort on
        parent_field: Document field exposing the parent_id column
    """

    fields: tuple[str, ...]
    text_fields: tuple[str, ...] = ()
    sortable: tuple[str, ...] = ()
    parent_field: str | None = None


KIND_SCHEMAS: dict[EntityKind, KindSchema] = {
    EntityKind.USER: KindSchema(
        fields=("username", "fullname", "email", "avatar", "cover_image"),
        text_fields=("username", "fullname"),
        sortable=("username", "fullname"),
    ),
    EntityKind.VIDEO: KindSchema(
        fields=(
            "title",
            "description",
            "video_file",
            "thumbnail",
            "duration",
            "views",
            "is_published",
        ),
        text_fields=("title", "description"),
        sortable=("title", "duration", "views"),
    ),
    EntityKind.COMMENT: KindSchema(
        fields=("content",),
        text_fields=("content",),
        parent_field="video",
    ),
    EntityKind.POST: KindSchema(
        fields=("content",),
        text_fields=("content",),
    ),
    EntityKind.PLAYLIST: KindSchema(
        fields=("name", "description"),
        text_fields=("name", "description"),
        sortable=("name",),
    ),
}

# Fields exposed when an entity is embedded as another document's owner
OWNER_PROFILE_FIELDS = ("username", "fullname", "avatar")


def validate_id(value: Any, field_name: str = "id") -> str:
    """Validate an identifier-shaped parameter.

    Args:
        value: Raw identifier
        field_name: Parameter name for the error message

    Returns:
        Canonical identifier string

    Raises:
        InvalidArgumentError: If the value is missing or malformed
    """
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgumentError(f"{field_name} is required", field_name=field_name)
    try:
        return str(uuid.UUID(value.strip()))
    except ValueError:
        raise InvalidArgumentError(f"{field_name} is invalid: {value!r}", field_name=field_name)


@dataclass(frozen=True)
class EdgeTarget:
    """Explicit edge target: one identifier tagged with its kind."""

    kind: TargetKind
    target_id: str

    @classmethod
    def video(cls, video_id: str) -> EdgeTarget:
        return cls(TargetKind.VIDEO, video_id)

    @classmethod
    def comment(cls, comment_id: str) -> EdgeTarget:
        return cls(TargetKind.COMMENT, comment_id)

    @classmethod
    def post(cls, post_id: str) -> EdgeTarget:
        return cls(TargetKind.POST, post_id)

    @classmethod
    def channel(cls, user_id: str) -> EdgeTarget:
        return cls(TargetKind.CHANNEL, user_id)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.target_id}"


@dataclass
class Entity:
    """A stored entity.

    Attributes:
        entity_id: Unique identifier (UUID)
        kind: Entity kind
        owner: Owning user id (a user owns itself)
        payload: Field values
        created_at: Creation timestamp (Unix ms)
        updated_at: Last update timestamp (Unix ms)
        parent_id: Parent entity id (the video of a comment)
    """

    entity_id: str
    kind: EntityKind
    owner: str
    payload: dict[str, Any]
    created_at: int
    updated_at: int
    parent_id: str | None = None

    def get(self, key: str, default: Any = None) -> Any:
        return self.payload.get(key, default)

    def to_document(self, fields: tuple[str, ...] | None = None) -> dict[str, Any]:
        """Render the entity as a plain document.

        Args:
            fields: Payload fields to include (all schema fields if None)
        """
        schema = KIND_SCHEMAS[self.kind]
        doc: dict[str, Any] = {"id": self.entity_id}
        for name in fields if fields is not None else schema.fields:
            doc[name] = self.payload.get(name)
        if self.kind != EntityKind.USER:
            doc["owner"] = self.owner
        if schema.parent_field:
            doc[schema.parent_field] = self.parent_id
        doc["created_at"] = self.created_at
        doc["updated_at"] = self.updated_at
        return doc


@dataclass
class ReconciliationEntry:
    """Durable record of a cascade that did not complete.

    Attributes:
        entry_id: Unique entry identifier
        parent_kind: Kind of the entity being deleted
        parent_id: Identifier of the entity being deleted
        stage: Cascade stage that failed ("store" or "media")
        pending: Media locators still to delete
        error: Last error message
        attempts: Number of reconciliation attempts so far
        created_at: Creation timestamp (Unix ms)
        resolved_at: Resolution timestamp, None while pending
    """

    entry_id: str
    parent_kind: EntityKind
    parent_id: str
    stage: str
    pending: list[dict[str, str]] = field(default_factory=list)
    error: str | None = None
    attempts: int = 0
    created_at: int = 0
    resolved_at: int | None = None
