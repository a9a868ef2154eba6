"""
Query plans for read-optimized views.

A QueryPlan is an ordered list of stage descriptors over one source kind:

    match -> join -> sort -> page

The plan is pure data. It is validated when built and executed once by
the entity store, which compiles it to a single SQL statement plus
batched lookups for document joins.

Invariants:
    - Stages are always kept in canonical order
    - Every plan has exactly one sort stage after finalize() (default
      created_at descending); ties are broken by identifier
    - Sort and filter fields are whitelisted per source kind
    - Aggregates are computed at query time, never cached

How to change safely:
    - New predicates or joins need a compiler branch in the store
    - Keep whitelists in sync with KIND_SCHEMAS
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from ..errors import InvalidArgumentError
from ..models import (
    KIND_SCHEMAS,
    OWNER_PROFILE_FIELDS,
    EdgeKind,
    EdgeTarget,
    EntityKind,
)
from .pagination import PageRequest


class PlanError(ValueError):
    """Plan stages were assembled out of order."""

    pass


class SortDirection(Enum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, value: Any) -> SortDirection:
        """Parse a caller-supplied direction; anything but "asc" is DESC."""
        if isinstance(value, SortDirection):
            return value
        if isinstance(value, str) and value.strip().lower() == "asc":
            return cls.ASC
        return cls.DESC


# Predicates


@dataclass(frozen=True)
class OwnedBy:
    """Entity owner equals owner_id."""

    owner_id: str


@dataclass(frozen=True)
class IdEquals:
    """Entity identifier equals entity_id."""

    entity_id: str


@dataclass(frozen=True)
class FieldEquals:
    """Payload field equals value."""

    field: str
    value: Any


@dataclass(frozen=True)
class TextSearch:
    """Case-insensitive substring match over one or more text fields."""

    query: str
    fields: tuple[str, ...]


@dataclass(frozen=True)
class ChildOf:
    """Entity's parent is parent_id (comments of a video)."""

    parent_id: str


@dataclass(frozen=True)
class TargetOfEdge:
    """Entity is the target of an edge from actor_id."""

    actor_id: str
    edge_kind: EdgeKind


@dataclass(frozen=True)
class ActorOfEdge:
    """Entity is the actor of an edge to target."""

    target: EdgeTarget
    edge_kind: EdgeKind


@dataclass(frozen=True)
class InPlaylist:
    """Entity is a video contained in playlist_id."""

    playlist_id: str


@dataclass(frozen=True)
class AllOf:
    predicates: tuple[Predicate, ...]


@dataclass(frozen=True)
class AnyOf:
    predicates: tuple[Predicate, ...]


Predicate = Union[
    OwnedBy,
    IdEquals,
    FieldEquals,
    TextSearch,
    ChildOf,
    TargetOfEdge,
    ActorOfEdge,
    InPlaylist,
    AllOf,
    AnyOf,
]


# Joins


@dataclass(frozen=True)
class JoinOwner:
    """Attach the owner's profile projected to a fixed field set."""

    name: str = "owner"
    fields: tuple[str, ...] = OWNER_PROFILE_FIELDS


@dataclass(frozen=True)
class CountEdges:
    """Attach a live count of edges.

    Attributes:
        name: Output field
        edge_kind: Edge kind to count
        inbound: Count edges targeting the entity (True) or edges whose
            actor is the entity (False)
    """

    name: str
    edge_kind: EdgeKind
    inbound: bool = True


@dataclass(frozen=True)
class CountChildren:
    """Attach a live count of child entities."""

    name: str
    child_kind: EntityKind


@dataclass(frozen=True)
class EdgeFlag:
    """Attach whether actor_id has an edge of edge_kind to the entity."""

    name: str
    actor_id: str | None
    edge_kind: EdgeKind


@dataclass(frozen=True)
class JoinPlaylistVideos:
    """Attach the ordered video documents of a playlist."""

    name: str = "videos"
    fields: tuple[str, ...] = (
        "title",
        "description",
        "thumbnail",
        "video_file",
        "duration",
        "views",
    )


Join = Union[JoinOwner, CountEdges, CountChildren, EdgeFlag, JoinPlaylistVideos]

# Joins computed inside the main SELECT (and therefore sortable)
AGGREGATE_JOINS = (CountEdges, CountChildren)


# Stages


class StageKind(Enum):
    MATCH = 1
    JOIN = 2
    SORT = 3
    PAGE = 4


@dataclass(frozen=True)
class MatchStage:
    predicate: Predicate
    kind: StageKind = StageKind.MATCH


@dataclass(frozen=True)
class JoinStage:
    join: Join
    kind: StageKind = StageKind.JOIN


@dataclass(frozen=True)
class SortStage:
    field: str = "created_at"
    direction: SortDirection = SortDirection.DESC
    kind: StageKind = StageKind.SORT


@dataclass(frozen=True)
class PageStage:
    skip: int
    limit: int
    kind: StageKind = StageKind.PAGE


Stage = Union[MatchStage, JoinStage, SortStage, PageStage]

BUILTIN_SORT_FIELDS = ("created_at", "updated_at")


@dataclass
class QueryPlan:
    """Ordered list of stages over a source kind.

    Example:
        >>> plan = (
        ...     QueryPlan(EntityKind.VIDEO)
        ...     .match(OwnedBy(user_id))
        ...     .join(JoinOwner())
        ...     .join(CountEdges("likes", EdgeKind.LIKE))
        ...     .sort("views", "desc")
        ...     .paginate(PageRequest(page=2, limit=10))
        ... )
        >>> result = await store.execute_plan(plan)
    """

    source: EntityKind
    stages: list[Stage] = field(default_factory=list)
    projection: tuple[str, ...] | None = None

    def project(self, fields: tuple[str, ...]) -> QueryPlan:
        """Restrict rendered payload fields."""
        schema = KIND_SCHEMAS[self.source]
        unknown = [f for f in fields if f not in schema.fields]
        if unknown:
            raise PlanError(f"Unknown {self.source.value} fields: {unknown}")
        self.projection = tuple(fields)
        return self

    def _append(self, stage: Stage) -> QueryPlan:
        if self.stages and self.stages[-1].kind.value > stage.kind.value:
            raise PlanError(
                f"{stage.kind.name} stage cannot follow {self.stages[-1].kind.name} stage"
            )
        if stage.kind in (StageKind.SORT, StageKind.PAGE) and any(
            s.kind == stage.kind for s in self.stages
        ):
            raise PlanError(f"Plan already has a {stage.kind.name} stage")
        self.stages.append(stage)
        return self

    def match(self, predicate: Predicate) -> QueryPlan:
        _check_predicate(self.source, predicate)
        return self._append(MatchStage(predicate))

    def join(self, join: Join) -> QueryPlan:
        if any(j.name == join.name for j in self.joins):
            raise PlanError(f"Duplicate join name: {join.name}")
        return self._append(JoinStage(join))

    def sort(self, field_name: str | None = None, direction: Any = None) -> QueryPlan:
        """Add the sort stage.

        Raises:
            InvalidArgumentError: If the field is not sortable for the source
        """
        if not field_name:
            return self._append(SortStage())
        if field_name not in self.sortable_fields():
            raise InvalidArgumentError(
                f"Cannot sort {self.source.value} by '{field_name}'",
                field_name="sort_by",
            )
        return self._append(SortStage(field_name, SortDirection.parse(direction)))

    def paginate(self, page: PageRequest) -> QueryPlan:
        return self._append(PageStage(skip=page.skip, limit=page.limit))

    def finalize(self) -> QueryPlan:
        """Return a copy with defaults applied (default sort stage)."""
        stages = list(self.stages)
        if self.sort_stage is None:
            position = next(
                (i for i, s in enumerate(stages) if s.kind == StageKind.PAGE), len(stages)
            )
            stages.insert(position, SortStage())
        return QueryPlan(self.source, stages, self.projection)

    def sortable_fields(self) -> tuple[str, ...]:
        aggregates = tuple(j.name for j in self.joins if isinstance(j, AGGREGATE_JOINS))
        return BUILTIN_SORT_FIELDS + KIND_SCHEMAS[self.source].sortable + aggregates

    @property
    def predicates(self) -> list[Predicate]:
        return [s.predicate for s in self.stages if isinstance(s, MatchStage)]

    @property
    def joins(self) -> list[Join]:
        return [s.join for s in self.stages if isinstance(s, JoinStage)]

    @property
    def sort_stage(self) -> SortStage | None:
        return next((s for s in self.stages if isinstance(s, SortStage)), None)

    @property
    def page_stage(self) -> PageStage | None:
        return next((s for s in self.stages if isinstance(s, PageStage)), None)


@dataclass
class PlanResult:
    """Rows produced by executing a plan.

    Attributes:
        rows: Rendered documents in sort order
        total: Number of rows matching the predicates (ignoring paging)
    """

    rows: list[dict[str, Any]] = field(default_factory=list)
    total: int = 0


def _check_predicate(source: EntityKind, predicate: Predicate) -> None:
    schema = KIND_SCHEMAS[source]
    if isinstance(predicate, (AllOf, AnyOf)):
        for inner in predicate.predicates:
            _check_predicate(source, inner)
    elif isinstance(predicate, FieldEquals):
        if predicate.field not in schema.fields:
            raise InvalidArgumentError(
                f"Unknown {source.value} field '{predicate.field}'",
                field_name=predicate.field,
            )
    elif isinstance(predicate, InPlaylist):
        if source != EntityKind.VIDEO:
            raise PlanError(f"Only videos can be matched by playlist, not {source.value}")
    elif isinstance(predicate, TextSearch):
        unknown = [f for f in predicate.fields if f not in schema.text_fields]
        if unknown or not predicate.fields:
            raise InvalidArgumentError(
                f"Cannot search {source.value} fields {unknown or '[]'}",
                field_name="query",
            )
