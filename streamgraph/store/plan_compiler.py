"""
SQL compilation of query plans.

Translates the match/join/sort/page stages of a QueryPlan into one SELECT
over the entities table. Aggregate joins become correlated subqueries so
they are always live and can be sorted on; document joins (owner profile,
playlist videos) are resolved afterwards by the store in batched lookups.

All values are bound as parameters. Field names are inlined only after
they have passed the per-kind whitelist in the plan.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..models import EntityKind, TargetKind
from ..views.plan import (
    ActorOfEdge,
    AllOf,
    AnyOf,
    ChildOf,
    CountChildren,
    CountEdges,
    EdgeFlag,
    FieldEquals,
    IdEquals,
    InPlaylist,
    OwnedBy,
    Predicate,
    QueryPlan,
    SortDirection,
    TargetOfEdge,
    TextSearch,
)

AGGREGATE_PREFIX = "agg_"

# Largest value SQLite binds as INTEGER
SQLITE_MAX_INT = 2**63 - 1


@dataclass
class CompiledPlan:
    """SQL for a plan.

    Attributes:
        select_sql: Row query (with paging)
        select_params: Parameters for select_sql
        count_sql: Total-count query (without paging)
        count_params: Parameters for count_sql
        aggregates: Output names of aggregate columns
    """

    select_sql: str
    select_params: list[Any] = field(default_factory=list)
    count_sql: str = ""
    count_params: list[Any] = field(default_factory=list)
    aggregates: list[str] = field(default_factory=list)


def _json_path(name: str) -> str:
    return f"$.{name}"


def _column_alias(name: str) -> str:
    if not name.isidentifier():
        raise ValueError(f"Invalid output name: {name!r}")
    return f'"{AGGREGATE_PREFIX}{name}"'


def compile_predicate(source: EntityKind, predicate: Predicate) -> tuple[str, list[Any]]:
    """Compile a predicate to a WHERE fragment over alias ``e``."""
    if isinstance(predicate, OwnedBy):
        return "e.owner_id = ?", [predicate.owner_id]

    if isinstance(predicate, IdEquals):
        return "e.entity_id = ?", [predicate.entity_id]

    if isinstance(predicate, FieldEquals):
        return "json_extract(e.payload_json, ?) = ?", [
            _json_path(predicate.field),
            predicate.value,
        ]

    if isinstance(predicate, TextSearch):
        clauses = []
        params: list[Any] = []
        for name in predicate.fields:
            clauses.append(
                "instr(casefold(COALESCE(json_extract(e.payload_json, ?), '')), ?) > 0"
            )
            params.extend([_json_path(name), predicate.query.casefold()])
        return "(" + " OR ".join(clauses) + ")", params

    if isinstance(predicate, ChildOf):
        return "e.parent_id = ?", [predicate.parent_id]

    if isinstance(predicate, TargetOfEdge):
        return (
            "EXISTS (SELECT 1 FROM edges x WHERE x.actor_id = ? AND x.edge_kind = ? "
            "AND x.target_kind = ? AND x.target_id = e.entity_id)",
            [
                predicate.actor_id,
                predicate.edge_kind.value,
                TargetKind.for_entity_kind(source).value,
            ],
        )

    if isinstance(predicate, ActorOfEdge):
        return (
            "EXISTS (SELECT 1 FROM edges x WHERE x.target_kind = ? AND x.target_id = ? "
            "AND x.edge_kind = ? AND x.actor_id = e.entity_id)",
            [
                predicate.target.kind.value,
                predicate.target.target_id,
                predicate.edge_kind.value,
            ],
        )

    if isinstance(predicate, InPlaylist):
        return (
            "EXISTS (SELECT 1 FROM playlist_entries pe "
            "WHERE pe.playlist_id = ? AND pe.video_id = e.entity_id)",
            [predicate.playlist_id],
        )

    if isinstance(predicate, (AllOf, AnyOf)):
        if not predicate.predicates:
            return ("1" if isinstance(predicate, AllOf) else "0"), []
        joiner = " AND " if isinstance(predicate, AllOf) else " OR "
        parts = []
        params = []
        for inner in predicate.predicates:
            sql, inner_params = compile_predicate(source, inner)
            parts.append(f"({sql})")
            params.extend(inner_params)
        return "(" + joiner.join(parts) + ")", params

    raise TypeError(f"Unsupported predicate: {predicate!r}")


def compile_plan(plan: QueryPlan) -> CompiledPlan:
    """Compile a finalized plan to SQL."""
    source = plan.source
    columns = ["e.*"]
    column_params: list[Any] = []
    aggregates: list[str] = []

    for join in plan.joins:
        if isinstance(join, CountEdges):
            if join.inbound:
                columns.append(
                    "(SELECT COUNT(*) FROM edges x WHERE x.target_kind = ? "
                    "AND x.target_id = e.entity_id AND x.edge_kind = ?) AS "
                    + _column_alias(join.name)
                )
                column_params.extend(
                    [TargetKind.for_entity_kind(source).value, join.edge_kind.value]
                )
            else:
                columns.append(
                    "(SELECT COUNT(*) FROM edges x WHERE x.actor_id = e.entity_id "
                    "AND x.edge_kind = ?) AS " + _column_alias(join.name)
                )
                column_params.append(join.edge_kind.value)
            aggregates.append(join.name)

        elif isinstance(join, CountChildren):
            columns.append(
                "(SELECT COUNT(*) FROM entities c WHERE c.kind = ? "
                "AND c.parent_id = e.entity_id) AS " + _column_alias(join.name)
            )
            column_params.append(join.child_kind.value)
            aggregates.append(join.name)

        elif isinstance(join, EdgeFlag):
            if join.actor_id is None:
                columns.append("0 AS " + _column_alias(join.name))
            else:
                columns.append(
                    "EXISTS (SELECT 1 FROM edges x WHERE x.actor_id = ? AND x.edge_kind = ? "
                    "AND x.target_kind = ? AND x.target_id = e.entity_id) AS "
                    + _column_alias(join.name)
                )
                column_params.extend(
                    [
                        join.actor_id,
                        join.edge_kind.value,
                        TargetKind.for_entity_kind(source).value,
                    ]
                )
            aggregates.append(join.name)

    where = ["e.kind = ?"]
    where_params: list[Any] = [source.value]
    for predicate in plan.predicates:
        sql, params = compile_predicate(source, predicate)
        where.append(sql)
        where_params.extend(params)
    where_sql = " AND ".join(where)

    sort = plan.sort_stage
    if sort is None:
        raise ValueError("Plan must be finalized before compilation")
    if sort.field in ("created_at", "updated_at"):
        sort_expr = f"e.{sort.field}"
    elif sort.field in aggregates:
        sort_expr = _column_alias(sort.field)
    else:
        sort_expr = f"json_extract(e.payload_json, '{_json_path(sort.field)}')"
    direction = "ASC" if sort.direction == SortDirection.ASC else "DESC"

    select_sql = (
        f"SELECT {', '.join(columns)} FROM entities e WHERE {where_sql} "
        f"ORDER BY {sort_expr} {direction}, e.entity_id ASC"
    )
    select_params = column_params + where_params

    page = plan.page_stage
    if page is not None:
        select_sql += " LIMIT ? OFFSET ?"
        select_params.extend([min(page.limit, SQLITE_MAX_INT), min(page.skip, SQLITE_MAX_INT)])

    return CompiledPlan(
        select_sql=select_sql,
        select_params=select_params,
        count_sql=f"SELECT COUNT(*) FROM entities e WHERE {where_sql}",
        count_params=list(where_params),
        aggregates=aggregates,
    )
