"""
SQLite entity store for StreamGraph.

This module manages the single SQLite database that stores:
- Entities (users, videos, comments, posts, playlists) with JSON payloads
- Edges (likes, subscriptions) between an actor and a tagged target
- Playlist entries (ordered, duplicate-free)
- The reconciliation log for cascades that did not complete

It is the only source of truth. Nothing is cached between calls.

Invariants:
    - At most one edge per (actor, edge kind, target kind, target id),
      enforced by the primary key
    - A playlist contains a video at most once, enforced by the primary key
    - Toggles and cascades run inside BEGIN IMMEDIATE transactions, so
      concurrent writers are serialized
    - Owner ids are written on insert and never updated
    - Delete operations report whether a row existed (delete-if-exists)

How to change safely:
    - Schema migrations must be backward compatible
    - Use transactions for all multi-statement write operations
    - Keep plan compilation in plan_compiler.py

Table schema:
    entities:
        - entity_id TEXT PRIMARY KEY (UUID)
        - kind TEXT
        - owner_id TEXT
        - parent_id TEXT (video of a comment)
        - payload_json TEXT
        - created_at INTEGER (Unix ms)
        - updated_at INTEGER (Unix ms)

    edges:
        - actor_id TEXT
        - edge_kind TEXT (like, subscription)
        - target_kind TEXT (video, comment, post, channel)
        - target_id TEXT
        - created_at INTEGER
        - PRIMARY KEY (actor_id, edge_kind, target_kind, target_id)

    playlist_entries:
        - playlist_id TEXT
        - video_id TEXT
        - position INTEGER
        - added_at INTEGER
        - PRIMARY KEY (playlist_id, video_id)

    reconciliation_log:
        - entry_id TEXT PRIMARY KEY
        - parent_kind TEXT
        - parent_id TEXT
        - stage TEXT (store, media)
        - pending_json TEXT (JSON list of media locators)
        - error TEXT
        - attempts INTEGER
        - created_at INTEGER
        - resolved_at INTEGER
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from ..errors import ConflictError, InternalError, NotFoundError
from ..models import (
    KIND_SCHEMAS,
    EdgeKind,
    EdgeTarget,
    Entity,
    EntityKind,
    ReconciliationEntry,
    TargetKind,
)
from ..views.plan import EdgeFlag, JoinOwner, JoinPlaylistVideos, Predicate, PlanResult, QueryPlan
from .plan_compiler import AGGREGATE_PREFIX, compile_plan, compile_predicate

logger = logging.getLogger(__name__)


class StoreNotInitializedError(Exception):
    """Database file does not exist yet."""

    pass


class ReferenceMissingError(Exception):
    """A referenced entity vanished inside a write transaction."""

    def __init__(self, kind: EntityKind, entity_id: str) -> None:
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind.label} not found: {entity_id}")


class EdgeStateConflictError(Exception):
    """Edge was neither insertable nor deletable."""

    pass


class CascadeAction(Enum):
    """Cascade step actions, in the order they must run."""

    DELETE_CHILDREN = 1
    DELETE_EDGES = 2
    DELETE_ENTRIES = 3
    DELETE_PARENT = 4


@dataclass(frozen=True)
class CascadeStep:
    """One step of a store-side cascade.

    Attributes:
        action: What to delete
        kind: Child kind (DELETE_CHILDREN) or target kind of swept edges
            (DELETE_EDGES)
    """

    action: CascadeAction
    kind: EntityKind | None = None


@dataclass
class CascadeOutcome:
    """Counts of rows removed by a store-side cascade."""

    children: int = 0
    edges: int = 0
    entries: int = 0
    parent: Entity | None = None
    removed_ids: dict[EntityKind, list[str]] = field(default_factory=dict)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _casefold(value: Any) -> str | None:
    return value.casefold() if isinstance(value, str) else value


class EntityStore:
    """SQLite store for entities, edges and playlist entries.

    Thread safety:
        Each operation opens its own connection.
        SQLite serializes writers; WAL mode keeps reads non-blocking.

    Example:
        >>> store = EntityStore("/var/lib/streamgraph")
        >>> await store.initialize()
        >>> video = await store.create_entity(
        ...     kind=EntityKind.VIDEO,
        ...     owner_id=user_id,
        ...     payload={"title": "My video"},
        ... )
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        data_dir: str,
        db_filename: str = "streamgraph.db",
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        cache_size_pages: int = -64000,
    ) -> None:
        """Initialize the entity store.

        Args:
            data_dir: Directory for the SQLite database file
            db_filename: Database file name
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout (the store call timeout)
            cache_size_pages: SQLite cache size (negative = KB)
        """
        self.data_dir = Path(data_dir)
        self.db_filename = db_filename
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self.cache_size_pages = cache_size_pages

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_filename

    @contextmanager
    def _get_connection(self, create: bool = False) -> Iterator[sqlite3.Connection]:
        """Get a database connection.

        Raises:
            StoreNotInitializedError: If database doesn't exist and create=False
        """
        if not create and not self.db_path.exists():
            raise StoreNotInitializedError(f"Database not found: {self.db_path}")

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
        )
        conn.row_factory = sqlite3.Row
        conn.create_function("casefold", 1, _casefold, deterministic=True)

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            conn.execute(f"PRAGMA cache_size = {self.cache_size_pages}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")

            yield conn
        finally:
            conn.close()

    @contextmanager
    def _write_transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block inside BEGIN IMMEDIATE / COMMIT, rolling back on error."""
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.execute("COMMIT")
            except BaseException:
                conn.execute("ROLLBACK")
                raise

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database schema."""
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS entities (
                entity_id TEXT PRIMARY KEY,
                kind TEXT NOT NULL,
                owner_id TEXT NOT NULL,
                parent_id TEXT,
                payload_json TEXT NOT NULL DEFAULT '{}',
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_entities_kind_created
                ON entities(kind, created_at DESC, entity_id);
            CREATE INDEX IF NOT EXISTS idx_entities_owner ON entities(kind, owner_id);
            CREATE INDEX IF NOT EXISTS idx_entities_parent ON entities(kind, parent_id);

            CREATE UNIQUE INDEX IF NOT EXISTS idx_users_username
                ON entities(json_extract(payload_json, '$.username'))
                WHERE kind = 'user';
            CREATE UNIQUE INDEX IF NOT EXISTS idx_users_email
                ON entities(json_extract(payload_json, '$.email'))
                WHERE kind = 'user';

            CREATE TABLE IF NOT EXISTS edges (
                actor_id TEXT NOT NULL,
                edge_kind TEXT NOT NULL,
                target_kind TEXT NOT NULL,
                target_id TEXT NOT NULL,
                created_at INTEGER NOT NULL,
                PRIMARY KEY (actor_id, edge_kind, target_kind, target_id)
            );

            CREATE INDEX IF NOT EXISTS idx_edges_target
                ON edges(target_kind, target_id, edge_kind);

            CREATE TABLE IF NOT EXISTS playlist_entries (
                playlist_id TEXT NOT NULL,
                video_id TEXT NOT NULL,
                position INTEGER NOT NULL,
                added_at INTEGER NOT NULL,
                PRIMARY KEY (playlist_id, video_id)
            );

            CREATE INDEX IF NOT EXISTS idx_playlist_entries_video
                ON playlist_entries(video_id);

            CREATE TABLE IF NOT EXISTS reconciliation_log (
                entry_id TEXT PRIMARY KEY,
                parent_kind TEXT NOT NULL,
                parent_id TEXT NOT NULL,
                stage TEXT NOT NULL,
                pending_json TEXT NOT NULL DEFAULT '[]',
                error TEXT,
                attempts INTEGER NOT NULL DEFAULT 0,
                created_at INTEGER NOT NULL,
                resolved_at INTEGER
            );

            CREATE INDEX IF NOT EXISTS idx_reconciliation_pending
                ON reconciliation_log(resolved_at, created_at);

            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, strftime('%s', 'now') * 1000);
        """)

    async def initialize(self) -> None:
        """Create the database file and schema if they don't exist."""
        with self._get_connection(create=True) as conn:
            self._create_schema(conn)
        logger.info("Initialized entity store", extra={"db_path": str(self.db_path)})

    async def exists(self) -> bool:
        """Check if the database file exists."""
        return self.db_path.exists()

    # Entities

    @staticmethod
    def _row_to_entity(row: sqlite3.Row) -> Entity:
        return Entity(
            entity_id=row["entity_id"],
            kind=EntityKind(row["kind"]),
            owner=row["owner_id"],
            payload=json.loads(row["payload_json"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            parent_id=row["parent_id"],
        )

    async def create_entity(
        self,
        kind: EntityKind,
        owner_id: str | None,
        payload: dict[str, Any],
        parent_id: str | None = None,
        entity_id: str | None = None,
        created_at: int | None = None,
    ) -> Entity:
        """Create a new entity.

        Args:
            kind: Entity kind
            owner_id: Owning user (None for users, which own themselves)
            payload: Field values
            parent_id: Parent entity id (the video of a comment)
            entity_id: Optional specific id (generated if not provided)
            created_at: Optional creation timestamp

        Returns:
            Created Entity

        Raises:
            ReferenceMissingError: If parent_id does not reference an
                existing parent inside the insert transaction
            sqlite3.IntegrityError: On unique constraint violations
        """
        if entity_id is None:
            entity_id = str(uuid.uuid4())
        if owner_id is None:
            owner_id = entity_id

        now = created_at or _now_ms()

        with self._write_transaction() as conn:
            if parent_id is not None:
                parent_kind = _PARENT_KINDS[kind]
                cursor = conn.execute(
                    "SELECT 1 FROM entities WHERE entity_id = ? AND kind = ?",
                    (parent_id, parent_kind.value),
                )
                if cursor.fetchone() is None:
                    raise ReferenceMissingError(parent_kind, parent_id)

            conn.execute(
                """
                INSERT INTO entities (entity_id, kind, owner_id, parent_id,
                                      payload_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entity_id,
                    kind.value,
                    owner_id,
                    parent_id,
                    json.dumps(payload),
                    now,
                    now,
                ),
            )

        logger.debug(
            "Created entity",
            extra={"entity_id": entity_id, "kind": kind.value, "owner_id": owner_id},
        )

        return Entity(
            entity_id=entity_id,
            kind=kind,
            owner=owner_id,
            payload=dict(payload),
            created_at=now,
            updated_at=now,
            parent_id=parent_id,
        )

    async def get_entity(self, entity_id: str, kind: EntityKind | None = None) -> Entity | None:
        """Get an entity by id, optionally requiring a kind."""
        with self._get_connection() as conn:
            if kind is not None:
                cursor = conn.execute(
                    "SELECT * FROM entities WHERE entity_id = ? AND kind = ?",
                    (entity_id, kind.value),
                )
            else:
                cursor = conn.execute(
                    "SELECT * FROM entities WHERE entity_id = ?",
                    (entity_id,),
                )
            row = cursor.fetchone()
            return self._row_to_entity(row) if row else None

    async def update_entity(
        self,
        entity_id: str,
        patch: dict[str, Any],
        kind: EntityKind | None = None,
        updated_at: int | None = None,
    ) -> Entity | None:
        """Merge a patch into an entity's payload.

        Args:
            entity_id: Entity identifier
            patch: Fields to update (PATCH semantics)
            kind: Optional kind the entity must have
            updated_at: Optional update timestamp

        Returns:
            Updated Entity or None if not found

        Raises:
            ValueError: If the patch names a field outside the kind's schema
        """
        now = updated_at or _now_ms()

        with self._write_transaction() as conn:
            cursor = conn.execute(
                "SELECT * FROM entities WHERE entity_id = ?",
                (entity_id,),
            )
            row = cursor.fetchone()
            if not row or (kind is not None and row["kind"] != kind.value):
                return None

            entity = self._row_to_entity(row)
            unknown = set(patch) - set(KIND_SCHEMAS[entity.kind].fields)
            if unknown:
                raise ValueError(f"Cannot update {entity.kind.value} fields: {sorted(unknown)}")

            entity.payload.update(patch)
            entity.updated_at = now
            conn.execute(
                "UPDATE entities SET payload_json = ?, updated_at = ? WHERE entity_id = ?",
                (json.dumps(entity.payload), now, entity_id),
            )

        logger.debug(
            "Updated entity",
            extra={"entity_id": entity_id, "fields": sorted(patch)},
        )
        return entity

    async def delete_entity(self, entity_id: str, kind: EntityKind | None = None) -> bool:
        """Delete a single entity row (no cascade).

        Returns:
            True if deleted, False if not found
        """
        with self._get_connection() as conn:
            if kind is not None:
                cursor = conn.execute(
                    "DELETE FROM entities WHERE entity_id = ? AND kind = ?",
                    (entity_id, kind.value),
                )
            else:
                cursor = conn.execute("DELETE FROM entities WHERE entity_id = ?", (entity_id,))
            return cursor.rowcount > 0

    async def increment_views(self, video_id: str) -> Entity | None:
        """Atomically add one to a video's view count.

        Returns:
            Updated video or None if not found
        """
        with self._write_transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE entities
                SET payload_json = json_set(
                    payload_json, '$.views',
                    COALESCE(json_extract(payload_json, '$.views'), 0) + 1
                )
                WHERE entity_id = ? AND kind = ?
                """,
                (video_id, EntityKind.VIDEO.value),
            )
            if cursor.rowcount == 0:
                return None
            row = conn.execute(
                "SELECT * FROM entities WHERE entity_id = ?", (video_id,)
            ).fetchone()
            return self._row_to_entity(row)

    async def toggle_published(self, video_id: str) -> Entity | None:
        """Atomically flip a video's is_published flag.

        A missing flag counts as published.

        Returns:
            Updated video or None if not found
        """
        with self._write_transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE entities
                SET payload_json = json_set(
                    payload_json, '$.is_published',
                    json(CASE WHEN COALESCE(json_extract(payload_json, '$.is_published'), 1)
                         THEN 'false' ELSE 'true' END)
                ),
                updated_at = ?
                WHERE entity_id = ? AND kind = ?
                """,
                (_now_ms(), video_id, EntityKind.VIDEO.value),
            )
            if cursor.rowcount == 0:
                return None
            row = conn.execute(
                "SELECT * FROM entities WHERE entity_id = ?", (video_id,)
            ).fetchone()
            return self._row_to_entity(row)

    async def query_one(self, kind: EntityKind, predicate: Predicate) -> Entity | None:
        """Return the first entity of ``kind`` matching ``predicate``."""
        results = await self.query_many(kind, predicate, limit=1)
        return results[0] if results else None

    async def query_many(
        self,
        kind: EntityKind,
        predicate: Predicate,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Entity]:
        """Return entities of ``kind`` matching ``predicate``, newest first."""
        where_sql, params = compile_predicate(kind, predicate)
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"""
                SELECT * FROM entities e
                WHERE e.kind = ? AND {where_sql}
                ORDER BY e.created_at DESC, e.entity_id ASC
                LIMIT ? OFFSET ?
                """,
                [kind.value, *params, limit, offset],
            )
            return [self._row_to_entity(row) for row in cursor.fetchall()]

    # Views

    async def execute_plan(self, plan: QueryPlan) -> PlanResult:
        """Execute a query plan in a single read.

        Args:
            plan: Query plan (defaults are applied here)

        Returns:
            PlanResult with rendered documents and the total match count
        """
        plan = plan.finalize()
        compiled = compile_plan(plan)
        flags = {j.name for j in plan.joins if isinstance(j, EdgeFlag)}

        with self._get_connection() as conn:
            rows = conn.execute(compiled.select_sql, compiled.select_params).fetchall()
            total = conn.execute(compiled.count_sql, compiled.count_params).fetchone()[0]

            entities = [self._row_to_entity(row) for row in rows]
            documents = []
            for entity, row in zip(entities, rows):
                doc = entity.to_document(plan.projection)
                for name in compiled.aggregates:
                    value = row[f"{AGGREGATE_PREFIX}{name}"]
                    doc[name] = bool(value) if name in flags else value
                documents.append(doc)

            for join in plan.joins:
                if isinstance(join, JoinOwner):
                    self._attach_owners(conn, entities, documents, join)
                elif isinstance(join, JoinPlaylistVideos):
                    self._attach_playlist_videos(conn, entities, documents, join)

        return PlanResult(rows=documents, total=total)

    def _attach_owners(
        self,
        conn: sqlite3.Connection,
        entities: list[Entity],
        documents: list[dict[str, Any]],
        join: JoinOwner,
    ) -> None:
        owner_ids = sorted({e.owner for e in entities})
        owners: dict[str, dict[str, Any]] = {}
        if owner_ids:
            placeholders = ", ".join("?" for _ in owner_ids)
            cursor = conn.execute(
                f"SELECT * FROM entities WHERE kind = ? AND entity_id IN ({placeholders})",
                [EntityKind.USER.value, *owner_ids],
            )
            for row in cursor.fetchall():
                user = self._row_to_entity(row)
                profile = {"id": user.entity_id}
                profile.update({name: user.payload.get(name) for name in join.fields})
                owners[user.entity_id] = profile
        for entity, doc in zip(entities, documents):
            doc[join.name] = owners.get(entity.owner)

    def _attach_playlist_videos(
        self,
        conn: sqlite3.Connection,
        entities: list[Entity],
        documents: list[dict[str, Any]],
        join: JoinPlaylistVideos,
    ) -> None:
        playlist_ids = [e.entity_id for e in entities]
        videos: dict[str, list[dict[str, Any]]] = {pid: [] for pid in playlist_ids}
        if playlist_ids:
            placeholders = ", ".join("?" for _ in playlist_ids)
            cursor = conn.execute(
                f"""
                SELECT v.*, pe.playlist_id AS entry_playlist_id
                FROM playlist_entries pe
                JOIN entities v ON v.entity_id = pe.video_id AND v.kind = ?
                WHERE pe.playlist_id IN ({placeholders})
                ORDER BY pe.playlist_id, pe.position
                """,
                [EntityKind.VIDEO.value, *playlist_ids],
            )
            for row in cursor.fetchall():
                video = self._row_to_entity(row)
                videos[row["entry_playlist_id"]].append(video.to_document(join.fields))
        for entity, doc in zip(entities, documents):
            doc[join.name] = videos.get(entity.entity_id, [])

    # Edges

    async def atomic_toggle_edge(
        self,
        actor_id: str,
        target: EdgeTarget,
        kind: EdgeKind,
    ) -> bool:
        """Create the edge if absent, remove it if present, atomically.

        The whole check-then-act runs in one BEGIN IMMEDIATE transaction:
        the target is re-checked, then a primary-key-constrained
        INSERT OR IGNORE either creates the edge or collides, in which
        case the existing edge is deleted instead.

        Returns:
            True if the edge now exists, False if it was removed

        Raises:
            ReferenceMissingError: If the target no longer exists
            EdgeStateConflictError: If the edge could be neither inserted
                nor deleted
        """
        with self._write_transaction() as conn:
            entity_kind = target.kind.entity_kind
            cursor = conn.execute(
                "SELECT 1 FROM entities WHERE entity_id = ? AND kind = ?",
                (target.target_id, entity_kind.value),
            )
            if cursor.fetchone() is None:
                raise ReferenceMissingError(entity_kind, target.target_id)

            key = (actor_id, kind.value, target.kind.value, target.target_id)
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO edges
                (actor_id, edge_kind, target_kind, target_id, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (*key, _now_ms()),
            )
            if cursor.rowcount == 1:
                created = True
            else:
                cursor = conn.execute(
                    """
                    DELETE FROM edges
                    WHERE actor_id = ? AND edge_kind = ? AND target_kind = ? AND target_id = ?
                    """,
                    key,
                )
                if cursor.rowcount != 1:
                    raise EdgeStateConflictError(
                        f"Edge {kind.value} {actor_id} -> {target} changed during toggle"
                    )
                created = False

        logger.debug(
            "Toggled edge",
            extra={
                "actor_id": actor_id,
                "edge_kind": kind.value,
                "target": str(target),
                "exists": created,
            },
        )
        return created

    async def edge_exists(self, actor_id: str, target: EdgeTarget, kind: EdgeKind) -> bool:
        """Check whether an edge exists."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT 1 FROM edges
                WHERE actor_id = ? AND edge_kind = ? AND target_kind = ? AND target_id = ?
                """,
                (actor_id, kind.value, target.kind.value, target.target_id),
            )
            return cursor.fetchone() is not None

    async def count_edges_to(self, target: EdgeTarget, kind: EdgeKind) -> int:
        """Count edges of ``kind`` pointing at ``target``."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT COUNT(*) FROM edges
                WHERE target_kind = ? AND target_id = ? AND edge_kind = ?
                """,
                (target.kind.value, target.target_id, kind.value),
            )
            return cursor.fetchone()[0]

    # Playlist entries

    async def add_playlist_entry(self, playlist_id: str, video_id: str) -> bool:
        """Append a video to a playlist.

        Returns:
            True if appended, False if the video was already present

        Raises:
            ReferenceMissingError: If the playlist or video no longer exists
        """
        with self._write_transaction() as conn:
            for kind, entity_id in (
                (EntityKind.PLAYLIST, playlist_id),
                (EntityKind.VIDEO, video_id),
            ):
                cursor = conn.execute(
                    "SELECT 1 FROM entities WHERE entity_id = ? AND kind = ?",
                    (entity_id, kind.value),
                )
                if cursor.fetchone() is None:
                    raise ReferenceMissingError(kind, entity_id)

            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO playlist_entries (playlist_id, video_id, position, added_at)
                SELECT ?, ?, COALESCE(MAX(position), -1) + 1, ?
                FROM playlist_entries WHERE playlist_id = ?
                """,
                (playlist_id, video_id, _now_ms(), playlist_id),
            )
            return cursor.rowcount == 1

    async def remove_playlist_entry(self, playlist_id: str, video_id: str) -> bool:
        """Remove a video from a playlist.

        Returns:
            True if removed, False if the video was not in the playlist
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM playlist_entries WHERE playlist_id = ? AND video_id = ?",
                (playlist_id, video_id),
            )
            return cursor.rowcount > 0

    async def get_playlist_video_ids(self, playlist_id: str) -> list[str]:
        """Get a playlist's video ids in order."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "SELECT video_id FROM playlist_entries WHERE playlist_id = ? ORDER BY position",
                (playlist_id,),
            )
            return [row[0] for row in cursor.fetchall()]

    # Cascade

    async def run_cascade(
        self,
        parent_kind: EntityKind,
        parent_id: str,
        steps: list[CascadeStep],
    ) -> CascadeOutcome:
        """Run cascade steps in order inside one transaction.

        Either every step is applied or none is.

        Raises:
            ReferenceMissingError: If the parent row was already gone at
                the DELETE_PARENT step
        """
        outcome = CascadeOutcome()

        with self._write_transaction() as conn:
            for step in steps:
                if step.action == CascadeAction.DELETE_CHILDREN:
                    child_ids = [
                        row[0]
                        for row in conn.execute(
                            "SELECT entity_id FROM entities WHERE kind = ? AND parent_id = ?",
                            (step.kind.value, parent_id),
                        ).fetchall()
                    ]
                    conn.execute(
                        "DELETE FROM entities WHERE kind = ? AND parent_id = ?",
                        (step.kind.value, parent_id),
                    )
                    outcome.removed_ids.setdefault(step.kind, []).extend(child_ids)
                    outcome.children += len(child_ids)

                elif step.action == CascadeAction.DELETE_EDGES:
                    target_kind = TargetKind.for_entity_kind(step.kind)
                    if step.kind == parent_kind:
                        target_ids = [parent_id]
                    else:
                        target_ids = outcome.removed_ids.get(step.kind, [])
                    for target_id in target_ids:
                        cursor = conn.execute(
                            "DELETE FROM edges WHERE target_kind = ? AND target_id = ?",
                            (target_kind.value, target_id),
                        )
                        outcome.edges += cursor.rowcount

                elif step.action == CascadeAction.DELETE_ENTRIES:
                    column = "playlist_id" if parent_kind == EntityKind.PLAYLIST else "video_id"
                    cursor = conn.execute(
                        f"DELETE FROM playlist_entries WHERE {column} = ?",
                        (parent_id,),
                    )
                    outcome.entries += cursor.rowcount

                elif step.action == CascadeAction.DELETE_PARENT:
                    row = conn.execute(
                        "SELECT * FROM entities WHERE entity_id = ? AND kind = ?",
                        (parent_id, parent_kind.value),
                    ).fetchone()
                    if row is None:
                        raise ReferenceMissingError(parent_kind, parent_id)
                    conn.execute("DELETE FROM entities WHERE entity_id = ?", (parent_id,))
                    outcome.parent = self._row_to_entity(row)

        return outcome

    # Reconciliation log

    async def record_reconciliation(
        self,
        parent_kind: EntityKind,
        parent_id: str,
        stage: str,
        error: str,
        pending: list[dict[str, str]] | None = None,
    ) -> ReconciliationEntry:
        """Record a cascade that needs reconciliation."""
        entry = ReconciliationEntry(
            entry_id=str(uuid.uuid4()),
            parent_kind=parent_kind,
            parent_id=parent_id,
            stage=stage,
            pending=pending or [],
            error=error,
            created_at=_now_ms(),
        )
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO reconciliation_log
                (entry_id, parent_kind, parent_id, stage, pending_json, error, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.entry_id,
                    parent_kind.value,
                    parent_id,
                    stage,
                    json.dumps(entry.pending),
                    error,
                    entry.created_at,
                ),
            )
        return entry

    @staticmethod
    def _row_to_reconciliation(row: sqlite3.Row) -> ReconciliationEntry:
        return ReconciliationEntry(
            entry_id=row["entry_id"],
            parent_kind=EntityKind(row["parent_kind"]),
            parent_id=row["parent_id"],
            stage=row["stage"],
            pending=json.loads(row["pending_json"]),
            error=row["error"],
            attempts=row["attempts"],
            created_at=row["created_at"],
            resolved_at=row["resolved_at"],
        )

    async def list_pending_reconciliations(self, limit: int = 100) -> list[ReconciliationEntry]:
        """Get unresolved reconciliation entries, oldest first."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT * FROM reconciliation_log
                WHERE resolved_at IS NULL
                ORDER BY created_at ASC
                LIMIT ?
                """,
                (limit,),
            )
            return [self._row_to_reconciliation(row) for row in cursor.fetchall()]

    async def get_reconciliation(self, entry_id: str) -> ReconciliationEntry | None:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM reconciliation_log WHERE entry_id = ?", (entry_id,)
            ).fetchone()
            return self._row_to_reconciliation(row) if row else None

    async def update_reconciliation(
        self,
        entry_id: str,
        pending: list[dict[str, str]],
        error: str | None,
        resolved: bool,
    ) -> None:
        """Record a reconciliation attempt."""
        with self._get_connection() as conn:
            conn.execute(
                """
                UPDATE reconciliation_log
                SET pending_json = ?, error = ?, attempts = attempts + 1, resolved_at = ?
                WHERE entry_id = ?
                """,
                (json.dumps(pending), error, _now_ms() if resolved else None, entry_id),
            )

    async def get_stats(self) -> dict[str, int]:
        """Get row counts per entity kind, edge kind and log state."""
        with self._get_connection() as conn:
            stats = {kind.value: 0 for kind in EntityKind}
            for row in conn.execute("SELECT kind, COUNT(*) FROM entities GROUP BY kind"):
                stats[row[0]] = row[1]

            for kind in EdgeKind:
                stats[f"{kind.value}_edges"] = 0
            for row in conn.execute("SELECT edge_kind, COUNT(*) FROM edges GROUP BY edge_kind"):
                stats[f"{row[0]}_edges"] = row[1]

            stats["playlist_entries"] = conn.execute(
                "SELECT COUNT(*) FROM playlist_entries"
            ).fetchone()[0]
            stats["pending_reconciliations"] = conn.execute(
                "SELECT COUNT(*) FROM reconciliation_log WHERE resolved_at IS NULL"
            ).fetchone()[0]

            return stats


_PARENT_KINDS = {
    EntityKind.COMMENT: EntityKind.VIDEO,
}


@contextmanager
def translate_store_errors(operation: str) -> Iterator[None]:
    """Map store-level failures to StreamGraph errors.

    Raises:
        NotFoundError: A referenced entity vanished mid-transaction
        ConflictError: Edge state changed during a toggle
        InternalError: Any SQLite failure or missing database
    """
    try:
        yield
    except ReferenceMissingError as e:
        raise NotFoundError(str(e), e.kind.value, e.entity_id) from e
    except EdgeStateConflictError as e:
        raise ConflictError(str(e)) from e
    except StoreNotInitializedError as e:
        logger.error(f"Store not initialized during {operation}: {e}")
        raise InternalError(f"Store unavailable during {operation}") from e
    except sqlite3.Error as e:
        logger.error(f"Store failure during {operation}: {e}", exc_info=True)
        raise InternalError(f"Store failure during {operation}") from e
