"""
View composer.

Builds the query plans behind every read-optimized view (video listings,
comment threads, channel profiles, playlists, ...) and executes each one
in a single store read. Every view is a plan:

    source -> match -> join/aggregate -> sort -> page

Invariants:
    - Pagination input is coerced, never rejected
    - Aggregates (like counts, subscriber counts) are live
    - An empty page is a successful result
    - Views never load entities they do not return

How to change safely:
    - Add new views as plan builders; keep execution in run()
    - New sort keys must be whitelisted in KIND_SCHEMAS or be aggregates
"""

from __future__ import annotations

import logging
from typing import Any

from ..config import PaginationConfig
from ..models import OWNER_PROFILE_FIELDS, EdgeKind, EdgeTarget, EntityKind
from ..store import EntityStore, translate_store_errors
from .pagination import PageRequest, PageResult, normalize_pagination
from .plan import (
    ActorOfEdge,
    AllOf,
    AnyOf,
    ChildOf,
    CountChildren,
    CountEdges,
    EdgeFlag,
    FieldEquals,
    IdEquals,
    JoinOwner,
    JoinPlaylistVideos,
    OwnedBy,
    Predicate,
    QueryPlan,
    TargetOfEdge,
    TextSearch,
)

logger = logging.getLogger(__name__)

# Public channel profile; email stays private
CHANNEL_PROFILE_FIELDS = ("username", "fullname", "avatar", "cover_image")


def _visible_videos(viewer_id: str | None) -> Predicate:
    """Published videos, plus the viewer's own unpublished ones."""
    published = FieldEquals("is_published", True)
    if viewer_id is None:
        return published
    return AnyOf((published, OwnedBy(viewer_id)))


class ViewComposer:
    """Composes and executes read views over the entity store.

    Identifiers passed in are expected to be validated by the caller.

    Example:
        >>> composer = ViewComposer(store)
        >>> page = await composer.list_videos(composer.page_request(0, -5))
        >>> (page.page, page.limit)
        (1, 10)
    """

    def __init__(self, store: EntityStore, pagination: PaginationConfig | None = None) -> None:
        self.store = store
        self.pagination = pagination or PaginationConfig()

    def page_request(self, page: Any = None, limit: Any = None) -> PageRequest:
        """Coerce raw page/limit input using the configured defaults."""
        return normalize_pagination(
            page,
            limit,
            default_page=self.pagination.default_page,
            default_limit=self.pagination.default_limit,
        )

    async def run(self, plan: QueryPlan, request: PageRequest) -> PageResult[dict[str, Any]]:
        """Paginate and execute a plan.

        Raises:
            InternalError: On store failure
        """
        plan.paginate(request)
        with translate_store_errors(f"list {plan.source.value}"):
            result = await self.store.execute_plan(plan)

        logger.debug(
            "View executed",
            extra={
                "source": plan.source.value,
                "page": request.page,
                "limit": request.limit,
                "returned": len(result.rows),
                "total": result.total,
            },
        )
        return PageResult(
            items=result.rows,
            page=request.page,
            limit=request.limit,
            total=result.total,
        )

    async def run_one(self, plan: QueryPlan) -> dict[str, Any] | None:
        """Execute a plan expected to match at most one entity."""
        page = await self.run(plan, PageRequest(page=1, limit=1))
        return page.items[0] if page.items else None

    # Videos

    async def list_videos(
        self,
        request: PageRequest,
        query: str | None = None,
        sort_by: str | None = None,
        sort_type: str | None = None,
        owner_id: str | None = None,
        published_only: bool = True,
        actor_id: str | None = None,
    ) -> PageResult[dict[str, Any]]:
        """List videos with owner profile and live like count.

        Args:
            request: Pagination window
            query: Case-insensitive search over title and description
            sort_by: Sort field (default created_at)
            sort_type: "asc" or "desc" (anything else is desc)
            owner_id: Only videos of this channel
            published_only: Hide unpublished videos; otherwise only the
                actor's own unpublished videos are included
            actor_id: Populate is_liked for this actor

        Raises:
            InvalidArgumentError: If sort_by is not sortable
        """
        predicates: list[Predicate] = []
        if owner_id:
            predicates.append(OwnedBy(owner_id))
        predicates.append(_visible_videos(None if published_only else actor_id))
        if query and query.strip():
            predicates.append(TextSearch(query.strip(), ("title", "description")))

        plan = QueryPlan(EntityKind.VIDEO)
        if predicates:
            plan.match(AllOf(tuple(predicates)))
        plan.join(JoinOwner())
        plan.join(CountEdges("likes", EdgeKind.LIKE))
        plan.join(EdgeFlag("is_liked", actor_id, EdgeKind.LIKE))
        plan.sort(sort_by, sort_type)
        return await self.run(plan, request)

    async def video_detail(self, video_id: str, actor_id: str | None = None) -> dict[str, Any] | None:
        """Single video with owner, like and comment counts, and is_liked."""
        plan = (
            QueryPlan(EntityKind.VIDEO)
            .match(IdEquals(video_id))
            .join(JoinOwner())
            .join(CountEdges("likes", EdgeKind.LIKE))
            .join(CountChildren("comments", EntityKind.COMMENT))
            .join(EdgeFlag("is_liked", actor_id, EdgeKind.LIKE))
        )
        return await self.run_one(plan)

    async def liked_videos(self, actor_id: str, request: PageRequest) -> PageResult[dict[str, Any]]:
        """Videos the actor has liked and can still see, newest first."""
        plan = (
            QueryPlan(EntityKind.VIDEO)
            .match(AllOf((TargetOfEdge(actor_id, EdgeKind.LIKE), _visible_videos(actor_id))))
            .join(JoinOwner())
            .join(CountEdges("likes", EdgeKind.LIKE))
        )
        return await self.run(plan, request)

    # Comments

    async def video_comments(
        self,
        video_id: str,
        request: PageRequest,
        actor_id: str | None = None,
    ) -> PageResult[dict[str, Any]]:
        """Comments of a video with owner profile and live like count."""
        plan = (
            QueryPlan(EntityKind.COMMENT)
            .match(ChildOf(video_id))
            .join(JoinOwner())
            .join(CountEdges("likes", EdgeKind.LIKE))
            .join(EdgeFlag("is_liked", actor_id, EdgeKind.LIKE))
        )
        return await self.run(plan, request)

    # Posts

    async def user_posts(self, user_id: str, request: PageRequest) -> PageResult[dict[str, Any]]:
        """Posts of a user with owner profile and live like count."""
        plan = (
            QueryPlan(EntityKind.POST)
            .match(OwnedBy(user_id))
            .join(JoinOwner())
            .join(CountEdges("likes", EdgeKind.LIKE))
        )
        return await self.run(plan, request)

    # Playlists

    def _playlist_plan(self, predicate: Predicate) -> QueryPlan:
        return (
            QueryPlan(EntityKind.PLAYLIST)
            .match(predicate)
            .join(JoinOwner())
            .join(JoinPlaylistVideos())
        )

    async def user_playlists(self, user_id: str, request: PageRequest) -> PageResult[dict[str, Any]]:
        """Playlists of a user with their ordered videos."""
        return await self.run(self._playlist_plan(OwnedBy(user_id)), request)

    async def playlist_detail(self, playlist_id: str) -> dict[str, Any] | None:
        """Single playlist with its ordered videos."""
        return await self.run_one(self._playlist_plan(IdEquals(playlist_id)))

    # Channels

    async def channel_subscribers(
        self, channel_id: str, request: PageRequest
    ) -> PageResult[dict[str, Any]]:
        """Profiles of the users subscribed to a channel."""
        plan = (
            QueryPlan(EntityKind.USER)
            .project(OWNER_PROFILE_FIELDS)
            .match(ActorOfEdge(EdgeTarget.channel(channel_id), EdgeKind.SUBSCRIPTION))
        )
        return await self.run(plan, request)

    async def subscribed_channels(
        self, subscriber_id: str, request: PageRequest
    ) -> PageResult[dict[str, Any]]:
        """Profiles of the channels a user is subscribed to."""
        plan = (
            QueryPlan(EntityKind.USER)
            .project(OWNER_PROFILE_FIELDS)
            .match(TargetOfEdge(subscriber_id, EdgeKind.SUBSCRIPTION))
            .join(CountEdges("subscribers", EdgeKind.SUBSCRIPTION))
        )
        return await self.run(plan, request)

    async def channel_profile(
        self, channel_id: str, actor_id: str | None = None
    ) -> dict[str, Any] | None:
        """Public channel profile with subscription counts and is_subscribed."""
        plan = (
            QueryPlan(EntityKind.USER)
            .project(CHANNEL_PROFILE_FIELDS)
            .match(IdEquals(channel_id))
            .join(CountEdges("subscribers", EdgeKind.SUBSCRIPTION))
            .join(CountEdges("subscribed_to", EdgeKind.SUBSCRIPTION, inbound=False))
            .join(EdgeFlag("is_subscribed", actor_id, EdgeKind.SUBSCRIPTION))
        )
        return await self.run_one(plan)
