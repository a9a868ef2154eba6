"""
Like operations.

A like is an edge from a user to a video, comment or post. Liking is a
toggle: the same call likes and unlikes.
"""

from __future__ import annotations

from typing import Any

from ..models import EdgeKind, EdgeTarget, EntityKind
from ..relations import OwnershipGuard, RelationToggleEngine, ToggleResult
from ..store import EntityStore
from ..views.composer import ViewComposer
from ..views.pagination import PageResult
from .base import ServiceBase


class LikeService(ServiceBase):
    """Toggling likes and listing liked videos.

    Example:
        >>> result = await likes.toggle_video_like(user_id, video_id)
        >>> result.edge_now_exists
        True
    """

    def __init__(
        self,
        store: EntityStore,
        composer: ViewComposer,
        guard: OwnershipGuard,
        toggle: RelationToggleEngine,
    ) -> None:
        super().__init__(store, composer, guard)
        self.toggle = toggle

    async def toggle_video_like(self, actor_id: str, video_id: str) -> ToggleResult:
        """Like or unlike a video.

        Raises:
            InvalidArgumentError: If an identifier is malformed
            NotFoundError: If the video does not exist
        """
        return await self.toggle.toggle_edge(actor_id, EdgeTarget.video(video_id), EdgeKind.LIKE)

    async def toggle_comment_like(self, actor_id: str, comment_id: str) -> ToggleResult:
        """Like or unlike a comment."""
        return await self.toggle.toggle_edge(
            actor_id, EdgeTarget.comment(comment_id), EdgeKind.LIKE
        )

    async def toggle_post_like(self, actor_id: str, post_id: str) -> ToggleResult:
        """Like or unlike a post."""
        return await self.toggle.toggle_edge(actor_id, EdgeTarget.post(post_id), EdgeKind.LIKE)

    async def get_liked_videos(
        self,
        actor_id: str,
        page: Any = None,
        limit: Any = None,
    ) -> PageResult[dict[str, Any]]:
        """List the videos actor_id has liked.

        Raises:
            InvalidArgumentError: If the actor id is malformed
            NotFoundError: If the actor does not exist
        """
        actor = await self._load(EntityKind.USER, actor_id, "actor_id")
        return await self.composer.liked_videos(
            actor.entity_id, self.composer.page_request(page, limit)
        )
