"""
Comment operations.

Comments hang off a video (their parent). A comment thread is a paged
view with the commenter's profile and a live like count per comment.
"""

from __future__ import annotations

import logging
from typing import Any

from ..models import EntityKind, validate_id
from ..relations import Action, CascadeCoordinator, CascadeReport, OwnershipGuard
from ..store import EntityStore, translate_store_errors
from ..views.composer import ViewComposer
from ..views.pagination import PageResult
from .base import ServiceBase
from .inputs import ContentInput, parse_input

logger = logging.getLogger(__name__)


class CommentService(ServiceBase):
    """Adding, listing and managing comments on videos."""

    def __init__(
        self,
        store: EntityStore,
        composer: ViewComposer,
        guard: OwnershipGuard,
        cascade: CascadeCoordinator,
    ) -> None:
        super().__init__(store, composer, guard)
        self.cascade = cascade

    async def get_video_comments(
        self,
        video_id: str,
        page: Any = None,
        limit: Any = None,
        actor_id: str | None = None,
    ) -> PageResult[dict[str, Any]]:
        """List a video's comments, newest first.

        A video without comments yields an empty page, and so does a
        video that has been deleted (its comments went with it).

        Raises:
            InvalidArgumentError: If an identifier is malformed
        """
        video_id = validate_id(video_id, "video_id")
        if actor_id is not None:
            actor_id = validate_id(actor_id, "actor_id")
        return await self.composer.video_comments(
            video_id,
            self.composer.page_request(page, limit),
            actor_id=actor_id,
        )

    async def add_comment(self, actor_id: str, video_id: str, content: str) -> dict[str, Any]:
        """Comment on a video.

        Raises:
            InvalidArgumentError: If an identifier or the content is invalid
            NotFoundError: If the actor or the video does not exist
        """
        actor_id = validate_id(actor_id, "actor_id")
        video_id = validate_id(video_id, "video_id")
        data = parse_input(ContentInput, content=content)

        actor = await self._load(EntityKind.USER, actor_id, "actor_id")
        video = await self._load(EntityKind.VIDEO, video_id)

        with translate_store_errors("add comment"):
            comment = await self.store.create_entity(
                kind=EntityKind.COMMENT,
                owner_id=actor.entity_id,
                payload={"content": data.content},
                parent_id=video.entity_id,
            )

        logger.debug(
            "Comment added",
            extra={"comment_id": comment.entity_id, "video_id": video.entity_id},
        )
        return comment.to_document()

    async def update_comment(self, actor_id: str, comment_id: str, content: str) -> dict[str, Any]:
        """Replace a comment's content.

        Raises:
            InvalidArgumentError: If an identifier or the content is invalid
            NotFoundError: If the comment does not exist
            UnauthorizedError: If the actor is not the owner
        """
        comment = await self._load_owned(EntityKind.COMMENT, comment_id, actor_id)
        data = parse_input(ContentInput, content=content)
        updated = await self._update(comment, {"content": data.content})
        return updated.to_document()

    async def delete_comment(self, actor_id: str, comment_id: str) -> CascadeReport:
        """Delete a comment and the likes on it.

        Raises:
            InvalidArgumentError: If an identifier is malformed
            NotFoundError: If the comment does not exist
            UnauthorizedError: If the actor is not the owner
        """
        comment = await self._load_owned(EntityKind.COMMENT, comment_id, actor_id, Action.DELETE)
        report = await self.cascade.delete_with_cascade(EntityKind.COMMENT, comment.entity_id)
        logger.info("Comment deleted", extra={"comment_id": comment.entity_id})
        return report
