"""
Post operations.

Posts are short text updates on a user's channel.
"""

from __future__ import annotations

import logging
from typing import Any

from ..models import EntityKind
from ..relations import Action, CascadeCoordinator, CascadeReport, OwnershipGuard
from ..store import EntityStore, translate_store_errors
from ..views.composer import ViewComposer
from ..views.pagination import PageResult
from .base import ServiceBase
from .inputs import ContentInput, parse_input

logger = logging.getLogger(__name__)


class PostService(ServiceBase):
    """Creating, listing and managing posts."""

    def __init__(
        self,
        store: EntityStore,
        composer: ViewComposer,
        guard: OwnershipGuard,
        cascade: CascadeCoordinator,
    ) -> None:
        super().__init__(store, composer, guard)
        self.cascade = cascade

    async def create_post(self, actor_id: str, content: str) -> dict[str, Any]:
        """Create a post owned by actor_id.

        Raises:
            InvalidArgumentError: If the actor id or the content is invalid
            NotFoundError: If the actor does not exist
        """
        data = parse_input(ContentInput, content=content)
        actor = await self._load(EntityKind.USER, actor_id, "actor_id")

        with translate_store_errors("create post"):
            post = await self.store.create_entity(
                kind=EntityKind.POST,
                owner_id=actor.entity_id,
                payload={"content": data.content},
            )

        logger.debug("Post created", extra={"post_id": post.entity_id})
        return post.to_document()

    async def get_user_posts(
        self,
        user_id: str,
        page: Any = None,
        limit: Any = None,
    ) -> PageResult[dict[str, Any]]:
        """List a user's posts, newest first.

        Raises:
            InvalidArgumentError: If the user id is malformed
            NotFoundError: If the user does not exist
        """
        user = await self._load(EntityKind.USER, user_id, "user_id")
        return await self.composer.user_posts(
            user.entity_id, self.composer.page_request(page, limit)
        )

    async def update_post(self, actor_id: str, post_id: str, content: str) -> dict[str, Any]:
        """Replace a post's content.

        Raises:
            InvalidArgumentError: If an identifier or the content is invalid
            NotFoundError: If the post does not exist
            UnauthorizedError: If the actor is not the owner
        """
        post = await self._load_owned(EntityKind.POST, post_id, actor_id)
        data = parse_input(ContentInput, content=content)
        updated = await self._update(post, {"content": data.content})
        return updated.to_document()

    async def delete_post(self, actor_id: str, post_id: str) -> CascadeReport:
        """Delete a post and the likes on it.

        Raises:
            InvalidArgumentError: If an identifier is malformed
            NotFoundError: If the post does not exist
            UnauthorizedError: If the actor is not the owner
        """
        post = await self._load_owned(EntityKind.POST, post_id, actor_id, Action.DELETE)
        report = await self.cascade.delete_with_cascade(EntityKind.POST, post.entity_id)
        logger.info("Post deleted", extra={"post_id": post.entity_id})
        return report
